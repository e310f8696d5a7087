"""Exception hierarchy."""

from __future__ import annotations

from datetime import timedelta


class KeepFreshError(Exception):
    """Base class for all keepfresh exceptions."""


class InitialValueTimeoutError(KeepFreshError):
    """Raised when no initial value was acquired within the wait timeout."""

    def __init__(self, timeout: timedelta) -> None:
        """Initialize with the timeout that elapsed."""
        super().__init__(f"Timed out after {timeout} waiting for initial value.")
        self.timeout = timeout


class InitialValueError(KeepFreshError):
    """Raised when the very first acquisition attempt failed."""

    def __init__(self, cause: BaseException) -> None:
        """Initialize with the error raised by the first acquisition."""
        super().__init__(f"Failed to acquire initial value: {cause}")
        self.cause = cause


class StorageError(KeepFreshError):
    """Raised when a storage backend cannot read or write a value."""


class StorageEmptyError(StorageError):
    """Raised when a storage backend holds no value."""
