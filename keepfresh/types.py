"""Core data contract types."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def as_utc(value: datetime) -> datetime:
    """Interpret a naive datetime as UTC; aware datetimes pass through."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@dataclass(frozen=True)
class Refreshable(Generic[T]):
    """One immutable generation of a managed value and its validity window."""

    value: T
    issued_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        """Interpret naive timestamps as UTC."""
        object.__setattr__(self, "issued_at", as_utc(self.issued_at))
        object.__setattr__(self, "expires_at", as_utc(self.expires_at))

    @property
    def lifetime(self) -> timedelta:
        """Total validity window of this generation."""
        return self.expires_at - self.issued_at

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once the expiry instant has passed."""
        return (now or datetime.now(UTC)) > self.expires_at


Clock = Callable[[], datetime]
RefreshFunc = Callable[[asyncio.Event], Awaitable[Refreshable[T]]]
ValueCallback = Callable[[Refreshable[Any]], Any]
ErrorCallback = Callable[[BaseException], Any]


def utc_now() -> datetime:
    """Return the current wall-clock time in UTC."""
    return datetime.now(UTC)


def utc_clock(clock: Clock) -> Clock:
    """Wrap a clock so that naive readings are interpreted as UTC."""
    return lambda: as_utc(clock())
