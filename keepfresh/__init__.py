"""Public package exports."""

from keepfresh.exceptions import (
    InitialValueError,
    InitialValueTimeoutError,
    KeepFreshError,
    StorageEmptyError,
    StorageError,
)
from keepfresh.refresher import DEFAULT_INITIAL_WAIT_TIMEOUT, DEFAULT_RETRY_DELAY, Refresher
from keepfresh.storage import FunctionStorage, Storage, storage_from_functions
from keepfresh.strategy import (
    DEFAULT_REFRESH_STRATEGY,
    DefaultRefreshStrategy,
    FunctionRefreshStrategy,
    RefreshStrategy,
    default_refresh_at,
    strategy_from_function,
)
from keepfresh.types import Refreshable, RefreshFunc

__all__ = [
    "DEFAULT_INITIAL_WAIT_TIMEOUT",
    "DEFAULT_REFRESH_STRATEGY",
    "DEFAULT_RETRY_DELAY",
    "DefaultRefreshStrategy",
    "FunctionRefreshStrategy",
    "FunctionStorage",
    "InitialValueError",
    "InitialValueTimeoutError",
    "KeepFreshError",
    "RefreshStrategy",
    "RefreshFunc",
    "Refreshable",
    "Refresher",
    "Storage",
    "StorageEmptyError",
    "StorageError",
    "default_refresh_at",
    "storage_from_functions",
    "strategy_from_function",
]
