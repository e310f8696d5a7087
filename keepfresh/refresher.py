"""Background refresher keeping one expiring value fresh."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic

import structlog

from keepfresh.config import RefresherSettings, get_settings
from keepfresh.exceptions import (
    InitialValueError,
    InitialValueTimeoutError,
    KeepFreshError,
    StorageEmptyError,
)
from keepfresh.storage import Storage
from keepfresh.strategy import DEFAULT_REFRESH_STRATEGY, DefaultRefreshStrategy, RefreshStrategy
from keepfresh.types import (
    Clock,
    ErrorCallback,
    Refreshable,
    RefreshFunc,
    T,
    ValueCallback,
    as_utc,
    utc_clock,
    utc_now,
)

logger = structlog.get_logger(__name__)

DEFAULT_RETRY_DELAY = timedelta(minutes=15)
DEFAULT_INITIAL_WAIT_TIMEOUT = timedelta(seconds=30)
_MAX_WAIT_SECONDS = 3600.0


@dataclass(frozen=True)
class _State(Generic[T]):
    """Snapshot of the current value and its scheduled refresh instant."""

    current: Refreshable[T] | None
    refresh_at: datetime


def _as_timedelta(value: timedelta | float) -> timedelta:
    """Normalize seconds or timedelta into a timedelta."""
    return value if isinstance(value, timedelta) else timedelta(seconds=value)


def _callback_name(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__qualname__", repr(callback))


class Refresher(Generic[T]):
    """Keep an expiring value fresh from a single background task.

    The task starts on construction, so a Refresher must be created while an
    event loop is running. Readers call get_current() at any time; only the
    background task replaces the value.
    """

    def __init__(
        self,
        refresh_func: RefreshFunc[T],
        *,
        retry_delay: timedelta | float = DEFAULT_RETRY_DELAY,
        initial_wait_timeout: timedelta | float = DEFAULT_INITIAL_WAIT_TIMEOUT,
        refresh_strategy: RefreshStrategy | None = None,
        storage: Storage | None = None,
        on_refresh_success: ValueCallback | None = None,
        on_refresh_failure: ErrorCallback | None = None,
        on_storage_read_success: ValueCallback | None = None,
        on_storage_read_failure: ErrorCallback | None = None,
        on_storage_write_success: ValueCallback | None = None,
        on_storage_write_failure: ErrorCallback | None = None,
        now: Clock | None = None,
        name: str = "refresher",
    ) -> None:
        """Create the refresher and start its background task."""
        self._loop = asyncio.get_running_loop()
        self._refresh_func = refresh_func
        self._retry_delay = _as_timedelta(retry_delay)
        self._initial_wait_timeout = _as_timedelta(initial_wait_timeout)
        if now is None:
            self._now = utc_now
            self._refresh_strategy = refresh_strategy or DEFAULT_REFRESH_STRATEGY
        else:
            self._now = utc_clock(now)
            self._refresh_strategy = refresh_strategy or DefaultRefreshStrategy(now=self._now)
        self._storage = storage
        self._on_refresh_success = on_refresh_success
        self._on_refresh_failure = on_refresh_failure
        self._on_storage_read_success = on_storage_read_success
        self._on_storage_read_failure = on_storage_read_failure
        self._on_storage_write_success = on_storage_write_success
        self._on_storage_write_failure = on_storage_write_failure
        self._name = name

        self._state: _State[T] = _State(current=None, refresh_at=self._now())
        self._stop_event = asyncio.Event()
        # Resolves exactly once with the first acquisition error, or None on success.
        self._initialized: asyncio.Future[BaseException | None] = self._loop.create_future()
        self._callback_tasks: set[asyncio.Future[Any]] = set()
        self._task = self._loop.create_task(self._run(), name=f"keepfresh:{name}")

    @classmethod
    def from_settings(
        cls,
        refresh_func: RefreshFunc[T],
        settings: RefresherSettings | None = None,
        **options: Any,
    ) -> Refresher[T]:
        """Create a refresher whose retry delay and initial wait come from configuration."""
        resolved = settings or get_settings().refresher
        options.setdefault("retry_delay", resolved.retry_delay)
        options.setdefault("initial_wait_timeout", resolved.initial_wait_timeout)
        return cls(refresh_func, **options)

    @property
    def name(self) -> str:
        """Name used in logs and the background task name."""
        return self._name

    @property
    def retry_delay(self) -> timedelta:
        """Delay before retrying after a failed refresh."""
        return self._retry_delay

    @property
    def initial_wait_timeout(self) -> timedelta:
        """Timeout used by wait_for_initial_value() when none is given."""
        return self._initial_wait_timeout

    @property
    def stopped(self) -> bool:
        """True once stop() was requested."""
        return self._stop_event.is_set()

    @property
    def initialized(self) -> bool:
        """True once a value is present."""
        return self._state.current is not None

    async def wait_for_initial_value(self, timeout: timedelta | float | None = None) -> None:
        """Return once an initial value is present, or raise on timeout or failure.

        Without a timeout the refresher's configured initial wait timeout applies.
        """
        if self._state.current is not None:
            return

        timeout = self._initial_wait_timeout if timeout is None else _as_timedelta(timeout)
        if self._initialized.done():
            error = self._initialized.result()
        else:
            try:
                error = await asyncio.wait_for(
                    asyncio.shield(self._initialized),
                    timeout=max(timeout.total_seconds(), 0.0),
                )
            except TimeoutError as exc:
                raise InitialValueTimeoutError(timeout) from exc
        if error is not None:
            raise InitialValueError(error) from error

    def get_current(self) -> Refreshable[T] | None:
        """Return the current value, or None before the first acquisition."""
        return self._state.current

    def get_next_refresh_time(self) -> datetime:
        """Return the instant the strategy scheduled for the next refresh."""
        return self._state.refresh_at

    def stop(self) -> None:
        """Request the background task to exit without waiting for it."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        logger.info("refresher_stop_requested", refresher=self._name)

    async def aclose(self) -> None:
        """Stop the background task and wait for it to exit."""
        self.stop()
        await asyncio.wait({self._task})

    async def __aenter__(self) -> Refresher[T]:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """Exit async context manager and stop the background task."""
        del exc_type, exc, tb
        await self.aclose()

    async def _run(self) -> None:
        """Initialize once, then refresh on schedule until stopped."""
        try:
            wake_at = await self._initialize()
            while await self._sleep_until(wake_at):
                next_wake_at = await self._refresh()
                if next_wake_at is None:
                    break
                wake_at = next_wake_at
        except Exception as exc:
            logger.exception("refresher_crashed", refresher=self._name, error=str(exc))
            if not self._initialized.done():
                self._initialized.set_result(exc)
        finally:
            if not self._initialized.done():
                self._initialized.set_result(
                    KeepFreshError("Refresher stopped before acquiring an initial value.")
                )
            logger.info("refresher_stopped", refresher=self._name)

    async def _initialize(self) -> datetime:
        """Acquire the first value and publish the outcome exactly once."""
        if self._storage is not None and await self._load_from_storage(self._storage):
            self._initialized.set_result(None)
            return self._state.refresh_at

        try:
            refreshable = await self._refresh_func(self._stop_event)
        except Exception as exc:
            retry_at = self._now() + self._retry_delay
            logger.warning(
                "initial_refresh_failed",
                refresher=self._name,
                error=str(exc),
                retry_at=retry_at.isoformat(),
            )
            self._initialized.set_result(exc)
            return retry_at

        self._adopt(refreshable)
        self._initialized.set_result(None)
        logger.info(
            "refresher_initialized",
            refresher=self._name,
            source="refresh",
            expires_at=refreshable.expires_at.isoformat(),
            refresh_at=self._state.refresh_at.isoformat(),
        )
        await self._after_refresh_success(refreshable)
        return self._state.refresh_at

    async def _load_from_storage(self, storage: Storage) -> bool:
        """Adopt a stored value when it is not yet due for refresh."""
        try:
            refreshable = await storage.get(self._stop_event)
            if refreshable is None:
                raise StorageEmptyError("Storage holds no value.")
        except Exception as exc:
            logger.warning("storage_read_failed", refresher=self._name, error=str(exc))
            self._notify(self._on_storage_read_failure, exc)
            return False

        self._notify(self._on_storage_read_success, refreshable)
        refresh_at = self._compute_refresh_at(refreshable)
        if self._now() >= refresh_at:
            logger.info(
                "stored_value_discarded",
                refresher=self._name,
                expires_at=refreshable.expires_at.isoformat(),
                refresh_at=refresh_at.isoformat(),
            )
            return False

        self._state = _State(current=refreshable, refresh_at=refresh_at)
        logger.info(
            "refresher_initialized",
            refresher=self._name,
            source="storage",
            expires_at=refreshable.expires_at.isoformat(),
            refresh_at=refresh_at.isoformat(),
        )
        return True

    async def _sleep_until(self, wake_at: datetime) -> bool:
        """Wait until wake_at; return False when stopped first."""
        while not self._stop_event.is_set():
            delay = (wake_at - self._now()).total_seconds()
            if delay <= 0:
                # Yield at least once per due refresh.
                await asyncio.sleep(0)
                return not self._stop_event.is_set()
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=min(delay, _MAX_WAIT_SECONDS),
                )
            except TimeoutError:
                continue
        return False

    async def _refresh(self) -> datetime | None:
        """Run one steady-state refresh and return the next wake-up instant.

        Returns None when the refresher was stopped while the refresh ran.
        """
        try:
            refreshable = await self._refresh_func(self._stop_event)
        except Exception as exc:
            if self._stop_event.is_set():
                return None
            retry_at = self._now() + self._retry_delay
            logger.warning(
                "refresh_failed",
                refresher=self._name,
                error=str(exc),
                retry_at=retry_at.isoformat(),
            )
            self._notify(self._on_refresh_failure, exc)
            return retry_at

        if self._stop_event.is_set():
            logger.info("refresh_result_dropped", refresher=self._name)
            return None

        self._adopt(refreshable)
        logger.info(
            "refresh_succeeded",
            refresher=self._name,
            expires_at=refreshable.expires_at.isoformat(),
            refresh_at=self._state.refresh_at.isoformat(),
        )
        await self._after_refresh_success(refreshable)
        return self._state.refresh_at

    def _adopt(self, refreshable: Refreshable[T]) -> None:
        """Replace the current value and its schedule in one assignment."""
        self._state = _State(
            current=refreshable,
            refresh_at=self._compute_refresh_at(refreshable),
        )

    async def _after_refresh_success(self, refreshable: Refreshable[T]) -> None:
        """Notify success and persist the new value when storage is configured."""
        self._notify(self._on_refresh_success, refreshable)
        if self._storage is None:
            return
        try:
            await self._storage.put(self._stop_event, refreshable)
        except Exception as exc:
            logger.warning("storage_write_failed", refresher=self._name, error=str(exc))
            self._notify(self._on_storage_write_failure, exc)
            return
        self._notify(self._on_storage_write_success, refreshable)

    def _compute_refresh_at(self, refreshable: Refreshable[T]) -> datetime:
        """Ask the strategy for the next refresh instant, falling back to now."""
        try:
            return as_utc(self._refresh_strategy.get_refresh_at(refreshable))
        except Exception as exc:
            logger.error("refresh_strategy_failed", refresher=self._name, error=str(exc))
            return self._now()

    def _notify(self, callback: Callable[[Any], Any] | None, argument: Any) -> None:
        """Schedule a fire-and-forget callback outside the refresh loop."""
        if callback is None:
            return
        self._loop.call_soon(self._invoke_callback, callback, argument)

    def _invoke_callback(self, callback: Callable[[Any], Any], argument: Any) -> None:
        try:
            result = callback(argument)
        except Exception as exc:
            logger.error(
                "refresher_callback_failed",
                refresher=self._name,
                callback=_callback_name(callback),
                error=str(exc),
            )
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Future[Any]) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("refresher_callback_failed", refresher=self._name, error=str(exc))
