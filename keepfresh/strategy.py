"""Refresh strategy abstraction and the default two-thirds-lifetime policy."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from keepfresh.types import Clock, Refreshable, utc_now

RefreshAtFunc = Callable[[Refreshable[Any]], datetime]


class RefreshStrategy(Protocol):
    """Decide when a value should next be refreshed.

    Implementations must be total: any problem with the input is handled
    internally and a valid instant (falling back to now) is returned.
    """

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime: ...


class FunctionRefreshStrategy:
    """Refresh strategy backed by a plain function."""

    def __init__(self, refresh_at_func: RefreshAtFunc) -> None:
        self._refresh_at_func = refresh_at_func

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Delegate to the wrapped function."""
        return self._refresh_at_func(refreshable)


def strategy_from_function(refresh_at_func: RefreshAtFunc) -> RefreshStrategy:
    """Build a refresh strategy from a function."""
    return FunctionRefreshStrategy(refresh_at_func)


def refresh_at_lifetime_fraction(
    refreshable: Refreshable[Any],
    fraction: float,
    now: datetime,
) -> datetime:
    """Return the instant at which `fraction` of the lifetime has elapsed, floored at now."""
    if now > refreshable.expires_at or refreshable.expires_at <= refreshable.issued_at:
        return now

    desired_elapsed = refreshable.lifetime * fraction
    if now - refreshable.issued_at > desired_elapsed:
        return now
    return refreshable.issued_at + desired_elapsed


def default_refresh_at(refreshable: Refreshable[Any], now: datetime | None = None) -> datetime:
    """Refresh at two thirds of the lifetime, or now when already past that point."""
    return refresh_at_lifetime_fraction(refreshable, 2 / 3, now or utc_now())


class DefaultRefreshStrategy:
    """Two-thirds-lifetime policy with an injectable clock."""

    def __init__(self, now: Clock | None = None) -> None:
        self._now = now or utc_now

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Return the two-thirds-lifetime instant, floored at now."""
        return default_refresh_at(refreshable, now=self._now())


DEFAULT_REFRESH_STRATEGY: RefreshStrategy = DefaultRefreshStrategy()
