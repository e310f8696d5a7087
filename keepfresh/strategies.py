"""Alternative refresh strategies.

All strategies are pure time arithmetic over a Refreshable and hold no state
beyond their configuration.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta
from typing import Any

from keepfresh.strategy import refresh_at_lifetime_fraction
from keepfresh.types import Clock, Refreshable, as_utc, utc_now

NEVER = datetime.max.replace(tzinfo=UTC)

_MIN_FRACTION = 0.01
_MAX_FRACTION = 0.99


def _clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into the closed interval [lower, upper]."""
    return max(lower, min(upper, value))


class RandomWithinLifetimeWindow:
    """Refresh at a uniformly random point of a lifetime window.

    With ``min_fraction=0.50`` and ``max_fraction=0.75`` the refresh time lands
    somewhere between 50% and 75% of the value's lifetime. The jitter spreads
    refreshes of many refreshers issued at the same time.

    Fractions are clamped to [0.01, 0.99] and ``min_fraction`` is lowered to
    ``max_fraction`` when it exceeds it.
    """

    def __init__(
        self,
        min_fraction: float,
        max_fraction: float,
        rng: random.Random | None = None,
        now: Clock | None = None,
    ) -> None:
        self.min_fraction = _clamp(min_fraction, _MIN_FRACTION, _MAX_FRACTION)
        self.max_fraction = _clamp(max_fraction, _MIN_FRACTION, _MAX_FRACTION)
        if self.min_fraction > self.max_fraction:
            self.min_fraction = self.max_fraction
        self._rng = rng or random.Random()
        self._now = now or utc_now

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Return a random instant inside the configured lifetime window."""
        fraction = self._rng.uniform(self.min_fraction, self.max_fraction)
        return refresh_at_lifetime_fraction(refreshable, fraction, self._now())


class StaticLifetimeLeft:
    """Refresh a fixed duration before expiry."""

    def __init__(self, lifetime_left: timedelta, now: Clock | None = None) -> None:
        self.lifetime_left = lifetime_left
        self._now = now or utc_now

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Return expires_at minus the configured duration, floored at now."""
        now = self._now()
        refresh_at = refreshable.expires_at - self.lifetime_left
        return refresh_at if now < refresh_at else now


class StaticLifetimeSpent:
    """Refresh a fixed duration after issuance."""

    def __init__(self, lifetime_spent: timedelta, now: Clock | None = None) -> None:
        self.lifetime_spent = lifetime_spent
        self._now = now or utc_now

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Return issued_at plus the configured duration, floored at now."""
        now = self._now()
        refresh_at = refreshable.issued_at + self.lifetime_spent
        return refresh_at if now < refresh_at else now


class StaticTime:
    """Always refresh at one fixed instant."""

    def __init__(self, instant: datetime) -> None:
        self.instant = as_utc(instant)

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Return the configured instant regardless of the value."""
        del refreshable
        return self.instant


class Scheduled:
    """Refresh at the earliest future instant of a fixed schedule."""

    def __init__(self, *instants: datetime, now: Clock | None = None) -> None:
        self.instants = sorted(as_utc(instant) for instant in instants)
        self._now = now or utc_now

    def get_refresh_at(self, refreshable: Refreshable[Any]) -> datetime:
        """Return the next scheduled instant, or NEVER once the schedule is exhausted."""
        del refreshable
        now = self._now()
        for instant in self.instants:
            if instant > now:
                return instant
        return NEVER
