"""Unit tests for alternative refresh strategies."""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest

from keepfresh.strategies import (
    NEVER,
    RandomWithinLifetimeWindow,
    Scheduled,
    StaticLifetimeLeft,
    StaticLifetimeSpent,
    StaticTime,
)
from keepfresh.types import Refreshable

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _refreshable(lifetime_seconds: float = 100) -> Refreshable[str]:
    """Build a refreshable issued at T0."""
    return Refreshable(
        value="token",
        issued_at=T0,
        expires_at=T0 + timedelta(seconds=lifetime_seconds),
    )


def _clock(now: datetime):
    """Return a fixed clock."""
    return lambda: now


def test_random_window_stays_within_window() -> None:
    """Random refresh instants fall inside the configured lifetime window."""
    strategy = RandomWithinLifetimeWindow(0.5, 0.75, rng=random.Random(7), now=_clock(T0))

    for _ in range(200):
        refresh_at = strategy.get_refresh_at(_refreshable())
        assert T0 + timedelta(seconds=50) <= refresh_at <= T0 + timedelta(seconds=75)


def test_random_window_clamps_fractions() -> None:
    """Fractions are clamped to [0.01, 0.99] and min is lowered to max."""
    clamped = RandomWithinLifetimeWindow(-1.0, 5.0)
    inverted = RandomWithinLifetimeWindow(0.9, 0.2)

    assert clamped.min_fraction == 0.01
    assert clamped.max_fraction == 0.99
    assert inverted.min_fraction == inverted.max_fraction == 0.2


def test_random_window_past_window_refreshes_now() -> None:
    """Once the sampled point has passed, the refresh is due now."""
    now = T0 + timedelta(seconds=80)
    strategy = RandomWithinLifetimeWindow(0.5, 0.75, now=_clock(now))

    assert strategy.get_refresh_at(_refreshable()) == now


def test_static_lifetime_left_before_expiry() -> None:
    """Refresh happens a fixed duration before expiry."""
    strategy = StaticLifetimeLeft(timedelta(seconds=30), now=_clock(T0))

    assert strategy.get_refresh_at(_refreshable()) == T0 + timedelta(seconds=70)


def test_static_lifetime_spent_after_issuance() -> None:
    """Refresh happens a fixed duration after issuance."""
    strategy = StaticLifetimeSpent(timedelta(seconds=30), now=_clock(T0))

    assert strategy.get_refresh_at(_refreshable()) == T0 + timedelta(seconds=30)


@pytest.mark.parametrize(
    "strategy_factory",
    [
        lambda now: RandomWithinLifetimeWindow(0.1, 0.9, now=_clock(now)),
        lambda now: StaticLifetimeLeft(timedelta(seconds=30), now=_clock(now)),
        lambda now: StaticLifetimeSpent(timedelta(seconds=30), now=_clock(now)),
        lambda now: StaticLifetimeLeft(timedelta(seconds=-30), now=_clock(now)),
    ],
)
def test_lifetime_strategies_refresh_now_when_expired(strategy_factory) -> None:
    """Lifetime-based strategies never schedule past now for expired values."""
    now = T0 + timedelta(seconds=500)

    assert strategy_factory(now).get_refresh_at(_refreshable()) <= now


def test_static_time_ignores_value_metadata() -> None:
    """StaticTime always returns its configured instant."""
    instant = T0 + timedelta(days=3)
    strategy = StaticTime(instant)

    assert strategy.get_refresh_at(_refreshable(1)) == instant
    assert strategy.get_refresh_at(_refreshable(10_000)) == instant


def test_scheduled_returns_earliest_future_instant() -> None:
    """Scheduled picks the earliest instant still in the future."""
    now = T0 + timedelta(minutes=30)
    strategy = Scheduled(
        T0 + timedelta(hours=2),
        T0,
        T0 + timedelta(hours=1),
        now=_clock(now),
    )

    assert strategy.get_refresh_at(_refreshable()) == T0 + timedelta(hours=1)


def test_scheduled_exhausted_returns_never() -> None:
    """An exhausted schedule returns the maximum representable instant."""
    strategy = Scheduled(T0, T0 + timedelta(hours=1), now=_clock(T0 + timedelta(days=1)))

    assert strategy.get_refresh_at(_refreshable()) == NEVER
    assert Scheduled(now=_clock(T0)).get_refresh_at(_refreshable()) == NEVER
