"""Unit tests for the stored-value inspection CLI."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from keepfresh import cli as cli_module
from keepfresh.redis_storage import RedisStorage


class _FakeRedis:
    """Read-only async Redis stub."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values = values or {}

    async def get(self, key: str) -> str | None:
        """Return stored value for key."""
        return self.values.get(key)


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration applied by the CLI."""
    yield
    structlog.reset_defaults()


def _payload(issued_ago_seconds: float, lifetime_seconds: float) -> str:
    """Build a stored JSON payload."""
    issued_at = datetime.now(UTC) - timedelta(seconds=issued_ago_seconds)
    return json.dumps(
        {
            "value": "token",
            "issued_at": issued_at.isoformat(),
            "expires_at": (issued_at + timedelta(seconds=lifetime_seconds)).isoformat(),
        }
    )


def _use_storage(monkeypatch, redis: _FakeRedis) -> list[str | None]:
    """Route the CLI to a RedisStorage backed by the stub."""
    requested_keys: list[str | None] = []

    def fake_get_redis_storage(key: str | None = None) -> RedisStorage:
        requested_keys.append(key)
        return RedisStorage(
            redis_client=redis,  # type: ignore[arg-type]
            key=key or "keepfresh:value",
        )

    monkeypatch.setattr(cli_module, "get_redis_storage", fake_get_redis_storage)
    return requested_keys


def test_inspect_stored_reports_trusted_value(monkeypatch, capsys) -> None:
    """A fresh stored value is reported as trusted at startup."""
    redis = _FakeRedis({"svc:token": _payload(issued_ago_seconds=10, lifetime_seconds=3600)})
    requested_keys = _use_storage(monkeypatch, redis)

    exit_code = cli_module.main(["inspect-stored", "--key", "svc:token"])

    output = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert exit_code == 0
    assert requested_keys == ["svc:token"]
    assert output["key"] == "svc:token"
    assert output["expired"] is False
    assert output["trusted_at_startup"] is True


def test_inspect_stored_reports_value_past_refresh_point(monkeypatch, capsys) -> None:
    """A stored value past two thirds of its lifetime is not trusted."""
    redis = _FakeRedis({"keepfresh:value": _payload(issued_ago_seconds=61, lifetime_seconds=90)})
    _use_storage(monkeypatch, redis)

    exit_code = cli_module.main(["inspect-stored"])

    output = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert exit_code == 0
    assert output["trusted_at_startup"] is False


def test_inspect_stored_missing_value_exits_non_zero(monkeypatch, capsys) -> None:
    """A missing key yields exit code 1 and an error payload."""
    _use_storage(monkeypatch, _FakeRedis())

    exit_code = cli_module.main(["inspect-stored"])

    output = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert exit_code == 1
    assert "No value stored" in output["error"]
