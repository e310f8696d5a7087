"""CLI entrypoints for inspecting persisted values."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from keepfresh.config import configure_structlog, get_settings
from keepfresh.exceptions import StorageError
from keepfresh.redis_storage import RedisStorage, get_redis_storage
from keepfresh.strategy import default_refresh_at
from keepfresh.types import utc_now


async def _run_inspect_stored(storage: RedisStorage) -> int:
    """Print metadata of the stored value and whether startup would trust it."""
    try:
        refreshable = await storage.get(asyncio.Event())
    except StorageError as exc:
        print(json.dumps({"key": storage.key, "error": str(exc)}))
        return 1

    now = utc_now()
    refresh_at = default_refresh_at(refreshable, now=now)
    print(
        json.dumps(
            {
                "key": storage.key,
                "issued_at": refreshable.issued_at.isoformat(),
                "expires_at": refreshable.expires_at.isoformat(),
                "refresh_at": refresh_at.isoformat(),
                "expired": refreshable.is_expired(now),
                "trusted_at_startup": now < refresh_at,
            }
        )
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported commands."""
    parser = argparse.ArgumentParser(prog="python -m keepfresh.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subcommands.add_parser("inspect-stored")
    inspect_parser.add_argument(
        "--key",
        default=None,
        help="Optional override for REDIS__KEY during this run.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_structlog(get_settings())
    if args.command == "inspect-stored":
        return asyncio.run(_run_inspect_stored(get_redis_storage(key=args.key)))
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
