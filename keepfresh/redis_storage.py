"""Redis-backed storage for a single refreshable value."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from typing import Any

from redis import asyncio as redis_async
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from keepfresh.config import get_settings
from keepfresh.exceptions import StorageEmptyError, StorageError
from keepfresh.types import Refreshable, utc_now


def _identity(value: Any) -> Any:
    return value


class RedisStorage:
    """Store one Refreshable as JSON under a single Redis key.

    The key expires together with the value it holds, so Redis never hands
    back something past its own expiry.
    """

    def __init__(
        self,
        redis_client: Redis,
        key: str,
        encode: Callable[[Any], Any] | None = None,
        decode: Callable[[Any], Any] | None = None,
        ttl_padding_seconds: int = 0,
    ) -> None:
        self._redis = redis_client
        self._key = key
        self._encode = encode or _identity
        self._decode = decode or _identity
        self._ttl_padding_seconds = ttl_padding_seconds

    @property
    def key(self) -> str:
        """Redis key holding the stored payload."""
        return self._key

    async def get(self, stop_event: asyncio.Event) -> Refreshable[Any]:
        """Load the stored Refreshable and fail when absent or malformed."""
        del stop_event
        try:
            raw_payload = await self._redis.get(self._key)
        except RedisError as exc:
            raise StorageError("Storage backend unavailable.") from exc
        if raw_payload is None:
            raise StorageEmptyError(f"No value stored under '{self._key}'.")
        return self.deserialize(raw_payload)

    async def put(self, stop_event: asyncio.Event, refreshable: Refreshable[Any]) -> None:
        """Store the Refreshable with a TTL matching its remaining lifetime."""
        del stop_event
        payload = self.serialize(refreshable)
        try:
            await self._redis.setex(self._key, self._ttl_seconds(refreshable), payload)
        except RedisError as exc:
            raise StorageError("Storage backend unavailable.") from exc

    def serialize(self, refreshable: Refreshable[Any]) -> str:
        """Encode a Refreshable as a JSON document."""
        try:
            return json.dumps(
                {
                    "value": self._encode(refreshable.value),
                    "issued_at": refreshable.issued_at.isoformat(),
                    "expires_at": refreshable.expires_at.isoformat(),
                }
            )
        except (TypeError, ValueError) as exc:
            raise StorageError("Value is not JSON serializable.") from exc

    def deserialize(self, raw_payload: str | bytes) -> Refreshable[Any]:
        """Decode a JSON document produced by serialize()."""
        try:
            payload = json.loads(raw_payload)
            return Refreshable(
                value=self._decode(payload["value"]),
                issued_at=datetime.fromisoformat(payload["issued_at"]),
                expires_at=datetime.fromisoformat(payload["expires_at"]),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StorageError("Stored payload is malformed.") from exc

    def _ttl_seconds(self, refreshable: Refreshable[Any]) -> int:
        """Compute the key TTL from the value's remaining lifetime."""
        remaining = int((refreshable.expires_at - utc_now()).total_seconds())
        return max(remaining, 1) + self._ttl_padding_seconds


@lru_cache
def get_redis_client() -> Redis:
    """Create and cache the Redis client used for value storage."""
    settings = get_settings()
    return redis_async.from_url(settings.redis.url, decode_responses=True)


def get_redis_storage(key: str | None = None) -> RedisStorage:
    """Build a RedisStorage for the configured (or given) key."""
    settings = get_settings()
    return RedisStorage(redis_client=get_redis_client(), key=key or settings.redis.key)
