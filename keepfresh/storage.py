"""Storage abstraction for persisting a value across restarts."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from keepfresh.types import Refreshable

StorageGetFunc = Callable[[asyncio.Event], Awaitable[Refreshable[Any] | None]]
StoragePutFunc = Callable[[asyncio.Event, Refreshable[Any]], Awaitable[None]]


class Storage(Protocol):
    """Persist and retrieve a Refreshable.

    Both operations may fail; callers never assume they succeed. The stop
    event is set when the owning refresher is stopped.
    """

    async def get(self, stop_event: asyncio.Event) -> Refreshable[Any] | None: ...

    async def put(self, stop_event: asyncio.Event, refreshable: Refreshable[Any]) -> None: ...


class FunctionStorage:
    """Storage backed by a pair of async functions."""

    def __init__(self, get_func: StorageGetFunc, put_func: StoragePutFunc) -> None:
        self._get_func = get_func
        self._put_func = put_func

    async def get(self, stop_event: asyncio.Event) -> Refreshable[Any] | None:
        """Retrieve a Refreshable with the wrapped get function."""
        return await self._get_func(stop_event)

    async def put(self, stop_event: asyncio.Event, refreshable: Refreshable[Any]) -> None:
        """Store a Refreshable with the wrapped put function."""
        await self._put_func(stop_event, refreshable)


def storage_from_functions(get_func: StorageGetFunc, put_func: StoragePutFunc) -> Storage:
    """Build a storage from get and put functions."""
    return FunctionStorage(get_func=get_func, put_func=put_func)
