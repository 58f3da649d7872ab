"""Single-flight helper for overlapping async loads."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

T = TypeVar("T")


class SingleFlight:
    """Callers asking for a key that is already loading await the same task."""

    def __init__(self) -> None:
        self._in_flight: dict[Hashable, asyncio.Task[Any]] = {}

    def is_loading(self, key: Hashable) -> bool:
        return key in self._in_flight

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._in_flight[key] = task
            task.add_done_callback(lambda _done, key=key: self._in_flight.pop(key, None))
        # shield: one caller being cancelled must not cancel the shared load
        return await asyncio.shield(task)
