"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: coalescing.py.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class RequestCoalescer(Generic[T]):
    """Deduplicate identical in-flight calls by key (single-flight)."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}
        self._lock = asyncio.Lock()

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """
        Run `factory` once per key among concurrent callers.

        Returns the result and whether this caller joined an existing call.
        Every waiter is shielded so that one cancelled waiter, leader or
        follower, does not cancel the shared call.
        """
        async with self._lock:
            task = self._tasks.get(key)
            joined = task is not None
            if task is None:
                task = asyncio.ensure_future(factory())
                self._tasks[key] = task
                task.add_done_callback(lambda done: self._forget(key, done))

        if joined:
            return await asyncio.shield(task), True
        return await asyncio.shield(task), False

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def in_flight(self) -> int:
        return len(self._tasks)
