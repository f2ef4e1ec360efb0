"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: server/rate_limit.py.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class _Window:
    """Data type for one counting window."""

    started_at_s: float
    count: int


class FixedWindowRateLimiter:
    """
    Concurrency-safe fixed-window limiter keyed by caller.

    Each key may make `limit` requests per `window_s` seconds; the gateway
    uses a single global key.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        self.limit = limit
        self.window_s = window_s
        self._clock = clock
        self._rows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, key: str = "") -> float | None:
        """Consume one slot; return `None` if allowed, else seconds to wait."""
        async with self._lock:
            now = self._clock()
            window = self._rows.get(key)
            if window is None or now - window.started_at_s >= self.window_s:
                window = _Window(started_at_s=now, count=0)
                self._rows[key] = window

            if window.count < self.limit:
                window.count += 1
                return None
            return max(0.0, window.started_at_s + self.window_s - now)
