"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/inmemory.py.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time

from ..types import CacheEntry
from .base import CacheStore, stamp_entry

logger = logging.getLogger("aigate.cache.memory")


class _Bucket:
    """One lock-guarded shard of the key space."""

    __slots__ = ("lock", "rows")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.rows: dict[str, CacheEntry] = {}


class InMemoryCacheStore(CacheStore):
    """
    Process-local cache backend.

    Keys are sharded over `buckets` dicts, each with its own lock, so a write
    only contends with reads of the same shard. Expiry is checked lazily on
    `get` and eagerly by a sweep task started with `start()`.

    Args:
        ttl_s: Default time-to-live; `None` or `0` keeps entries forever.
        sweep_interval_s: Seconds between background sweeps.
        buckets: Number of shards.
        max_entries: Optional approximate size bound; each shard holds at most
            `max_entries // buckets` rows (minimum 1) and evicts its oldest row.
    """

    backend_id = "memory"

    def __init__(
        self,
        *,
        ttl_s: float | None = None,
        sweep_interval_s: float = 10.0,
        buckets: int = 16,
        max_entries: int | None = None,
    ) -> None:
        if buckets < 1:
            raise ValueError("buckets must be >= 1")
        self.ttl_s = ttl_s if ttl_s and ttl_s > 0 else None
        self.sweep_interval_s = sweep_interval_s
        self._buckets = [_Bucket() for _ in range(buckets)]
        self._bucket_cap = (
            max(1, max_entries // buckets) if max_entries is not None else None
        )
        self._sweeper: asyncio.Task[None] | None = None

    def _bucket(self, key: str) -> _Bucket:
        return self._buckets[hash(key) % len(self._buckets)]

    async def start(self) -> None:
        """Start the periodic sweep; rows may carry their own TTL, so it always runs."""
        if self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(
            self._sweep_loop(), name="aigate-cache-sweep"
        )

    async def stop(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def get(self, key: str) -> CacheEntry | None:
        bucket = self._bucket(key)
        with bucket.lock:
            row = bucket.rows.get(key)
            if row is None:
                return None
            if row.is_expired():
                bucket.rows.pop(key, None)
                return None
            return row

    async def set(
        self, key: str, entry: CacheEntry, *, ttl_s: float | None = None
    ) -> bool:
        row = stamp_entry(entry, ttl_s if ttl_s is not None else self.ttl_s)
        bucket = self._bucket(key)
        with bucket.lock:
            bucket.rows.pop(key, None)
            if self._bucket_cap is not None and len(bucket.rows) >= self._bucket_cap:
                oldest = min(bucket.rows, key=lambda k: bucket.rows[k].stored_at)
                bucket.rows.pop(oldest, None)
            bucket.rows[key] = row
        return True

    async def delete(self, key: str) -> None:
        bucket = self._bucket(key)
        with bucket.lock:
            bucket.rows.pop(key, None)

    async def clear(self) -> None:
        for bucket in self._buckets:
            with bucket.lock:
                bucket.rows.clear()

    def __len__(self) -> int:
        total = 0
        for bucket in self._buckets:
            with bucket.lock:
                total += len(bucket.rows)
        return total

    def sweep_bucket(self, index: int, *, now: float | None = None) -> int:
        """Evict expired rows from one shard and return how many were removed."""
        bucket = self._buckets[index]
        current = time.time() if now is None else now
        with bucket.lock:
            expired = [k for k, row in bucket.rows.items() if row.is_expired(current)]
            for key in expired:
                del bucket.rows[key]
        return len(expired)

    def sweep(self, *, now: float | None = None) -> int:
        """Evict expired rows from every shard, one lock at a time."""
        return sum(
            self.sweep_bucket(index, now=now) for index in range(len(self._buckets))
        )

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_s)
            removed = 0
            for index in range(len(self._buckets)):
                removed += self.sweep_bucket(index)
                # Yield between shards so request handlers interleave.
                await asyncio.sleep(0)
            if removed:
                logger.debug("cache sweep evicted %d expired entries", removed)
