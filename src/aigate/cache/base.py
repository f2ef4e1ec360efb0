"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/base.py.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Protocol

from ..types import CacheEntry


class CacheStore(Protocol):
    """
    Contract shared by every cache backend.

    `get` reports backend trouble as a miss and `set` reports it as `False`;
    neither raises for transient failures.
    """

    backend_id: str

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def get(self, key: str) -> CacheEntry | None: ...

    async def set(
        self, key: str, entry: CacheEntry, *, ttl_s: float | None = None
    ) -> bool: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...


def stamp_entry(
    entry: CacheEntry,
    ttl_s: float | None,
    *,
    now: float | None = None,
) -> CacheEntry:
    """Return `entry` with fresh `stored_at` and an expiry derived from `ttl_s`."""
    stored_at = time.time() if now is None else now
    expires_at = stored_at + ttl_s if ttl_s is not None and ttl_s > 0 else None
    return replace(entry, stored_at=stored_at, expires_at=expires_at)
