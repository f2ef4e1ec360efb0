"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Redis-backed cache backend for multi-process deployments.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
from typing import Any

from redis.exceptions import RedisError

from ..types import CacheEntry
from .base import CacheStore, stamp_entry

logger = logging.getLogger("aigate.cache.redis")

_BACKEND_ERRORS = (RedisError, OSError, TimeoutError)


class RedisCacheStore(CacheStore):
    """
    Cache backend delegating expiry to Redis per-key TTLs.

    The client is created on first use from `url` unless one is injected, and
    reused afterwards. Every get/set is a single round trip. Rows are stored as
    JSON with the body base64-encoded so binary payloads survive unchanged.

    Args:
        redis_client: Optional ``redis.asyncio.Redis`` instance.
        url: Connection URL used when no client is injected.
        ttl_s: Default time-to-live; `None` or `0` keeps entries forever.
        prefix: Key prefix for namespacing.
    """

    backend_id = "redis"

    def __init__(
        self,
        redis_client: Any | None = None,
        *,
        url: str | None = None,
        ttl_s: float | None = None,
        prefix: str = "aigate:cache:",
    ) -> None:
        if redis_client is None and not url:
            raise ValueError("RedisCacheStore needs either a client or a url")
        self._redis = redis_client
        self._owns_client = redis_client is None
        self._url = url
        self.ttl_s = ttl_s if ttl_s and ttl_s > 0 else None
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _client(self) -> Any:
        if self._redis is None:
            import redis.asyncio as redis

            self._redis = redis.Redis.from_url(self._url)
        return self._redis

    async def start(self) -> None:
        """Connections are opened lazily on the first command."""

    async def stop(self) -> None:
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None

    def _serialize(self, entry: CacheEntry) -> str:
        return json.dumps(
            {
                "body": base64.b64encode(entry.value).decode("ascii"),
                "content_type": entry.content_type,
                "stored_at": entry.stored_at,
                "expires_at": entry.expires_at,
            },
            ensure_ascii=True,
        )

    def _deserialize(self, raw: str | bytes) -> CacheEntry:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        row = json.loads(raw)
        if not isinstance(row, dict) or not isinstance(row.get("body"), str):
            raise ValueError("cached row is not an entry object")
        return CacheEntry(
            value=base64.b64decode(row["body"], validate=True),
            content_type=str(row.get("content_type") or "application/json"),
            stored_at=float(row.get("stored_at") or 0.0),
            expires_at=(
                float(row["expires_at"]) if row.get("expires_at") is not None else None
            ),
        )

    async def get(self, key: str) -> CacheEntry | None:
        try:
            blob = await self._client().get(self._key(key))
        except _BACKEND_ERRORS as exc:
            logger.warning("cache get failed, treating as miss: %s", exc)
            return None
        if blob is None:
            return None
        try:
            entry = self._deserialize(blob)
        except (ValueError, binascii.Error, UnicodeDecodeError) as exc:
            logger.warning("discarding malformed cache row for %s: %s", key, exc)
            return None
        if entry.is_expired():
            return None
        return entry

    async def set(
        self, key: str, entry: CacheEntry, *, ttl_s: float | None = None
    ) -> bool:
        effective_ttl = ttl_s if ttl_s is not None else self.ttl_s
        row = stamp_entry(entry, effective_ttl)
        kwargs: dict[str, Any] = {}
        if row.expires_at is not None and effective_ttl:
            kwargs["px"] = max(1, math.ceil(effective_ttl * 1000))
        try:
            await self._client().set(self._key(key), self._serialize(row), **kwargs)
        except _BACKEND_ERRORS as exc:
            logger.warning("cache set failed, write skipped: %s", exc)
            return False
        return True

    async def delete(self, key: str) -> None:
        try:
            await self._client().delete(self._key(key))
        except _BACKEND_ERRORS as exc:
            logger.warning("cache delete failed: %s", exc)

    async def clear(self) -> None:
        """Delete every key under this store's prefix."""
        client = self._client()
        try:
            batch: list[Any] = []
            async for name in client.scan_iter(match=f"{self._prefix}*"):
                batch.append(name)
                if len(batch) >= 500:
                    await client.delete(*batch)
                    batch = []
            if batch:
                await client.delete(*batch)
        except _BACKEND_ERRORS as exc:
            logger.warning("cache clear failed: %s", exc)
