"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers for selecting the cache backend from configuration.
"""

from __future__ import annotations

from typing import Any

from ..config import CacheSettings, env_first
from .base import CacheStore
from .inmemory import InMemoryCacheStore


class CacheStoreError(RuntimeError):
    """Raised when cache backend resolution fails."""


def create_cache_store(
    settings: CacheSettings,
    *,
    redis_client: Any | None = None,
) -> CacheStore:
    """
    Create the cache backend named by `settings.storage`.

    Redis resolution:
    - Uses the provided `redis_client` when supplied.
    - Otherwise `AIGATE_REDIS_URL` when set.
    - Otherwise a URL built from the configured url/hostname/port fields.
    """
    if settings.storage == "memory":
        return InMemoryCacheStore(
            ttl_s=settings.ttl_s,
            sweep_interval_s=settings.sweep_interval,
            max_entries=settings.max_entries,
        )

    if settings.storage == "redis":
        try:
            from .redis import RedisCacheStore
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise CacheStoreError(
                "Redis cache storage requires `redis` to be installed."
            ) from exc

        if redis_client is not None:
            return RedisCacheStore(
                redis_client, ttl_s=settings.ttl_s, prefix=settings.prefix
            )
        url = env_first("AIGATE_REDIS_URL") or settings.redis_url()
        return RedisCacheStore(url=url, ttl_s=settings.ttl_s, prefix=settings.prefix)

    raise CacheStoreError(f"Unknown cache storage '{settings.storage}'")
