"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .base import CacheStore, stamp_entry
from .factory import CacheStoreError, create_cache_store
from .inmemory import InMemoryCacheStore
from .redis import RedisCacheStore

__all__ = [
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "CacheStoreError",
    "create_cache_store",
    "stamp_entry",
]
