"""
Caching package.

Read-through caching over a persistent key-value store: TTL checked lazily
on read, single-flight fetches per key, explicit invalidation by key or by
scope (all of one user's entries).
"""

from .cache_manager import CacheManager
from .entry import CacheEntry
from .keys import CacheExpiry, CacheKey, composite_key
from .stores import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore, create_store

__all__ = [
    "CacheManager",
    "CacheEntry",
    "CacheExpiry",
    "CacheKey",
    "composite_key",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "create_store",
]
