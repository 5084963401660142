"""
Persistent key-value stores backing the cache manager.

Stores deal in raw string blobs and raise ``CacheStoreError`` on failure;
the cache manager decides what a failure means.
"""

import asyncio
from typing import Dict, List, Optional, Protocol

import redis.asyncio as redis

from shared.config import BaseConfig
from shared.errors import CacheStoreError
from shared.logging import get_logger


class KeyValueStore(Protocol):
    """Async string key-value store."""

    async def read(self, key: str) -> Optional[str]:
        ...

    async def write(self, key: str, blob: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def list_keys(self) -> List[str]:
        ...

    async def close(self) -> None:
        ...


class RedisKeyValueStore:
    """Redis-backed store; every key lives under ``{namespace}:``."""

    def __init__(self, redis_url: str, namespace: str = "eiga"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("rooms.cache.redis")
        self._redis: Optional[redis.Redis] = None

    def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._redis

    def _prefixed(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def read(self, key: str) -> Optional[str]:
        try:
            return await self._get_redis().get(self._prefixed(key))
        except redis.RedisError as e:
            raise CacheStoreError("read", str(e), {"key": key}) from e

    async def write(self, key: str, blob: str) -> None:
        try:
            await self._get_redis().set(self._prefixed(key), blob)
        except redis.RedisError as e:
            raise CacheStoreError("write", str(e), {"key": key}) from e

    async def remove(self, key: str) -> None:
        try:
            await self._get_redis().delete(self._prefixed(key))
        except redis.RedisError as e:
            raise CacheStoreError("remove", str(e), {"key": key}) from e

    async def list_keys(self) -> List[str]:
        prefix = self._prefixed("")
        try:
            keys = [key async for key in self._get_redis().scan_iter(match=f"{prefix}*")]
        except redis.RedisError as e:
            raise CacheStoreError("list_keys", str(e)) from e
        return [key[len(prefix):] for key in keys]

    async def ping(self) -> bool:
        try:
            return bool(await self._get_redis().ping())
        except redis.RedisError as e:
            raise CacheStoreError("ping", str(e)) from e

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis store closed")


class InMemoryKeyValueStore:
    """Process-local store for local runs and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def read(self, key: str) -> Optional[str]:
        await asyncio.sleep(0)
        return self._data.get(key)

    async def write(self, key: str, blob: str) -> None:
        await asyncio.sleep(0)
        self._data[key] = blob

    async def remove(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    async def list_keys(self) -> List[str]:
        await asyncio.sleep(0)
        return list(self._data.keys())

    async def close(self) -> None:
        return None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def create_store(config: BaseConfig) -> KeyValueStore:
    """Build the store selected by ``cache_backend``."""
    if config.cache_backend == "memory":
        return InMemoryKeyValueStore()
    return RedisKeyValueStore(config.redis_url, namespace=config.cache_namespace)
