"""Artifact cache adapters implementing CachePort.

Redis when ``REDIS_URL`` is configured, otherwise an in-process store
with the same TTL semantics.
"""

from __future__ import annotations

import time

import redis.asyncio as redis
import structlog

from pedagogy_master.ports.outbound import CachePort

logger = structlog.get_logger(__name__)


class MemoryCacheAdapter(CachePort):
    """In-memory cache used when Redis is not configured."""

    def __init__(self, *, clock=time.time) -> None:
        self._data: dict[str, str] = {}
        self._expiry: dict[str, float] = {}
        self._clock = clock
        logger.info("cache_initialized_memory_fallback")

    async def get(self, key: str) -> str | None:
        if key in self._expiry and self._expiry[key] < self._clock():
            self._data.pop(key, None)
            del self._expiry[key]
            return None
        return self._data.get(key)

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        self._data[key] = value
        if ttl_seconds:
            self._expiry[key] = self._clock() + ttl_seconds
        else:
            self._expiry.pop(key, None)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self._expiry.pop(key, None)

    async def close(self) -> None:
        self._data.clear()
        self._expiry.clear()

    async def health_check(self) -> bool:
        return True


class RedisCacheAdapter(CachePort):
    """Async Redis adapter for SLO artifact caching.

    Redis errors are logged and treated as cache misses; generation
    proceeds without the cache.
    """

    def __init__(self, url: str, max_connections: int = 50) -> None:
        self._pool = redis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        self._client = redis.Redis(connection_pool=self._pool)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except redis.RedisError as exc:
            logger.error("redis_get_error", key=key, error=str(exc))
            return None

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        try:
            if ttl_seconds:
                await self._client.setex(key, ttl_seconds, value)
            else:
                await self._client.set(key, value)
        except redis.RedisError as exc:
            logger.error("redis_set_error", key=key, error=str(exc))

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            logger.error("redis_delete_error", key=key, error=str(exc))

    async def close(self) -> None:
        await self._client.aclose()
        await self._pool.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False


def create_cache(url: str, max_connections: int = 50) -> CachePort:
    if not url:
        logger.warning("redis_url_missing_falling_back_to_memory")
        return MemoryCacheAdapter()
    return RedisCacheAdapter(url, max_connections)


__all__ = ["MemoryCacheAdapter", "RedisCacheAdapter", "create_cache"]
