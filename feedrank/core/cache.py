import json
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

import redis.asyncio as redis
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from feedrank.core.config import settings

T = TypeVar("T")


class CacheBackend(Protocol):
    """Key/value store used cache-aside by the engine."""

    async def get_json(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    async def delete_by_pattern(self, pattern: str) -> int: ...


class RedisCache:
    """
    Redis cache wrapper for the engine.
    Handles connection pooling, serialization, key prefixing and error handling.
    Failures are logged and reported as cache misses.
    """

    def __init__(self, url: str | None = None, prefix: str | None = None):
        self._url = url or settings.REDIS_URL
        self._prefix = settings.CACHE_KEY_PREFIX if prefix is None else prefix
        self._client: redis.Redis | None = None

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            if not self._url:
                raise RuntimeError("REDIS_URL is not configured")

            logger.info("Initializing Redis Cache Client")
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                health_check_interval=30,
            )
        return self._client

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def close(self):
        if self._client:
            await self._client.close()
            self._client = None

    async def get(self, key: str) -> str | None:
        try:
            client = await self.get_client()
            return await client.get(self._key(key))
        except (redis.RedisError, OSError, RuntimeError) as e:
            logger.error(f"Redis GET failed for {key}: {e}")
            return None

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to decode cached value for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        try:
            client = await self.get_client()
            val = value if isinstance(value, str) else json.dumps(value)
            if ttl:
                await client.setex(self._key(key), ttl, val)
            else:
                await client.set(self._key(key), val)
        except (redis.RedisError, OSError, RuntimeError, TypeError) as e:
            logger.error(f"Redis SET failed for {key}: {e}")

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern (e.g. "mixed:user42:*")."""
        try:
            client = await self.get_client()
            deleted_count = 0
            keys_to_delete = []
            async for key in client.scan_iter(match=self._key(pattern), count=500):
                keys_to_delete.append(key)
                if len(keys_to_delete) >= 500:
                    deleted_count += await client.delete(*keys_to_delete)
                    keys_to_delete = []
            if keys_to_delete:
                deleted_count += await client.delete(*keys_to_delete)
            return deleted_count
        except (redis.RedisError, OSError, RuntimeError) as exc:
            logger.error(f"Failed to delete keys matching pattern '{pattern}' in Redis: {exc}")
            return 0


class NullCache:
    """Cache that never stores anything. Used when caching is disabled."""

    async def get_json(self, key: str) -> Any:
        return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        return None

    async def delete_by_pattern(self, pattern: str) -> int:
        return 0


def build_cache() -> CacheBackend:
    if not settings.CACHE_ENABLED:
        logger.warning("Caching disabled; every request recomputes its feed")
        return NullCache()
    return RedisCache()


async def with_cache(
    cache: CacheBackend,
    key: str,
    ttl: int,
    compute: Callable[[], Awaitable[T]],
    adapter: TypeAdapter[T],
) -> T:
    """
    Cache-aside helper: read `key`, compute on miss and write the result back.

    Any cache error is treated as a miss and the value is computed uncached.
    Concurrent misses may both compute and write; the last write wins.
    """
    try:
        cached = await cache.get_json(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}, computing uncached: {e}")
        cached = None

    if cached is not None:
        try:
            value = adapter.validate_python(cached)
            logger.debug(f"Cache hit for {key}")
            return value
        except ValidationError as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e}")

    value = await compute()

    try:
        await cache.set(key, adapter.dump_python(value, mode="json"), ttl)
    except Exception as e:
        logger.error(f"Cache write failed for {key}: {e}")
    return value
