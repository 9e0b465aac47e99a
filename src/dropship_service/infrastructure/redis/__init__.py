"""Redis cache for CJ data.

Holds CJ search results, the CJ category tree and CJ access tokens. Every
key lives under the configured namespace so several environments can
share one Redis. When Redis is down the cache is bypassed and callers go
straight to CJ.
"""

import hashlib
from collections.abc import Awaitable, Callable
from typing import Any

import orjson
import redis.asyncio as aioredis
from redis.exceptions import RedisError
import structlog

from dropship_service.config import get_settings

logger = structlog.get_logger()

_redis_client: aioredis.Redis | None = None


async def get_redis_client() -> aioredis.Redis | None:
    """Get or create the global async Redis client."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        try:
            _redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("Redis connection established", host=settings.redis_host)
        except (RedisError, OSError) as e:
            logger.warning("Redis unavailable, CJ responses will not be cached", error=str(e))
            _redis_client = None
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def params_key(prefix: str, params: dict[str, Any]) -> str:
    """Stable key for a parameter set; None values are ignored."""
    clean = {k: v for k, v in params.items() if v is not None}
    digest = hashlib.sha1(orjson.dumps(clean, option=orjson.OPT_SORT_KEYS)).hexdigest()
    return f"{prefix}{digest}"


class CacheService:
    """Namespaced JSON cache on top of Redis.

    Values are serialized with orjson. Every operation is a no-op when no
    client is configured, and Redis errors are logged rather than raised.
    """

    def __init__(self, client: aioredis.Redis | None, namespace: str | None = None):
        self.client = client
        self.namespace = namespace if namespace is not None else get_settings().cache_namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def get(self, key: str) -> Any | None:
        if not self.client:
            return None
        try:
            data = await self.client.get(self._key(key))
            if data:
                return orjson.loads(data)
        except RedisError as e:
            logger.warning("Cache get failed", key=key, error=str(e))
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        if not self.client:
            return
        try:
            await self.client.set(self._key(key), orjson.dumps(value), ex=ttl_seconds)
        except RedisError as e:
            logger.warning("Cache set failed", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        if not self.client:
            return
        try:
            await self.client.delete(self._key(key))
        except RedisError as e:
            logger.warning("Cache delete failed", key=key, error=str(e))

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
        refresh: bool = False,
    ) -> Any:
        """Return the cached value, or await ``loader`` and cache its result.

        ``refresh`` skips the read but still stores the fresh value.
        """
        if not refresh:
            cached = await self.get(key)
            if cached is not None:
                return cached

        value = await loader()
        await self.set(key, value, ttl_seconds=ttl_seconds)
        return value

    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``. Returns the count removed."""
        if not self.client:
            return 0
        removed = 0
        try:
            async for raw_key in self.client.scan_iter(match=f"{self._key(prefix)}*"):
                await self.client.delete(raw_key)
                removed += 1
        except RedisError as e:
            logger.warning("Cache invalidation failed", prefix=prefix, error=str(e))
        if removed:
            logger.info("Cache invalidated", prefix=prefix, removed=removed)
        return removed

    async def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.ping()
        except (RedisError, OSError):
            return False


async def get_cache() -> CacheService:
    """Dependency for FastAPI to get the shared cache."""
    return CacheService(await get_redis_client())
