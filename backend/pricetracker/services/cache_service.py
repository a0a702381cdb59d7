"""Read-through TTL cache with Redis and in-memory backends.

The cache is best-effort: when the backend fails, callers get fresh data
from the fetcher instead of an error.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from pricetracker.core.exceptions import CacheBackendError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Key namespaces
PRODUCT_INFO_PREFIX = "product_info:"
PRICE_HISTORY_PREFIX = "price_history:"
STORE_CONFIG_PREFIX = "store_config:"
ANALYSIS_PREFIX = "analysis:"

# TTLs in seconds
PRODUCT_INFO_TTL = 60 * 60            # 1 hour
PRICE_HISTORY_TTL = 24 * 60 * 60      # 24 hours
STORE_CONFIG_TTL = 7 * 24 * 60 * 60   # 1 week
ANALYSIS_TTL = 3 * 60 * 60            # 3 hours


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys_by_prefix(self, prefix: str) -> List[str]: ...

    async def close(self) -> None: ...


class RedisCacheBackend:
    """Async Redis backend. Every Redis failure surfaces as CacheBackendError."""

    def __init__(self, redis_url: str):
        """Initialize Redis backend.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        """
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="redis_cache_backend")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)

        return self._redis

    async def get(self, key: str) -> Optional[str]:
        try:
            redis = await self._get_redis()
            return await redis.get(key)
        except RedisError as e:
            raise CacheBackendError(f"GET {key} failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
        except RedisError as e:
            raise CacheBackendError(f"SET {key} failed: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            redis = await self._get_redis()
            return await redis.delete(*keys)
        except RedisError as e:
            raise CacheBackendError(f"DEL failed: {e}") from e

    async def keys_by_prefix(self, prefix: str) -> List[str]:
        try:
            redis = await self._get_redis()
            return [key async for key in redis.scan_iter(match=f"{prefix}*", count=100)]
        except RedisError as e:
            raise CacheBackendError(f"SCAN {prefix}* failed: {e}") from e

    async def health_check(self) -> bool:
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True
        except RedisError as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connection. Call on application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


class InMemoryCacheBackend:
    """Process-local backend for development and tests."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._data[key] = (value, self._clock() + ttl)

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._data.pop(key, None) is not None)

    async def keys_by_prefix(self, prefix: str) -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]

    async def close(self) -> None:
        self._data.clear()


class Cache:
    """Read-through cache over a CacheBackend.

    Values are stored as JSON. Pass ``result_type`` to get typed values
    (pydantic models, lists of models, Decimals...) back on a hit.
    """

    def __init__(self, backend: CacheBackend):
        self.backend = backend
        self.logger = logger.bind(service="cache")

    async def get_cached(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: int,
        result_type: Any = None,
    ) -> T:
        """Return the cached value for ``key`` or compute and store it.

        Args:
            key: Cache key
            fetcher: Coroutine function producing the value on a miss
            ttl: Time-to-live in seconds
            result_type: Type used to decode hits and encode new values

        Returns:
            Cached or freshly fetched value

        Raises:
            Whatever ``fetcher`` raises; it is never retried here
        """
        adapter = TypeAdapter(result_type if result_type is not None else Any)

        try:
            raw = await self.backend.get(key)
        except CacheBackendError as e:
            self.logger.warning("cache_get_failed", key=key, error=str(e))
            raw = None

        if raw is not None:
            try:
                value = adapter.validate_json(raw)
                self.logger.debug("cache_hit", key=key)
                return value
            except ValidationError as e:
                self.logger.warning("cache_value_invalid", key=key, error=str(e))

        self.logger.debug("cache_miss", key=key)
        value = await fetcher()

        try:
            await self.backend.set(key, adapter.dump_json(value).decode("utf-8"), ttl)
        except CacheBackendError as e:
            self.logger.warning("cache_set_failed", key=key, error=str(e))

        return value

    async def invalidate_cache(self, key: str) -> None:
        try:
            await self.backend.delete(key)
            self.logger.debug("cache_invalidated", key=key)
        except CacheBackendError as e:
            self.logger.warning("cache_invalidate_failed", key=key, error=str(e))

    async def keys(self, prefix: str) -> List[str]:
        """Keys starting with ``prefix``; empty on backend error."""
        try:
            return await self.backend.keys_by_prefix(prefix)
        except CacheBackendError as e:
            self.logger.warning("cache_keys_failed", prefix=prefix, error=str(e))
            return []

    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``.

        Returns:
            Number of keys deleted, 0 on backend error
        """
        try:
            keys = await self.backend.keys_by_prefix(prefix)
            deleted = await self.backend.delete(*keys) if keys else 0
        except CacheBackendError as e:
            self.logger.warning("cache_prefix_invalidate_failed", prefix=prefix, error=str(e))
            return 0
        return deleted

    async def invalidate_product_cache(self, product_id: str) -> int:
        """Drop product info, price history and per-product analysis entries."""
        total = 0
        for prefix in (
            f"{PRODUCT_INFO_PREFIX}{product_id}",
            f"{PRICE_HISTORY_PREFIX}{product_id}",
            f"{ANALYSIS_PREFIX}prediction:{product_id}",
            f"{ANALYSIS_PREFIX}seasonal:{product_id}",
        ):
            total += await self.invalidate_prefix(prefix)

        self.logger.info("product_cache_invalidated", product_id=product_id, keys_deleted=total)
        return total

    # ------------------------------------------------------------------
    # Namespaced helpers
    # ------------------------------------------------------------------

    async def get_cached_product_info(self, product_id: str, fetcher, result_type: Any = None):
        return await self.get_cached(f"{PRODUCT_INFO_PREFIX}{product_id}", fetcher, PRODUCT_INFO_TTL, result_type)

    async def get_cached_price_history(self, product_id: str, period: str, fetcher, result_type: Any = None):
        return await self.get_cached(
            f"{PRICE_HISTORY_PREFIX}{product_id}:{period}", fetcher, PRICE_HISTORY_TTL, result_type
        )

    async def get_cached_store_config(self, domain: str, fetcher, result_type: Any = None):
        return await self.get_cached(f"{STORE_CONFIG_PREFIX}{domain}", fetcher, STORE_CONFIG_TTL, result_type)

    async def get_cached_analysis(self, kind: str, param: str, fetcher, result_type: Any = None):
        return await self.get_cached(f"{ANALYSIS_PREFIX}{kind}:{param}", fetcher, ANALYSIS_TTL, result_type)

    async def close(self) -> None:
        await self.backend.close()


def create_cache(redis_url: str) -> Cache:
    """Redis-backed cache, or in-memory when no Redis URL is configured."""
    if redis_url:
        backend: CacheBackend = RedisCacheBackend(redis_url)
    else:
        backend = InMemoryCacheBackend()
        logger.info("cache_using_in_memory_backend")
    return Cache(backend)
