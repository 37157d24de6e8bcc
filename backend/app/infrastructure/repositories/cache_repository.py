"""
Redis Cache Repository Implementation

Generic key/value cache over Redis. Values are stored as JSON blobs and
decoded back into the semantic type requested by the caller.
"""

import time
from typing import Any, List, Optional, Type, TypeVar, Union

import structlog
from prometheus_client import Counter, Histogram
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json
from redis.asyncio import Redis
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from ...domain.cache.value_objects import CacheKey, TTL
from ..redis.exceptions import (
    RedisConnectionException,
    RedisOperationTimeoutException,
    RedisSerializationException,
)

logger = structlog.get_logger()

T = TypeVar("T")

CACHE_OPERATIONS = Counter(
    "nfe_cache_operations_total",
    "Cache store operations by outcome",
    ["operation", "outcome"],
)
CACHE_LATENCY = Histogram(
    "nfe_cache_operation_duration_seconds",
    "Cache store round-trip time",
    ["operation"],
)

SCAN_BATCH_SIZE = 100


class RedisCacheRepository:
    """
    Redis implementation of the cache store.

    - ``get`` returns ``None`` on a miss and raises
      ``RedisSerializationException`` when a stored blob cannot be decoded.
    - ``delete`` treats a key ending in ``*`` as a pattern: matching keys are
      enumerated with SCAN and removed with UNLINK. The two steps are not
      atomic; a key written between them survives until its TTL expires.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self._adapters: dict = {}

    def _adapter(self, value_type: Any) -> TypeAdapter:
        adapter = self._adapters.get(value_type)
        if adapter is None:
            adapter = TypeAdapter(value_type)
            self._adapters[value_type] = adapter
        return adapter

    @staticmethod
    def _key(key: Union[CacheKey, str]) -> str:
        return key.value if isinstance(key, CacheKey) else key

    @staticmethod
    def _transport_error(operation: str, key: str, error: RedisError) -> Exception:
        if isinstance(error, RedisTimeoutError):
            return RedisOperationTimeoutException(
                operation=operation, key=key, original_error=error
            )
        return RedisConnectionException(
            message=f"Redis {operation} failed", original_error=error, key=key
        )

    async def get(self, key: Union[CacheKey, str], value_type: Type[T]) -> Optional[T]:
        """Fetch and decode a cached value; ``None`` on a miss."""
        key_str = self._key(key)
        start_time = time.perf_counter()

        try:
            raw = await self.redis.get(key_str)
        except RedisError as e:
            CACHE_OPERATIONS.labels("get", "error").inc()
            logger.warning("Cache get failed", key=key_str, error=str(e))
            raise self._transport_error("get", key_str, e) from e
        finally:
            CACHE_LATENCY.labels("get").observe(time.perf_counter() - start_time)

        if raw is None:
            CACHE_OPERATIONS.labels("get", "miss").inc()
            logger.debug("Cache miss", key=key_str)
            return None

        try:
            value = self._adapter(value_type).validate_json(raw)
        except ValidationError as e:
            CACHE_OPERATIONS.labels("get", "corrupt").inc()
            logger.warning("Cache value could not be decoded", key=key_str)
            raise RedisSerializationException(
                key=key_str, operation="decode", original_error=e
            ) from e

        CACHE_OPERATIONS.labels("get", "hit").inc()
        logger.debug("Cache hit", key=key_str)
        return value

    async def set(
        self,
        key: Union[CacheKey, str],
        value: Any,
        ttl: Optional[Union[TTL, int]] = None,
    ) -> None:
        """Encode and store a value; without ``ttl`` the entry never expires."""
        key_str = self._key(key)
        if isinstance(key, CacheKey) and key.is_pattern:
            raise ValueError("Cannot store a value under a pattern key")

        try:
            payload = to_json(value)
        except PydanticSerializationError as e:
            CACHE_OPERATIONS.labels("set", "corrupt").inc()
            raise RedisSerializationException(
                key=key_str, operation="encode", original_error=e
            ) from e

        expire_seconds = int(ttl) if ttl is not None else None
        start_time = time.perf_counter()

        try:
            await self.redis.set(key_str, payload, ex=expire_seconds)
        except RedisError as e:
            CACHE_OPERATIONS.labels("set", "error").inc()
            logger.warning("Cache set failed", key=key_str, error=str(e))
            raise self._transport_error("set", key_str, e) from e
        finally:
            CACHE_LATENCY.labels("set").observe(time.perf_counter() - start_time)

        CACHE_OPERATIONS.labels("set", "ok").inc()
        logger.debug("Cached value", key=key_str, ttl_seconds=expire_seconds)

    async def delete(self, key: Union[CacheKey, str]) -> int:
        """Delete one key, or every key matching a ``*``-suffixed pattern."""
        key_str = self._key(key)
        start_time = time.perf_counter()

        try:
            if key_str.endswith("*"):
                keys_to_delete: List[str] = []
                # Use SCAN for non-blocking iteration
                async for matched in self.redis.scan_iter(
                    match=key_str, count=SCAN_BATCH_SIZE
                ):
                    keys_to_delete.append(matched)

                count = 0
                if keys_to_delete:
                    # Use UNLINK for non-blocking deletion
                    count = await self.redis.unlink(*keys_to_delete)

                logger.debug("Deleted keys by pattern", pattern=key_str, count=count)
            else:
                count = await self.redis.delete(key_str)
                logger.debug("Deleted key", key=key_str, count=count)

        except RedisError as e:
            CACHE_OPERATIONS.labels("delete", "error").inc()
            logger.warning("Cache delete failed", key=key_str, error=str(e))
            raise self._transport_error("delete", key_str, e) from e
        finally:
            CACHE_LATENCY.labels("delete").observe(time.perf_counter() - start_time)

        CACHE_OPERATIONS.labels("delete", "ok").inc()
        return count

    async def exists(self, key: Union[CacheKey, str]) -> bool:
        """Check whether a key is present."""
        key_str = self._key(key)

        try:
            result = await self.redis.exists(key_str)
        except RedisError as e:
            CACHE_OPERATIONS.labels("exists", "error").inc()
            raise self._transport_error("exists", key_str, e) from e

        return result > 0
