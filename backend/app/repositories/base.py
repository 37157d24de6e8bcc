"""
Base Repository with Cache-Aside Support

This module implements the base repository for entities that live in the
relational store and are mirrored in the cache store.

CRITICAL RULE: the relational store is the source of truth. Cache failures
are logged and treated as misses; they never fail the caller's operation.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Type, TypeVar, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..core.database import DatabaseNotInitializedError
from ..domain.cache.value_objects import CacheKey, TTL
from ..infrastructure.redis.exceptions import RedisException
from ..infrastructure.repositories.cache_repository import RedisCacheRepository
from .exceptions import BackingStoreError

logger = structlog.get_logger()

T = TypeVar("T")

# Failures of the relational engine itself. OSError covers refused
# connections and DNS lookups that SQLAlchemy does not wrap.
BACKING_STORE_FAILURES = (
    SQLAlchemyError,
    OSError,
    asyncio.TimeoutError,
    DatabaseNotInitializedError,
)


class CachedRepository:
    """
    Base repository owning the cache-aside protocol (lookup, populate,
    invalidate).

    Both collaborators are injected: ``database`` must expose an async
    ``get_session()`` context manager, ``cache`` is the cache store. Each is
    safe for concurrent use, so one repository instance serves all requests.
    """

    def __init__(self, database: Any, cache: RedisCacheRepository, ttl: TTL):
        """
        Initialize repository with strict input validation.

        Args:
            database: Backing-store handle with ``get_session()``
            cache: Cache store
            ttl: Expiry applied to every entry this repository writes

        Raises:
            TypeError: If a collaborator does not have the expected shape
        """
        if database is None or not hasattr(database, "get_session"):
            raise TypeError(
                f"database must provide get_session(), got {type(database).__name__}"
            )
        if cache is None:
            raise TypeError("cache store is required (cannot be None)")
        if not isinstance(ttl, TTL):
            raise TypeError(f"ttl must be a TTL, got {type(ttl).__name__}")

        self.database = database
        self.cache = cache
        self.ttl = ttl

    async def _cache_get(self, key: CacheKey, value_type: Type[T]) -> Optional[T]:
        """Cache lookup where any cache failure reads as a miss."""
        try:
            return await self.cache.get(key, value_type)
        except RedisException as e:
            logger.warning(
                "Repository: Cache lookup failed, falling back to backing store",
                repository=type(self).__name__,
                key=key.value,
                error_code=e.error_code,
                error=e.message,
            )
            return None

    async def _cache_set(self, key: CacheKey, value: Any) -> None:
        """Populate the cache; a failure leaves the entry absent."""
        try:
            await self.cache.set(key, value, self.ttl)
        except RedisException as e:
            logger.warning(
                "Repository: Cache populate failed",
                repository=type(self).__name__,
                key=key.value,
                error_code=e.error_code,
                error=e.message,
            )

    async def _invalidate(self, *keys: Union[CacheKey, str]) -> None:
        """
        Remove cache entries after a write.

        Every key is attempted even if an earlier one fails; a failed
        invalidation leaves a stale entry bounded by the TTL.
        """
        for key in keys:
            key_str = key.value if isinstance(key, CacheKey) else key
            try:
                await self.cache.delete(key)
            except RedisException as e:
                logger.error(
                    "Repository: Cache invalidation failed, entry stays until TTL",
                    repository=type(self).__name__,
                    key=key_str,
                    ttl_seconds=self.ttl.seconds,
                    error_code=e.error_code,
                    error=e.message,
                )

    @asynccontextmanager
    async def _backing_store(self, operation: str) -> AsyncIterator[Any]:
        """
        Open a backing-store session for one operation.

        Driver, SQL and transport failures (refused connections, DNS errors,
        timeouts, an uninitialized manager) surface as ``BackingStoreError``;
        repository errors raised inside the block pass through unchanged.
        """
        try:
            async with self.database.get_session() as session:
                yield session
        except BACKING_STORE_FAILURES as e:
            logger.error(
                "Repository: Backing store operation failed",
                repository=type(self).__name__,
                operation=operation,
                error=str(e),
                exc_info=True,
            )
            raise BackingStoreError(operation, e) from e
