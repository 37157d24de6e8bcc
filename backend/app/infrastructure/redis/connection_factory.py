"""
Redis Connection Factory

Connection management for the cache store.
Provides one shared connection pool, a start-up health check and clean
shutdown. Clients handed out share the pool and are safe to use from
concurrent tasks.
"""

import asyncio
import time
from typing import Dict, Any, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import (
    AuthenticationError as RedisAuthError,
    RedisError,
)

from ...core.config import Settings, get_settings
from .exceptions import (
    RedisConnectionException,
    RedisConfigurationException,
)

logger = structlog.get_logger()


class RedisConnectionFactory:
    """
    Factory for creating and managing the shared Redis connection pool.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def initialize(self) -> None:
        """Create the connection pool and verify the server answers PING."""
        if self._client is not None:
            return

        async with self._lock:
            if self._client is not None:
                return

            try:
                pool = ConnectionPool.from_url(
                    self.settings.REDIS_URL,
                    max_connections=self.settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=self.settings.REDIS_CONNECTION_TIMEOUT,
                    socket_timeout=self.settings.REDIS_OPERATION_TIMEOUT,
                    retry_on_timeout=True,
                    encoding="utf-8",
                    decode_responses=True,
                )
            except ValueError as e:
                raise RedisConfigurationException(
                    message=f"Invalid Redis URL: {e}",
                    config_key="REDIS_URL",
                    original_error=e,
                )

            client = Redis(connection_pool=pool)
            await self._test_connection(client, pool)

            self._pool = pool
            self._client = client
            logger.info(
                "Redis connection factory initialized",
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
            )

    async def _test_connection(self, client: Redis, pool: ConnectionPool) -> None:
        """Test connection pool with a PING."""
        try:
            await client.ping()
            logger.debug("Redis connection test successful")
        except RedisAuthError as e:
            await pool.disconnect()
            raise RedisConnectionException(
                message="Redis authentication failed during initialization",
                original_error=e,
            )
        except (RedisError, OSError) as e:
            await pool.disconnect()
            raise RedisConnectionException(
                message="Redis connection test failed", original_error=e
            )

    @property
    def client(self) -> Redis:
        """Shared Redis client bound to the pool."""
        if self._client is None:
            raise RuntimeError(
                "Redis connection factory not initialized. Call initialize() first."
            )
        return self._client

    async def health_check(self) -> Dict[str, Any]:
        """Ping the server and report latency."""
        start_time = time.time()
        try:
            await self.client.ping()
            return {
                "status": "healthy",
                "response_time_ms": round((time.time() - start_time) * 1000, 2),
            }
        except Exception as e:
            logger.warning("Redis health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}

    async def close(self) -> None:
        """Close the client and disconnect the pool."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
            if self._pool is not None:
                await self._pool.disconnect()
                self._pool = None

            logger.info("Redis connection factory closed")
