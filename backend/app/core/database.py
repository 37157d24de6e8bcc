"""
NF-e Identification Service Database Configuration

Connection management for the relational backing store:
- Pooled async engine (asyncpg driver) built from settings
- Connection retry logic with exponential backoff on start-up
- Session context manager with commit/rollback handling
- Query duration metrics and health checks
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any, Optional

import asyncpg
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy import text
from sqlalchemy.pool import AsyncAdaptedQueuePool
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
import structlog
from prometheus_client import Counter, Histogram

from .config import Settings, get_settings

logger = structlog.get_logger()

DB_SESSION_DURATION = Histogram(
    "nfe_db_session_duration_seconds",
    "Time spent inside a backing-store session",
)
DB_FAILED_CONNECTIONS = Counter(
    "nfe_db_failed_connections_total",
    "Total number of failed database engine initialisations",
)


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before ``initialize()``."""


class DatabaseManager:
    """
    Backing-store connection manager.

    One instance owns one pooled engine. Sessions handed out by
    ``get_session`` are independent, so the manager can be shared by
    concurrent request handlers without external locking.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (asyncpg.PostgresConnectionError, ConnectionError, OSError)
        ),
        before_sleep=lambda retry_state: logger.warning(
            "Database connection retry",
            attempt=retry_state.attempt_number,
            wait_time=retry_state.next_action.sleep,
        ),
        reraise=True,
    )
    async def _create_engine_with_retry(self) -> AsyncEngine:
        """Create the engine and prove connectivity, retrying transient failures."""
        start_time = time.time()

        engine = create_async_engine(
            self.settings.DATABASE_URL,
            poolclass=AsyncAdaptedQueuePool,
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
            pool_timeout=self.settings.DATABASE_POOL_TIMEOUT,
            pool_recycle=self.settings.DATABASE_POOL_RECYCLE,
            pool_pre_ping=True,
            echo=self.settings.DEBUG,
            connect_args={
                "command_timeout": 60,
                "server_settings": {"application_name": "nfe_identification_api"},
            },
        )

        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                if result.scalar() != 1:
                    raise ConnectionError("Database connectivity probe failed")
        except Exception:
            await engine.dispose()
            raise

        logger.info(
            "Database engine created successfully",
            duration_seconds=time.time() - start_time,
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
        )
        return engine

    async def initialize(self) -> None:
        """Initialize the engine and session factory."""
        if self.engine is not None:
            return

        try:
            self.engine = await self._create_engine_with_retry()
        except Exception as e:
            DB_FAILED_CONNECTIONS.inc()
            logger.error(
                "Database initialization failed",
                error=str(e),
                exc_info=True,
            )
            raise

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session with transaction management.

        Commits when the block exits cleanly, rolls back and re-raises
        otherwise.

        Yields:
            AsyncSession: Database session bound to the shared pool
        """
        if not self.session_factory:
            raise DatabaseNotInitializedError(
                "Database not initialized. Call initialize() first."
            )

        start_time = time.time()

        try:
            async with self.session_factory() as session:
                try:
                    yield session
                    await session.commit()

                except Exception as e:
                    await session.rollback()

                    logger.error(
                        "Database transaction failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise
        finally:
            DB_SESSION_DURATION.observe(time.time() - start_time)

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform a lightweight database health check.

        Returns:
            Dict with health status and pool statistics
        """
        start_time = time.time()

        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar() == 1

            pool = self.engine.pool
            return {
                "status": "healthy",
                "duration_seconds": time.time() - start_time,
                "pool": {
                    "size": pool.size(),
                    "checked_in": pool.checkedin(),
                    "checked_out": pool.checkedout(),
                    "overflow": pool.overflow(),
                },
            }

        except Exception as e:
            logger.error(
                "Database health check failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            return {
                "status": "unhealthy",
                "duration_seconds": time.time() - start_time,
                "error": str(e),
            }

    async def close(self) -> None:
        """Close database connections and cleanup resources."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

            logger.info("Database connections closed")
