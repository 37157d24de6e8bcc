"""
NF-e Identification Service - Main FastAPI Application

- PostgreSQL backing store with pooled asyncpg connections
- Redis cache-aside layer in front of every read
- Structured logging, Prometheus metrics and OpenTelemetry spans
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from opentelemetry import trace
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.endpoints.health import router as health_router
from .api.endpoints.nfe_identifications import router as nfe_identifications_router
from .core.config import Settings, get_settings
from .core.database import DatabaseManager
from .core.logging_config import configure_logging
from .domain.cache.value_objects import TTL
from .infrastructure.redis.connection_factory import RedisConnectionFactory
from .infrastructure.repositories.cache_repository import RedisCacheRepository
from .repositories.nfe_identification import NFeIdentificationRepository

logger = structlog.get_logger()

APP_VERSION = "0.1.0"


# Application lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database and Redis connections and build the shared repository."""
    settings: Settings = app.state.settings
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    logger.info(
        "Starting NF-e identification service",
        version=APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    database = DatabaseManager(settings)
    redis_factory = RedisConnectionFactory(settings)

    try:
        await database.initialize()
        await redis_factory.initialize()
    except Exception:
        logger.exception("Failed to initialize application")
        await redis_factory.close()
        await database.close()
        raise

    app.state.database = database
    app.state.redis_factory = redis_factory
    app.state.nfe_repository = NFeIdentificationRepository(
        database,
        RedisCacheRepository(redis_factory.client),
        ttl=TTL(settings.CACHE_TTL_SECONDS),
    )

    logger.info("NF-e identification service started")

    yield

    # Shutdown
    logger.info("Shutting down NF-e identification service")

    try:
        await redis_factory.close()
    except Exception as e:
        logger.error("Error closing Redis connections", error=str(e))

    try:
        await database.close()
    except Exception as e:
        logger.error("Error closing database connections", error=str(e))

    logger.info("Application shutdown completed")


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with span context, return a generic 500."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute("error.type", type(exc).__name__)
        span.set_attribute("error.path", request.url.path)
        span.set_attribute("error.method", request.method)

    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred",
        },
    )


async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def create_app(settings: Settings = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="NF-e Identification API",
        description="Cache-aside CRUD service for NF-e identification records",
        version=APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(health_router)
    app.include_router(nfe_identifications_router, tags=["nfe-identifications"])
    app.add_api_route("/metrics", metrics, methods=["GET"], include_in_schema=False)
    app.add_exception_handler(Exception, global_exception_handler)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
