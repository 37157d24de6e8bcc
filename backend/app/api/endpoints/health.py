"""
Health check endpoints for the NF-e identification service.

Reports the status of the relational store and the cache store. The cache
is optional for correctness, so a failing cache degrades the service rather
than taking it down.
"""

from fastapi import APIRouter, Request, Response, status
from typing import Dict, Any
import logging
import time
from datetime import datetime, timezone

# Track process start time for uptime calculation
PROCESS_START_TIME = time.time()

from ...core.config import get_settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

settings = get_settings()


@router.get("")
async def health_check(request: Request, response: Response) -> Dict[str, Any]:
    """
    Dependency health check.

    Returns 200 while the database is reachable (status ``healthy`` or
    ``degraded`` when only the cache is down) and 503 otherwise.
    """
    checks = {}

    database = getattr(request.app.state, "database", None)
    if database is None:
        checks["database"] = {"status": "unhealthy", "error": "not initialized"}
    else:
        checks["database"] = await database.health_check()

    redis_factory = getattr(request.app.state, "redis_factory", None)
    if redis_factory is None or not redis_factory.is_initialized:
        checks["cache"] = {"status": "unhealthy", "error": "not initialized"}
    else:
        checks["cache"] = await redis_factory.health_check()

    if checks["database"].get("status") != "healthy":
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.error(f"Health check failed: database {checks['database']}")
    elif checks["cache"].get("status") != "healthy":
        overall = "degraded"
        logger.warning(f"Health check degraded: cache {checks['cache']}")
    else:
        overall = "healthy"

    return {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "checks": checks,
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """
    Liveness check endpoint.

    Indicates if the application is running. This endpoint should always
    return a successful response if the application process is alive.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": int(time.time() - PROCESS_START_TIME),
    }
