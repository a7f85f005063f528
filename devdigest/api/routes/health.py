"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from devdigest import __version__
from devdigest.api.dependencies import get_database, get_refresh_service
from devdigest.api.models import ComponentHealth, HealthResponse
from devdigest.services.refresh_service import RefreshService
from devdigest.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        error = None
    except Exception as e:
        healthy = False
        error = str(e)

    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    return ComponentHealth(
        status="healthy" if healthy else "unhealthy",
        latency_ms=latency_ms,
        details={"error": error} if error else None,
    )


@router.get("/health", response_model=HealthResponse, summary="Service health")
async def health_check(
    db: Database = Depends(get_database),
    refresh: RefreshService = Depends(get_refresh_service),
) -> HealthResponse:
    database = await _check_database(db)
    if database.status != "healthy":
        logger.warning("Database health check failed", details=database.details)

    return HealthResponse(
        status="healthy" if database.status == "healthy" else "unhealthy",
        version=__version__,
        components={"database": database},
        refresh_state=refresh.state.value,
    )
