"""Refresh endpoints: run an aggregation pass and report its status."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from devdigest.api.dependencies import get_content_store, get_refresh_service, get_sources_service
from devdigest.api.models import ErrorResponse, RefreshResponse, RefreshStatusResponse
from devdigest.services.refresh_service import RefreshInProgressError, RefreshService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Run a refresh over all active sources",
)
async def trigger_refresh(
    force: bool = Query(default=False, description="Only deduplicate against recent items"),
    parallel: bool | None = Query(default=None, description="Process source types concurrently"),
    service: RefreshService = Depends(get_refresh_service),
) -> RefreshResponse:
    """
    Run one refresh and return its result.

    The run is bounded by the refresh timeout; sources still in flight at
    the deadline keep running in the background and the result reports
    ``timed_out``.
    """
    try:
        result = await service.run(parallel=parallel, force=force)
    except RefreshInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return RefreshResponse(**result.to_dict())


@router.get(
    "/refresh/status",
    response_model=RefreshStatusResponse,
    summary="Aggregator status and last refresh result",
)
async def refresh_status(
    service: RefreshService = Depends(get_refresh_service),
    store=Depends(get_content_store),
    registry=Depends(get_sources_service),
) -> RefreshStatusResponse:
    payload = service.status()

    try:
        payload["total_items"] = await store.count()
        payload["active_sources"] = len(await registry.list_active_sources())
    except Exception as e:
        logger.warning("Could not collect status totals", error=str(e))

    return RefreshStatusResponse(**payload)
