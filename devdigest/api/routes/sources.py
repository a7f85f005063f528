"""Source catalog endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from devdigest.api.dependencies import get_sources_service
from devdigest.api.models import (
    CreateSourceRequest,
    ErrorResponse,
    ResetStatsResponse,
    SetActiveResponse,
    SourceItem,
    SourcesListResponse,
    UpdateSourceRequest,
)
from devdigest.ingestion.schemas import SourceType
from devdigest.sources.schemas import FilterRules, Source, SourceConfigError, SourceExistsError

logger = structlog.get_logger(__name__)
router = APIRouter()


def _source_to_item(s: Source) -> SourceItem:
    data = s.to_dict()
    return SourceItem(
        id=data["id"],
        name=data["name"],
        type=data["type"],
        url=data["url"],
        category=data["category"],
        description=data["description"],
        is_active=data["is_active"],
        priority=data["priority"],
        config=data["config"],
        filters=data["filters"],
        stats=data["stats"],
        last_fetched=data["last_fetched"],
    )


@router.get(
    "/sources",
    response_model=SourcesListResponse,
    responses={422: {"model": ErrorResponse}},
    summary="List configured sources with their fetch stats",
)
async def list_sources(
    type: SourceType | None = Query(default=None, description="Filter by source type"),
    active_only: bool = Query(default=False, description="Only active sources"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    registry=Depends(get_sources_service),
) -> SourcesListResponse:
    sources, total = await registry.list_sources(
        source_type=type.value if type else None,
        active_only=active_only,
        limit=limit,
        offset=offset,
    )
    return SourcesListResponse(sources=[_source_to_item(s) for s in sources], total=total)


@router.post(
    "/sources",
    response_model=SourceItem,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Create a new source",
)
async def create_source(
    body: CreateSourceRequest,
    registry=Depends(get_sources_service),
) -> SourceItem:
    source = Source(
        id=body.id or "",
        name=body.name,
        type=body.type,
        url=body.url,
        category=body.category,
        description=body.description,
        is_active=body.is_active,
        priority=body.priority,
        config=body.config,
        filters=FilterRules.from_dict(body.filters.model_dump()),
    )
    if not source.id:
        raise HTTPException(status_code=422, detail="Source name must contain letters or digits")

    try:
        created = await registry.create_source(source)
    except SourceConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SourceExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info("Source created", source_id=created.id, type=created.type_name)
    return _source_to_item(created)


@router.post(
    "/sources/reset-stats",
    response_model=ResetStatsResponse,
    summary="Clear fetch statistics for every source",
)
async def reset_stats(registry=Depends(get_sources_service)) -> ResetStatsResponse:
    count = await registry.reset_stats()
    logger.info("Source stats reset", count=count)
    return ResetStatsResponse(reset=count)


@router.put(
    "/sources/{source_id}",
    response_model=SourceItem,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Update a source",
)
async def update_source(
    source_id: str,
    body: UpdateSourceRequest,
    registry=Depends(get_sources_service),
) -> SourceItem:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    try:
        updated = await registry.update_source(source_id, changes)
    except SourceConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if updated is None:
        raise HTTPException(status_code=404, detail=f"Source not found: {source_id}")

    logger.info("Source updated", source_id=source_id, fields=sorted(changes))
    return _source_to_item(updated)


@router.post(
    "/sources/{source_id}/active",
    response_model=SetActiveResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Activate or deactivate a source",
)
async def set_active(
    source_id: str,
    active: bool = Query(..., description="New active flag"),
    registry=Depends(get_sources_service),
) -> SetActiveResponse:
    updated = await registry.set_active(source_id, active)
    if not updated:
        raise HTTPException(status_code=404, detail=f"Source not found: {source_id}")
    return SetActiveResponse(id=source_id, is_active=active)
