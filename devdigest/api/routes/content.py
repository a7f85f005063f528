"""Content listing and summarization endpoints."""

from fastapi import APIRouter, Depends, Query

from devdigest.api.dependencies import get_content_store, get_summarization_service
from devdigest.api.models import ContentItemModel, ContentListResponse, SummarizeResponse
from devdigest.summarization.service import SummarizationService

router = APIRouter()


@router.get(
    "/content",
    response_model=ContentListResponse,
    summary="List stored items, newest first",
)
async def list_content(
    category: str | None = Query(default=None, description="Filter by category"),
    source: str | None = Query(default=None, description="Filter by source name"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    store=Depends(get_content_store),
) -> ContentListResponse:
    items, total = await store.list_recent(
        limit=limit,
        offset=offset,
        category=category,
        source=source,
    )
    return ContentListResponse(
        items=[ContentItemModel(**item.to_api_dict()) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/content/summarize",
    response_model=SummarizeResponse,
    summary="Summarize stored items that have not been processed yet",
)
async def summarize_pending(
    limit: int | None = Query(default=None, ge=1, le=500),
    service: SummarizationService = Depends(get_summarization_service),
) -> SummarizeResponse:
    stats = await service.summarize_pending(limit)
    return SummarizeResponse(**stats.to_dict())
