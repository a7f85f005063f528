"""
Pydantic models for API requests and responses.
"""

from typing import Any

from pydantic import BaseModel, Field

from devdigest.ingestion.schemas import SourceType


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(..., description="Error message")
    error_type: str = Field(default="error", description="Error type")


class TypeStatsModel(BaseModel):
    processed: int = 0
    success: int = 0
    failed: int = 0
    total_fetched: int = 0


class RefreshResponse(BaseModel):
    """Result of one refresh run."""

    success: bool = Field(..., description="Always true; failures are reported per source")
    run_id: str
    state: str = Field(..., description="completed or timed_out")
    total_fetched: int = Field(..., description="New items stored by this run")
    sources_processed: int
    per_type_stats: dict[str, TypeStatsModel]
    duration_ms: int
    max_total: int
    max_per_source: int
    forced: bool = False
    errors: list[str] = Field(default_factory=list)
    sources: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: str


class RefreshStatusResponse(BaseModel):
    state: str
    is_running: bool
    in_flight_tasks: int = 0
    total_items: int | None = Field(default=None, description="Items currently stored")
    active_sources: int | None = None
    last_result: RefreshResponse | None = None


class SourceFiltersModel(BaseModel):
    include_keywords: list[str] = Field(default_factory=list)
    exclude_keywords: list[str] = Field(default_factory=list)
    min_word_count: int | None = Field(default=None, ge=0)


class SourceStatsModel(BaseModel):
    total_fetched: int = 0
    total_runs: int = 0
    total_errors: int = 0
    last_fetch_count: int = 0
    last_fetch_success: bool | None = None
    last_fetch_error: str | None = None
    success_rate: float | None = None


class SourceItem(BaseModel):
    id: str
    name: str
    type: str
    url: str
    category: str
    description: str = ""
    is_active: bool
    priority: int
    config: dict[str, Any] = Field(default_factory=dict)
    filters: SourceFiltersModel | None = None
    stats: SourceStatsModel
    last_fetched: str | None = None


class SourcesListResponse(BaseModel):
    sources: list[SourceItem]
    total: int




class CreateSourceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: SourceType
    url: str = Field(..., min_length=1)
    id: str | None = Field(default=None, description="Defaults to a slug of the name")
    category: str = "General"
    description: str = ""
    is_active: bool = True
    priority: int = Field(default=1, ge=0, description="Lower values are fetched first")
    config: dict[str, Any] = Field(default_factory=dict, description="Type-specific settings")
    filters: SourceFiltersModel = Field(default_factory=SourceFiltersModel)


class UpdateSourceRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: SourceType | None = None
    url: str | None = Field(default=None, min_length=1)
    category: str | None = None
    description: str | None = None
    is_active: bool | None = None
    priority: int | None = Field(default=None, ge=0)
    config: dict[str, Any] | None = None
    filters: SourceFiltersModel | None = None


class ResetStatsResponse(BaseModel):
    reset: int = Field(..., description="Number of sources whose stats were cleared")


class ContentItemModel(BaseModel):
    title: str
    url: str
    source: str
    category: str
    published_at: str
    summary: str
    sentiment: str
    reading_time: int
    technologies: list[str] = Field(default_factory=list)
    is_processed: bool = False
    analysis: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    fetched_at: str


class ContentListResponse(BaseModel):
    items: list[ContentItemModel]
    total: int
    limit: int
    offset: int


class ComponentHealth(BaseModel):
    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = None
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall status: healthy, degraded, or unhealthy")
    version: str
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    refresh_state: str


class SetActiveResponse(BaseModel):
    id: str
    is_active: bool


class SummarizeResponse(BaseModel):
    processed: int
    model: int
    fallback: int
    errors: int
