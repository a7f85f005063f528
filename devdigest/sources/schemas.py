"""Data models for the sources module."""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from devdigest.ingestion.schemas import SourceType


class SourceConfigError(Exception):
    """Raised when a source's type-specific config is missing or invalid."""


class SourceExistsError(Exception):
    """Raised when creating a source whose id is already taken."""


# ── Type-specific configuration ─────────────────────────────────


class RedditSourceConfig(BaseModel):
    """Config for ``reddit`` sources."""

    model_config = ConfigDict(extra="ignore")

    subreddit: str = Field(..., min_length=1)
    sort_by: Literal["hot", "new", "top", "rising"] = "hot"
    time_filter: Literal["hour", "day", "week", "month", "year", "all"] = "day"


class RssSourceConfig(BaseModel):
    """Config for ``rss`` sources. The feed URL is the source URL."""

    model_config = ConfigDict(extra="ignore")


class ApiSourceConfig(BaseModel):
    """Config for ``api`` sources.

    ``item_url`` switches the fetcher into story-index mode: the source
    URL returns a list of ids and ``item_url`` (with an ``{id}``
    placeholder) returns each item's detail.
    """

    model_config = ConfigDict(extra="ignore")

    headers: dict[str, str] = Field(default_factory=dict)
    limit_param: str = "limit"
    item_url: str | None = None


SourceConfig = Union[RedditSourceConfig, RssSourceConfig, ApiSourceConfig]

CONFIG_MODELS: dict[SourceType, type[BaseModel]] = {
    SourceType.REDDIT: RedditSourceConfig,
    SourceType.RSS: RssSourceConfig,
    SourceType.API: ApiSourceConfig,
}

_SUBREDDIT_IN_URL = re.compile(r"/r/([^/?#]+)")


# ── Source record ───────────────────────────────────────────────


@dataclass
class FilterRules:
    """Per-source content filters. Exclusions are never relaxed."""

    include_keywords: list[str] = field(default_factory=list)
    exclude_keywords: list[str] = field(default_factory=list)
    min_word_count: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FilterRules":
        data = data or {}
        return cls(
            include_keywords=list(data.get("include_keywords") or []),
            exclude_keywords=list(data.get("exclude_keywords") or []),
            min_word_count=data.get("min_word_count"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "include_keywords": self.include_keywords,
            "exclude_keywords": self.exclude_keywords,
            "min_word_count": self.min_word_count,
        }


@dataclass
class SourceStats:
    """Running fetch statistics for a source."""

    total_fetched: int = 0
    total_runs: int = 0
    total_errors: int = 0
    last_fetch_count: int = 0
    last_fetch_success: bool | None = None
    last_fetch_error: str | None = None

    @property
    def success_rate(self) -> float:
        if self.total_runs == 0:
            return 100.0
        return round(100.0 * (self.total_runs - self.total_errors) / self.total_runs, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_fetched": self.total_fetched,
            "total_runs": self.total_runs,
            "total_errors": self.total_errors,
            "last_fetch_count": self.last_fetch_count,
            "last_fetch_success": self.last_fetch_success,
            "last_fetch_error": self.last_fetch_error,
            "success_rate": self.success_rate,
        }


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


@dataclass
class Source:
    """A configured content origin (subreddit, feed, or JSON API).

    ``type`` stays a plain string when it names no known source type, so
    an unknown type surfaces as a recorded failure at refresh time rather
    than an error while loading the catalog.
    """

    name: str
    type: SourceType | str
    url: str
    id: str = ""
    category: str = "General"
    description: str = ""
    is_active: bool = True
    priority: int = 1
    config: dict[str, Any] = field(default_factory=dict)
    filters: FilterRules = field(default_factory=FilterRules)
    stats: SourceStats = field(default_factory=SourceStats)
    last_fetched: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            self.id = slugify(self.name)
        if isinstance(self.type, str) and not isinstance(self.type, SourceType):
            try:
                self.type = SourceType(self.type.lower())
            except ValueError:
                pass

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, SourceType) else str(self.type)

    def parse_config(self) -> SourceConfig:
        """Validate ``config`` against the model for this source's type.

        Raises:
            SourceConfigError: Unknown type or config that fails validation.
        """
        if not isinstance(self.type, SourceType):
            raise SourceConfigError(f"Unknown source type {self.type!r} for {self.name}")

        data = dict(self.config)
        if self.type == SourceType.REDDIT and not data.get("subreddit"):
            match = _SUBREDDIT_IN_URL.search(self.url)
            if match:
                data["subreddit"] = match.group(1)

        try:
            return CONFIG_MODELS[self.type].model_validate(data)
        except ValidationError as e:
            raise SourceConfigError(f"Invalid {self.type.value} config for {self.name}: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation used by the API and CLI."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type_name,
            "url": self.url,
            "category": self.category,
            "description": self.description,
            "is_active": self.is_active,
            "priority": self.priority,
            "config": self.config,
            "filters": self.filters.to_dict(),
            "stats": self.stats.to_dict(),
            "last_fetched": self.last_fetched.isoformat() if self.last_fetched else None,
        }


@dataclass
class FetchOutcome:
    """Result of processing one source, recorded into its stats."""

    success: bool
    item_count: int = 0
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def apply_outcome(stats: SourceStats, outcome: FetchOutcome) -> None:
    """Fold a fetch outcome into running stats in place."""
    stats.total_runs += 1
    stats.total_fetched += outcome.item_count
    stats.last_fetch_count = outcome.item_count
    stats.last_fetch_success = outcome.success
    stats.last_fetch_error = None if outcome.success else outcome.error
    if not outcome.success:
        stats.total_errors += 1


def apply_changes(source: Source, changes: dict[str, Any]) -> Source:
    """Copy of ``source`` with editable fields replaced. Stats and id are kept."""
    editable = {
        k: v for k, v in changes.items()
        if k in {"name", "type", "url", "category", "description", "is_active", "priority", "config"}
    }
    if "filters" in changes:
        editable["filters"] = FilterRules.from_dict(changes["filters"])
    return replace(source, **editable)
