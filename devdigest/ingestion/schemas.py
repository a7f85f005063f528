"""
Canonical content schemas for the devdigest pipeline.

Every fetcher adapts its platform payload into a ``Candidate``; the
normalizer turns an accepted candidate into a ``ContentItem``, which is
the only shape the store and the API ever see.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

TITLE_MAX_CHARS = 500
SUMMARY_MAX_CHARS = 500
CONTENT_MAX_CHARS = 50_000
SUMMARY_PLACEHOLDER = "No description available"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    """Supported source kinds. The type decides which fetcher is used."""

    REDDIT = "reddit"
    RSS = "rss"
    API = "api"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


# ── Raw platform records ────────────────────────────────────────
#
# Each fetcher only ever sees its own variant; the ``kind`` tag makes the
# union explicit when records are passed around generically.


class RedditRaw(BaseModel):
    """A post as returned under ``data.children[].data`` by Reddit."""

    kind: Literal["reddit"] = "reddit"
    data: dict[str, Any]


class RssRaw(BaseModel):
    """A single feedparser entry plus the detected feed format."""

    kind: Literal["rss"] = "rss"
    entry: dict[str, Any]
    feed_format: str = "rss"


class ApiRaw(BaseModel):
    """One record from a JSON API listing or story-index detail call."""

    kind: Literal["api"] = "api"
    record: dict[str, Any]
    extra: dict[str, Any] = Field(default_factory=dict)


RawRecord = Union[RedditRaw, RssRaw, ApiRaw]


# ── Canonical records ───────────────────────────────────────────


class Candidate(BaseModel):
    """
    Platform-neutral record produced by every fetcher.

    ``description`` is a short text (self-text, feed summary, API summary);
    ``body`` is a longer text when the platform has one. ``extra`` carries
    platform metadata that survives into ``ContentItem.metadata``.
    """

    title: str
    url: str
    description: str = ""
    body: str = ""
    published_at: datetime = Field(default_factory=_utc_now)
    author: str | None = None
    tags: list[str] = Field(default_factory=list)
    score: int = 0
    comments: int = 0
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """Longest text available for filtering and analysis."""
        return self.body or self.description


class ContentItem(BaseModel):
    """
    CANONICAL CONTENT ITEM

    ``url`` is the global uniqueness key across the store.
    """

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_CHARS)
    url: str = Field(..., min_length=1)
    source: str = Field(..., description="Name of the originating source")
    category: str = "General"
    published_at: datetime
    summary: str = Field(default=SUMMARY_PLACEHOLDER, max_length=SUMMARY_MAX_CHARS)
    content: str | None = Field(default=None, max_length=CONTENT_MAX_CHARS)
    sentiment: Sentiment = Sentiment.NEUTRAL
    reading_time: int = Field(default=1, ge=1, le=120)
    technologies: list[str] = Field(default_factory=list, max_length=5)
    is_processed: bool = False
    analysis: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    fetched_at: datetime = Field(default_factory=_utc_now)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("published_at", "fetched_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Ensure timestamps are timezone-aware UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_api_dict(self) -> dict[str, Any]:
        """JSON-safe representation used by the HTTP surface."""
        return self.model_dump(mode="json")
