"""Data ingestion module - fetchers, strategies, schemas, and normalization."""

from devdigest.ingestion.schemas import (
    ApiRaw,
    Candidate,
    ContentItem,
    RedditRaw,
    RssRaw,
    SourceType,
)
from devdigest.ingestion.strategies import FetchStrategy, LeniencyTier

__all__ = [
    "ApiRaw",
    "Candidate",
    "ContentItem",
    "FetchStrategy",
    "LeniencyTier",
    "RedditRaw",
    "RssRaw",
    "SourceType",
]
