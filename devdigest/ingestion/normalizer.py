"""
Candidate → ContentItem normalization.

Pure transformation: no I/O, no clock reads beyond the ``fetched_at``
default. Raises ``ValueError`` (pydantic's ``ValidationError`` included)
for candidates that cannot form a valid item.
"""

import math

from devdigest.config.technologies import MAX_TECHNOLOGIES, TECHNOLOGIES, extract_technologies
from devdigest.ingestion.schemas import (
    CONTENT_MAX_CHARS,
    SUMMARY_MAX_CHARS,
    SUMMARY_PLACEHOLDER,
    TITLE_MAX_CHARS,
    Candidate,
    ContentItem,
)
from devdigest.ingestion.strategies import FetchStrategy
from devdigest.ingestion.text import clean_text, truncate
from devdigest.sources.schemas import Source

CHARS_PER_MINUTE = 200
MIN_READING_TIME = 1
MAX_READING_TIME = 120


def reading_time(title: str, text: str) -> int:
    """Estimated minutes to read, one minute per 200 characters, clamped."""
    minutes = math.ceil((len(title) + len(text)) / CHARS_PER_MINUTE)
    return max(MIN_READING_TIME, min(MAX_READING_TIME, minutes))


class Normalizer:
    """Builds ``ContentItem`` records from fetcher candidates."""

    def __init__(
        self,
        vocabulary: tuple[str, ...] = TECHNOLOGIES,
        summary_max_chars: int = SUMMARY_MAX_CHARS,
    ):
        self._vocabulary = vocabulary
        self._summary_max_chars = min(summary_max_chars, SUMMARY_MAX_CHARS)

    def normalize(
        self,
        candidate: Candidate,
        source: Source,
        strategy: FetchStrategy,
    ) -> ContentItem:
        title = truncate(clean_text(candidate.title), TITLE_MAX_CHARS)
        url = candidate.url.strip()
        if not title or not url:
            raise ValueError("Candidate is missing a title or url")

        description = clean_text(candidate.description)
        text = clean_text(candidate.text)

        summary_source = description or text
        summary = (
            truncate(summary_source, self._summary_max_chars)
            if summary_source
            else SUMMARY_PLACEHOLDER
        )

        metadata = {
            "author": candidate.author,
            "tags": list(candidate.tags),
            "word_count": len(f"{title} {text}".split()),
            "upvotes": candidate.score,
            "comments": candidate.comments,
            "source_type": source.type_name,
            "strategy": strategy.provenance(),
        }
        metadata.update(candidate.extra)

        return ContentItem(
            title=title,
            url=url,
            source=source.name,
            category=source.category,
            published_at=candidate.published_at,
            summary=summary,
            content=truncate(text, CONTENT_MAX_CHARS) if text else None,
            reading_time=reading_time(title, text),
            technologies=extract_technologies(
                f"{title} {text}", self._vocabulary, MAX_TECHNOLOGIES
            ),
            metadata=metadata,
        )
