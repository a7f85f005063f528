"""
Content repository for ContentItem persistence.

The ``url`` column is the primary key, so concurrent saves of the same
URL are resolved by the database: the loser gets ``DuplicateKeyError``.
"""

import json
import logging
from datetime import datetime
from typing import Any

import asyncpg

from devdigest.ingestion.schemas import ContentItem, Sentiment
from devdigest.storage.database import Database

logger = logging.getLogger(__name__)


class DuplicateKeyError(Exception):
    """Raised when saving an item whose URL is already stored."""

    def __init__(self, url: str):
        super().__init__(f"Content with url {url!r} already exists")
        self.url = url


CONTENT_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS content_items (
    url          TEXT PRIMARY KEY,
    title        TEXT NOT NULL,
    source       TEXT NOT NULL,
    category     TEXT NOT NULL DEFAULT 'General',
    published_at TIMESTAMPTZ NOT NULL,
    summary      TEXT NOT NULL,
    content      TEXT,
    sentiment    TEXT NOT NULL DEFAULT 'neutral',
    reading_time INTEGER NOT NULL DEFAULT 1,
    technologies TEXT[] NOT NULL DEFAULT '{}',
    is_processed BOOLEAN NOT NULL DEFAULT FALSE,
    analysis     JSONB,
    metadata     JSONB NOT NULL DEFAULT '{}',
    fetched_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_content_created_at
    ON content_items(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_content_source
    ON content_items(source);
CREATE INDEX IF NOT EXISTS idx_content_category
    ON content_items(category);
CREATE INDEX IF NOT EXISTS idx_content_unprocessed
    ON content_items(created_at) WHERE is_processed = FALSE;
"""

_INSERT_SQL = """
INSERT INTO content_items (
    url, title, source, category, published_at,
    summary, content, sentiment, reading_time, technologies,
    is_processed, analysis, metadata, fetched_at
) VALUES (
    $1, $2, $3, $4, $5,
    $6, $7, $8, $9, $10,
    $11, $12, $13, $14
)
"""


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_item(row: asyncpg.Record) -> ContentItem:
    """Convert database row to ContentItem."""
    return ContentItem(
        url=row["url"],
        title=row["title"],
        source=row["source"],
        category=row["category"],
        published_at=row["published_at"],
        summary=row["summary"],
        content=row["content"],
        sentiment=Sentiment(row["sentiment"]),
        reading_time=row["reading_time"],
        technologies=list(row["technologies"] or []),
        is_processed=row["is_processed"],
        analysis=_load_json(row["analysis"]),
        metadata=_load_json(row["metadata"]) or {},
        fetched_at=row["fetched_at"],
    )


class ContentRepository:
    """
    Repository for content item storage and retrieval.

    Tables:
        - content_items: one row per unique URL
    """

    def __init__(self, database: Database):
        self._db = database

    async def create_tables(self) -> None:
        """Create the content table and indexes (idempotent)."""
        await self._db.execute(CONTENT_SCHEMA_SQL)
        logger.info("Content table ensured")

    async def find_by_url(
        self, url: str, since: datetime | None = None
    ) -> ContentItem | None:
        """
        Look up an item by URL.

        Args:
            url: Canonical item URL
            since: Only match items stored at or after this time

        Returns:
            The stored item or None
        """
        if since is None:
            row = await self._db.fetchrow(
                "SELECT * FROM content_items WHERE url = $1", url
            )
        else:
            row = await self._db.fetchrow(
                "SELECT * FROM content_items WHERE url = $1 AND created_at >= $2",
                url,
                since,
            )
        return _row_to_item(row) if row else None

    async def save(self, item: ContentItem) -> None:
        """
        Insert a new item.

        Raises:
            DuplicateKeyError: An item with the same URL already exists.
        """
        try:
            await self._db.execute(
                _INSERT_SQL,
                item.url,
                item.title,
                item.source,
                item.category,
                item.published_at,
                item.summary,
                item.content,
                item.sentiment.value,
                item.reading_time,
                item.technologies,
                item.is_processed,
                json.dumps(item.analysis) if item.analysis is not None else None,
                json.dumps(item.metadata, default=str),
                item.fetched_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(item.url) from e

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        category: str | None = None,
        source: str | None = None,
    ) -> tuple[list[ContentItem], int]:
        """Paginated listing, newest first. Returns (items, total)."""
        conditions: list[str] = []
        params: list = []
        idx = 1

        if category:
            conditions.append(f"category = ${idx}")
            params.append(category)
            idx += 1

        if source:
            conditions.append(f"source = ${idx}")
            params.append(source)
            idx += 1

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""

        total = await self._db.fetchval(
            f"SELECT COUNT(*) FROM content_items{where_clause}", *params
        )

        data_sql = f"""
            SELECT * FROM content_items{where_clause}
            ORDER BY published_at DESC
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        params.extend([limit, offset])
        rows = await self._db.fetch(data_sql, *params)

        return [_row_to_item(r) for r in rows], total or 0

    async def list_unprocessed(self, limit: int = 20) -> list[ContentItem]:
        """Items still waiting for summarization, oldest first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM content_items
            WHERE is_processed = FALSE
            ORDER BY created_at
            LIMIT $1
            """,
            limit,
        )
        return [_row_to_item(r) for r in rows]

    async def mark_processed(
        self,
        url: str,
        analysis: dict[str, Any],
        reading_time: int | None = None,
    ) -> bool:
        """Store an analysis and flag the item as processed."""
        result = await self._db.execute(
            """
            UPDATE content_items
            SET is_processed = TRUE,
                analysis = $2,
                reading_time = COALESCE($3, reading_time)
            WHERE url = $1
            """,
            url,
            json.dumps(analysis),
            reading_time,
        )
        return result.endswith("1")

    async def count(self) -> int:
        """Count stored items."""
        return await self._db.fetchval("SELECT COUNT(*) FROM content_items")
