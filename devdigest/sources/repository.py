"""Database repository for the sources table."""

import json
import logging
from datetime import datetime
from typing import Any

from devdigest.sources.schemas import FilterRules, Source, SourceStats
from devdigest.storage.database import Database

logger = logging.getLogger(__name__)

SOURCES_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id           TEXT PRIMARY KEY,
    name         TEXT NOT NULL UNIQUE,
    type         TEXT NOT NULL,
    url          TEXT NOT NULL,
    category     TEXT NOT NULL DEFAULT 'General',
    description  TEXT NOT NULL DEFAULT '',
    is_active    BOOLEAN NOT NULL DEFAULT TRUE,
    priority     INTEGER NOT NULL DEFAULT 1,
    config       JSONB NOT NULL DEFAULT '{}',
    filters      JSONB NOT NULL DEFAULT '{}',
    stats        JSONB NOT NULL DEFAULT '{}',
    last_fetched TIMESTAMPTZ,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sources_active_priority
    ON sources(priority, name) WHERE is_active = TRUE;
"""

_UPSERT_SQL = """
INSERT INTO sources (id, name, type, url, category, description, is_active, priority, config, filters)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
ON CONFLICT (id) DO UPDATE SET
    name = EXCLUDED.name,
    type = EXCLUDED.type,
    url = EXCLUDED.url,
    category = EXCLUDED.category,
    description = EXCLUDED.description,
    is_active = EXCLUDED.is_active,
    priority = EXCLUDED.priority,
    config = EXCLUDED.config,
    filters = EXCLUDED.filters,
    updated_at = NOW()
"""

_BULK_UPSERT_SQL = """
INSERT INTO sources (id, name, type, url, category, description, is_active, priority, config, filters)
SELECT * FROM unnest(
    $1::text[], $2::text[], $3::text[], $4::text[], $5::text[], $6::text[],
    $7::boolean[], $8::integer[], $9::jsonb[], $10::jsonb[]
)
ON CONFLICT (id) DO UPDATE SET
    name = EXCLUDED.name,
    type = EXCLUDED.type,
    url = EXCLUDED.url,
    category = EXCLUDED.category,
    description = EXCLUDED.description,
    is_active = EXCLUDED.is_active,
    priority = EXCLUDED.priority,
    config = EXCLUDED.config,
    filters = EXCLUDED.filters,
    updated_at = NOW()
"""

_STATS_FIELDS = (
    "total_fetched",
    "total_runs",
    "total_errors",
    "last_fetch_count",
    "last_fetch_success",
    "last_fetch_error",
)


def _load_json(value: Any) -> dict:
    if isinstance(value, str):
        value = json.loads(value)
    return dict(value) if value else {}


def _stats_from_dict(data: dict) -> SourceStats:
    return SourceStats(**{k: data[k] for k in _STATS_FIELDS if k in data})


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        id=record["id"],
        name=record["name"],
        type=record["type"],
        url=record["url"],
        category=record["category"],
        description=record["description"],
        is_active=record["is_active"],
        priority=record["priority"],
        config=_load_json(record["config"]),
        filters=FilterRules.from_dict(_load_json(record["filters"])),
        stats=_stats_from_dict(_load_json(record["stats"])),
        last_fetched=record["last_fetched"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class SourcesRepository:
    """CRUD operations for the sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(SOURCES_SCHEMA_SQL)
        logger.info("Sources table ensured")

    async def upsert(self, source: Source) -> None:
        """Insert or update a single source. Stats are left untouched."""
        await self._db.execute(
            _UPSERT_SQL,
            source.id,
            source.name,
            source.type_name,
            source.url,
            source.category,
            source.description,
            source.is_active,
            source.priority,
            json.dumps(source.config),
            json.dumps(source.filters.to_dict()),
        )

    async def bulk_upsert(self, sources: list[Source]) -> int:
        """Insert or update multiple sources in one statement.

        Returns the number of sources processed.
        """
        if not sources:
            return 0

        await self._db.execute(
            _BULK_UPSERT_SQL,
            [s.id for s in sources],
            [s.name for s in sources],
            [s.type_name for s in sources],
            [s.url for s in sources],
            [s.category for s in sources],
            [s.description for s in sources],
            [s.is_active for s in sources],
            [s.priority for s in sources],
            [json.dumps(s.config) for s in sources],
            [json.dumps(s.filters.to_dict()) for s in sources],
        )
        logger.info("Bulk upserted %d sources", len(sources))
        return len(sources)

    async def get_by_id(self, source_id: str) -> Source | None:
        row = await self._db.fetchrow("SELECT * FROM sources WHERE id = $1", source_id)
        return _record_to_source(row) if row else None

    async def list_sources(
        self,
        source_type: str | None = None,
        active_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Source], int]:
        """Paginated list with filters. Returns (sources, total)."""
        conditions: list[str] = []
        params: list = []
        idx = 1

        if active_only:
            conditions.append("is_active = TRUE")

        if source_type:
            conditions.append(f"type = ${idx}")
            params.append(source_type)
            idx += 1

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""

        total = await self._db.fetchval(f"SELECT COUNT(*) FROM sources{where_clause}", *params)

        data_sql = f"""
            SELECT * FROM sources{where_clause}
            ORDER BY priority, name
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        params.extend([limit, offset])
        rows = await self._db.fetch(data_sql, *params)

        return [_record_to_source(r) for r in rows], total or 0

    async def get_active(self) -> list[Source]:
        """All active sources, lowest priority value first."""
        rows = await self._db.fetch(
            "SELECT * FROM sources WHERE is_active = TRUE ORDER BY priority, name"
        )
        return [_record_to_source(r) for r in rows]

    async def update_stats(
        self,
        source_id: str,
        stats: SourceStats,
        last_fetched: datetime,
    ) -> bool:
        result = await self._db.execute(
            """
            UPDATE sources SET stats = $2, last_fetched = $3, updated_at = NOW()
            WHERE id = $1
            """,
            source_id,
            json.dumps({k: getattr(stats, k) for k in _STATS_FIELDS}),
            last_fetched,
        )
        return result.endswith("1")

    async def reset_stats(self) -> int:
        """Clear stats for every source. Returns the number of rows reset."""
        result = await self._db.execute(
            "UPDATE sources SET stats = '{}', last_fetched = NULL, updated_at = NOW()"
        )
        return int(result.split()[-1]) if result else 0

    async def set_active(self, source_id: str, active: bool) -> bool:
        """Toggle a source. Returns True if a row was updated."""
        result = await self._db.execute(
            "UPDATE sources SET is_active = $2, updated_at = NOW() WHERE id = $1",
            source_id,
            active,
        )
        return result.endswith("1")

    async def count(self) -> int:
        """Count total sources in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM sources")
