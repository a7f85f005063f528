"""Sources service with caching and seed support."""

import json
import logging
import time
from pathlib import Path
from typing import Any

from devdigest.sources.config import SourcesConfig
from devdigest.sources.repository import SourcesRepository
from devdigest.sources.schemas import (
    FetchOutcome,
    FilterRules,
    Source,
    SourceExistsError,
    apply_changes,
    apply_outcome,
)
from devdigest.storage.database import Database

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_sources.json"


def _parse_seed_entry(entry: dict) -> Source:
    """Convert a JSON seed entry to a Source dataclass."""
    return Source(
        id=entry.get("id", ""),
        name=entry["name"],
        type=entry["type"],
        url=entry["url"],
        category=entry.get("category", "General"),
        description=entry.get("description", ""),
        is_active=entry.get("is_active", True),
        priority=entry.get("priority", 1),
        config=entry.get("config", {}),
        filters=FilterRules.from_dict(entry.get("filters")),
    )


def load_seed_file(path: Path | None = None) -> list[Source]:
    """Read a JSON source catalog."""
    with open(path or _SEED_FILE) as f:
        entries = json.load(f)
    return [_parse_seed_entry(e) for e in entries]


class SourcesService:
    """Cached access to sources with seed support.

    Wraps SourcesRepository with a TTL cache for the active source list
    so that repeated refreshes avoid a DB round-trip each time.
    """

    def __init__(
        self,
        database: Database,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)

        self._active_cache: list[Source] | None = None
        self._active_cached_at: float = 0.0

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    async def list_active_sources(self) -> list[Source]:
        """Active sources ordered by priority (cached)."""
        now = time.monotonic()
        ttl = self._config.cache_ttl_seconds
        if self._active_cache is not None and (now - self._active_cached_at) < ttl:
            return list(self._active_cache)

        sources = await self._repo.get_active()
        self._active_cache = sources
        self._active_cached_at = now
        return list(sources)

    async def list_sources(
        self,
        source_type: str | None = None,
        active_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Source], int]:
        return await self._repo.list_sources(
            source_type=source_type,
            active_only=active_only,
            limit=limit,
            offset=offset,
        )

    async def record_fetch_outcome(self, source_id: str, outcome: FetchOutcome) -> None:
        """Fold a fetch outcome into the stored stats for a source."""
        source = await self._repo.get_by_id(source_id)
        if source is None:
            logger.warning("Cannot record outcome for unknown source %s", source_id)
            return

        apply_outcome(source.stats, outcome)
        await self._repo.update_stats(source_id, source.stats, outcome.timestamp)
        self.invalidate_cache()

    async def reset_stats(self) -> int:
        count = await self._repo.reset_stats()
        self.invalidate_cache()
        logger.info("Reset stats for %d sources", count)
        return count

    async def set_active(self, source_id: str, active: bool) -> bool:
        updated = await self._repo.set_active(source_id, active)
        self.invalidate_cache()
        return updated

    async def create_source(self, source: Source) -> Source:
        """Validate and insert a new source.

        Raises:
            SourceConfigError: Config does not match the source type.
            SourceExistsError: A source with the same id already exists.
        """
        source.parse_config()
        if await self._repo.get_by_id(source.id) is not None:
            raise SourceExistsError(f"Source already exists: {source.id}")

        await self._repo.upsert(source)
        self.invalidate_cache()
        logger.info("Created source %s (%s)", source.id, source.type_name)
        return await self._repo.get_by_id(source.id) or source

    async def update_source(self, source_id: str, changes: dict[str, Any]) -> Source | None:
        """Apply field changes to an existing source.

        Returns the updated source, or None if it does not exist.

        Raises:
            SourceConfigError: The resulting type and config do not match.
        """
        existing = await self._repo.get_by_id(source_id)
        if existing is None:
            return None

        updated = apply_changes(existing, changes)
        updated.parse_config()
        await self._repo.upsert(updated)
        self.invalidate_cache()
        logger.info("Updated source %s: %s", source_id, ", ".join(sorted(changes)))
        return await self._repo.get_by_id(source_id) or updated

    def invalidate_cache(self) -> None:
        """Force-clear the cache so next access hits the DB."""
        self._active_cache = None
        self._active_cached_at = 0.0

    # ── Seed ────────────────────────────────────────────────────

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Load sources from a JSON file into the database.

        Returns the number of sources upserted.
        """
        sources = load_seed_file(path)
        count = await self._repo.bulk_upsert(sources)
        self.invalidate_cache()
        logger.info("Seeded %d sources from %s", count, path or _SEED_FILE)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from default JSON if the table is empty and seed_on_init is True."""
        if not self._config.seed_on_init:
            return

        existing = await self._repo.count()
        if existing > 0:
            logger.debug("Sources table has %d rows, skipping seed", existing)
            return

        logger.info("Sources table empty, seeding from default JSON")
        await self.seed_from_json()
