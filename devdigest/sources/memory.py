"""In-process source registry backed by a list of Source objects.

Offers the same operations as SourcesService without a
database, for dry runs and tests.
"""

from pathlib import Path
from typing import Any

from devdigest.sources.schemas import (
    FetchOutcome,
    Source,
    SourceExistsError,
    SourceStats,
    apply_changes,
    apply_outcome,
)
from devdigest.sources.service import load_seed_file


class InMemorySourceRegistry:
    def __init__(self, sources: list[Source] | None = None):
        self._sources: dict[str, Source] = {s.id: s for s in sources or []}

    @classmethod
    def from_seed_file(cls, path: Path | None = None) -> "InMemorySourceRegistry":
        return cls(load_seed_file(path))

    def get(self, source_id: str) -> Source | None:
        return self._sources.get(source_id)

    async def list_active_sources(self) -> list[Source]:
        active = [s for s in self._sources.values() if s.is_active]
        return sorted(active, key=lambda s: (s.priority, s.name))

    async def list_sources(
        self,
        source_type: str | None = None,
        active_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Source], int]:
        sources = [
            s for s in self._sources.values()
            if (source_type is None or s.type_name == source_type)
            and (not active_only or s.is_active)
        ]
        sources.sort(key=lambda s: (s.priority, s.name))
        return sources[offset:offset + limit], len(sources)

    async def record_fetch_outcome(self, source_id: str, outcome: FetchOutcome) -> None:
        source = self._sources.get(source_id)
        if source is None:
            return
        apply_outcome(source.stats, outcome)
        source.last_fetched = outcome.timestamp

    async def reset_stats(self) -> int:
        for source in self._sources.values():
            source.stats = SourceStats()
            source.last_fetched = None
        return len(self._sources)

    async def set_active(self, source_id: str, active: bool) -> bool:
        source = self._sources.get(source_id)
        if source is None:
            return False
        source.is_active = active
        return True

    async def create_source(self, source: Source) -> Source:
        source.parse_config()
        if source.id in self._sources:
            raise SourceExistsError(f"Source already exists: {source.id}")
        self._sources[source.id] = source
        return source

    async def update_source(self, source_id: str, changes: dict[str, Any]) -> Source | None:
        existing = self._sources.get(source_id)
        if existing is None:
            return None
        updated = apply_changes(existing, changes)
        updated.parse_config()
        self._sources[source_id] = updated
        return updated
