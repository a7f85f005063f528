"""Sources: the catalog of configured content origins and their stats."""

from devdigest.sources.config import SourcesConfig
from devdigest.sources.memory import InMemorySourceRegistry
from devdigest.sources.repository import SourcesRepository
from devdigest.sources.schemas import (
    FetchOutcome,
    FilterRules,
    Source,
    SourceConfigError,
    SourceStats,
)
from devdigest.sources.service import SourcesService, load_seed_file

__all__ = [
    "FetchOutcome",
    "FilterRules",
    "InMemorySourceRegistry",
    "Source",
    "SourceConfigError",
    "SourceStats",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
    "load_seed_file",
]
