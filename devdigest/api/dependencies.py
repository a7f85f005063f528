"""
Dependency injection for FastAPI endpoints.

Services are created lazily on first use and shared for the life of the
process. Tests replace them through ``app.dependency_overrides``.
"""

from devdigest.services.refresh_service import RefreshService
from devdigest.sources.service import SourcesService
from devdigest.storage.database import close_database, get_database
from devdigest.storage.repository import ContentRepository
from devdigest.summarization.service import SummarizationService

# Global service instances (initialized on first request)
_sources_service: SourcesService | None = None
_content_repository: ContentRepository | None = None
_refresh_service: RefreshService | None = None
_summarization_service: SummarizationService | None = None


async def get_sources_service() -> SourcesService:
    """Get the sources service, seeding the catalog if the table is empty."""
    global _sources_service

    if _sources_service is None:
        database = await get_database()
        service = SourcesService(database)
        await service.repository.create_table()
        await service.ensure_seeded()
        _sources_service = service

    return _sources_service


async def get_content_store() -> ContentRepository:
    global _content_repository

    if _content_repository is None:
        database = await get_database()
        repository = ContentRepository(database)
        await repository.create_tables()
        _content_repository = repository

    return _content_repository


async def get_refresh_service() -> RefreshService:
    """
    Get the refresh service.

    One instance per process, so the in-progress guard covers every request.
    """
    global _refresh_service

    if _refresh_service is None:
        _refresh_service = RefreshService(
            registry=await get_sources_service(),
            store=await get_content_store(),
        )

    return _refresh_service


async def get_summarization_service() -> SummarizationService:
    global _summarization_service

    if _summarization_service is None:
        _summarization_service = SummarizationService(await get_content_store())

    return _summarization_service


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _sources_service, _content_repository, _refresh_service, _summarization_service

    if _refresh_service is not None:
        await _refresh_service.drain()
        _refresh_service = None

    _sources_service = None
    _content_repository = None
    _summarization_service = None

    await close_database()
