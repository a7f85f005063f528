"""Fixtures for API tests: the app with in-memory services injected."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from devdigest.api.app import create_app
from devdigest.api.dependencies import (
    get_content_store,
    get_database,
    get_refresh_service,
    get_sources_service,
    get_summarization_service,
)
from devdigest.ingestion.pacing import PacingPolicy
from devdigest.services.refresh_service import RefreshService
from devdigest.sources.memory import InMemorySourceRegistry
from devdigest.summarization.service import SummarizationService


@pytest.fixture
def registry(reddit_source, rss_source, api_source) -> InMemorySourceRegistry:
    return InMemorySourceRegistry([reddit_source, rss_source, api_source])


@pytest.fixture
def mock_database() -> MagicMock:
    db = MagicMock()
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def refresh_service(memory_store, test_settings, mock_metrics) -> RefreshService:
    # No sources, so a run completes without touching the network
    return RefreshService(
        InMemorySourceRegistry([]),
        memory_store,
        settings=test_settings,
        pacing=PacingPolicy.no_delay(),
        metrics=mock_metrics,
    )


@pytest.fixture
def app(registry, memory_store, mock_database, refresh_service, mock_metrics):
    app = create_app(configure_logging=False)
    app.dependency_overrides[get_sources_service] = lambda: registry
    app.dependency_overrides[get_content_store] = lambda: memory_store
    app.dependency_overrides[get_database] = lambda: mock_database
    app.dependency_overrides[get_refresh_service] = lambda: refresh_service
    app.dependency_overrides[get_summarization_service] = lambda: SummarizationService(
        memory_store, metrics=mock_metrics
    )
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
