"""Tests for the click CLI."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from devdigest.cli import main
from devdigest.services.refresh_service import RefreshResult
from devdigest.services.run_state import RefreshState
from devdigest.summarization.service import SummarizationStats


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def refresh_result() -> RefreshResult:
    return RefreshResult(
        run_id="abc123",
        state=RefreshState.COMPLETED,
        total_fetched=4,
        sources_processed=2,
        per_type_stats={
            "reddit": {"processed": 1, "success": 0, "failed": 1, "total_fetched": 0},
            "rss": {"processed": 1, "success": 1, "failed": 0, "total_fetched": 4},
            "api": {"processed": 0, "success": 0, "failed": 0, "total_fetched": 0},
        },
        duration_ms=1200,
        max_total=25,
        max_per_source=12,
        errors=["Python: connection reset"],
    )


@pytest.fixture
def fake_refresh_service(monkeypatch, refresh_result):
    instances = []

    class FakeRefreshService:
        def __init__(self, registry, store, **kwargs):
            self.registry = registry
            self.store = store
            self.run = AsyncMock(return_value=refresh_result)
            self.drain = AsyncMock()
            instances.append(self)

    monkeypatch.setattr(
        "devdigest.services.refresh_service.RefreshService", FakeRefreshService
    )
    return instances


@pytest.fixture
def fake_database(monkeypatch):
    class FakeDatabase:
        connect_error: Exception | None = None

        instances: list = []

        def __init__(self, *args, **kwargs):
            self.connect = AsyncMock(side_effect=self.connect_error)
            self.close = AsyncMock()
            self.health_check = AsyncMock(return_value=True)
            self.run_script = AsyncMock()
            self.instances.append(self)

    monkeypatch.setattr("devdigest.storage.database.Database", FakeDatabase)
    return FakeDatabase


def test_help_lists_commands(runner):
    result = runner.invoke(main, ["--help"])

    assert result.exit_code == 0
    for command in ("refresh", "summarize", "init-db", "seed-sources", "status", "serve", "health"):
        assert command in result.output


class TestRefreshCommand:
    def test_dry_run_json(self, runner, fake_refresh_service):
        result = runner.invoke(main, ["refresh", "--dry-run", "--json", "--parallel", "--force"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["total_fetched"] == 4
        assert data["success"] is True

        (service,) = fake_refresh_service
        service.run.assert_awaited_once_with(parallel=True, force=True)
        service.drain.assert_awaited_once()
        assert type(service.store).__name__ == "InMemoryContentStore"

    def test_dry_run_summary(self, runner, fake_refresh_service):
        result = runner.invoke(main, ["refresh", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Refresh completed (1200 ms)" in result.output
        assert "New items:         4/25" in result.output
        assert "rss    1/1 ok, 4 items" in result.output
        assert "api" not in result.output.split("Per-source cap")[1].split("source(s) failed")[0]
        assert "Python: connection reset" in result.output


class TestDatabaseCommands:
    def test_summarize(self, runner, fake_database, monkeypatch):
        service = MagicMock()
        service.summarize_pending = AsyncMock(
            return_value=SummarizationStats(processed=3, model=1, fallback=2)
        )
        monkeypatch.setattr(
            "devdigest.summarization.service.SummarizationService", lambda store: service
        )

        result = runner.invoke(main, ["summarize", "--limit", "3"])

        assert result.exit_code == 0, result.output
        assert "Summarized 3 items (1 model, 2 fallback, 0 errors)" in result.output
        service.summarize_pending.assert_awaited_once_with(3)

    def test_seed_sources(self, runner, fake_database, monkeypatch):
        service = MagicMock()
        service.repository.create_table = AsyncMock()
        service.seed_from_json = AsyncMock(return_value=13)
        monkeypatch.setattr("devdigest.sources.service.SourcesService", lambda db: service)

        result = runner.invoke(main, ["seed-sources"])

        assert result.exit_code == 0, result.output
        assert "Seeded 13 sources" in result.output
        service.seed_from_json.assert_awaited_once_with(None)

    def test_init_db_creates_both_schemas(self, runner, fake_database):
        result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "Database initialized successfully" in result.output
        (db,) = fake_database.instances
        statements = db.run_script.await_args.args
        assert "CREATE TABLE IF NOT EXISTS content_items" in statements[0]
        assert "CREATE TABLE IF NOT EXISTS sources" in statements[1]
        db.close.assert_awaited_once()

    def test_reset_stats_requires_confirmation(self, runner, fake_database):
        result = runner.invoke(main, ["reset-stats"], input="n\n")

        assert result.exit_code == 1
        assert "Aborted" in result.output

    def test_health_reports_unreachable_database(self, runner, fake_database):
        fake_database.connect_error = OSError("connection refused")

        result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "postgres: False" in result.output
        assert "Database unreachable!" in result.output

    def test_health_ok(self, runner, fake_database):
        result = runner.invoke(main, ["health"])

        assert result.exit_code == 0
        assert "All core services healthy!" in result.output
