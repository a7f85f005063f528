"""Tests for the refresh orchestrator."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from devdigest.ingestion.schemas import SourceType
from devdigest.services.refresh_service import (
    RefreshInProgressError,
    RefreshService,
    group_by_type,
    per_source_cap,
)
from devdigest.services.run_state import RefreshState
from devdigest.sources.memory import InMemorySourceRegistry
from devdigest.sources.schemas import Source


@pytest.fixture
def build_service(memory_store, test_settings, no_pacing, mock_metrics):
    def _build(sources, fetchers, **settings_overrides) -> tuple[RefreshService, InMemorySourceRegistry]:
        registry = InMemorySourceRegistry(sources)
        settings = test_settings.model_copy(update=settings_overrides)
        service = RefreshService(
            registry,
            memory_store,
            settings=settings,
            fetcher_factory=lambda client: {f.source_type: f for f in fetchers},
            pacing=no_pacing,
            metrics=mock_metrics,
        )
        return service, registry

    return _build


class TestCaps:
    @pytest.mark.parametrize(
        "max_total,count,expected",
        [(25, 5, 5), (25, 10, 3), (25, 2, 12), (25, 0, 0), (5, 1, 5)],
    )
    def test_per_source_cap(self, max_total, count, expected):
        assert per_source_cap(max_total, count) == expected

    def test_group_by_type_keeps_order(self, reddit_source, rss_source, api_source):
        second_reddit = Source(name="golang", type="reddit", url="https://www.reddit.com/r/golang")

        groups = group_by_type([reddit_source, rss_source, second_reddit, api_source])

        assert [[s.name for s in g] for g in groups] == [
            ["Python", "golang"],
            ["Example Feed"],
            ["Example Articles"],
        ]

    async def test_global_cap_split_across_sources(
        self, build_service, fake_fetcher, make_candidates, reddit_source, rss_source
    ):
        reddit = fake_fetcher(SourceType.REDDIT, {"primary": make_candidates(10, "https://e.com/r")})
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(10, "https://e.com/f")})
        service, _ = build_service([reddit_source, rss_source], [reddit, rss], max_total_items=5)

        result = await service.run()

        assert result.max_per_source == 3
        assert result.total_fetched == 5
        assert [s["item_count"] for s in result.sources] == [3, 2]


class TestGracefulDegradation:
    async def test_failing_source_does_not_abort_run(
        self,
        build_service,
        fake_fetcher,
        make_candidates,
        network_error,
        reddit_source,
        rss_source,
        api_source,
    ):
        reddit = fake_fetcher(
            SourceType.REDDIT,
            {name: network_error() for name in ("primary", "secondary", "tertiary")},
        )
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(2, "https://e.com/f")})
        api = fake_fetcher(SourceType.API, {"primary": make_candidates(3, "https://e.com/a")})
        service, registry = build_service(
            [reddit_source, rss_source, api_source], [reddit, rss, api]
        )

        result = await service.run()

        assert result.success
        assert result.state == RefreshState.COMPLETED
        assert result.total_fetched == 5
        assert result.sources_processed == 3
        assert result.per_type_stats["reddit"] == {
            "processed": 1,
            "success": 0,
            "failed": 1,
            "total_fetched": 0,
        }
        assert result.per_type_stats["rss"]["total_fetched"] == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Python:")

        stats = registry.get(reddit_source.id).stats
        assert stats.last_fetch_success is False
        assert stats.last_fetch_count == 0
        assert stats.total_errors == 1
        assert registry.get(api_source.id).stats.total_fetched == 3

    async def test_unknown_type_recorded_as_failure(
        self, build_service, fake_fetcher, make_candidates, rss_source, mock_metrics
    ):
        mastodon = Source(name="Toots", type="mastodon", url="https://m.example/@dev", priority=0)
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(2)})
        service, registry = build_service([mastodon, rss_source], [rss])

        result = await service.run()

        assert result.total_fetched == 2
        assert any("mastodon" in e for e in result.errors)
        assert registry.get(mastodon.id).stats.last_fetch_success is False
        mock_metrics.record_source_error.assert_any_call("mastodon", "config")

    async def test_registry_write_failure_is_logged(
        self, build_service, fake_fetcher, make_candidates, rss_source
    ):
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(2)})
        service, registry = build_service([rss_source], [rss])
        registry.record_fetch_outcome = AsyncMock(side_effect=RuntimeError("db down"))

        result = await service.run()

        assert result.total_fetched == 2

    async def test_no_sources(self, build_service):
        service, _ = build_service([], [])

        result = await service.run()

        assert result.state == RefreshState.COMPLETED
        assert result.total_fetched == 0
        assert result.max_per_source == 0

    async def test_registry_read_failure_completes_empty(self, build_service, rss_source):
        service, registry = build_service([rss_source], [])
        registry.list_active_sources = AsyncMock(side_effect=RuntimeError("db down"))

        result = await service.run()

        assert result.state == RefreshState.COMPLETED
        assert result.sources_processed == 0
        assert result.total_fetched == 0
        assert any("db down" in e for e in result.errors)
        assert not service.is_running


class TestRunLifecycle:
    async def test_rerun_finds_only_duplicates(
        self, build_service, fake_fetcher, make_candidates, rss_source
    ):
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(3)})
        service, _ = build_service([rss_source], [rss])

        first = await service.run()
        second = await service.run()

        assert first.total_fetched == 3
        assert second.total_fetched == 0
        assert second.sources[0]["duplicates"] >= 3
        assert second.run_id != first.run_id

    async def test_concurrent_run_rejected(
        self, build_service, fake_fetcher, make_candidates, rss_source
    ):
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(1)}, delay=0.05)
        service, _ = build_service([rss_source], [rss])

        task = asyncio.create_task(service.run())
        await asyncio.sleep(0.01)

        assert service.is_running
        with pytest.raises(RefreshInProgressError):
            await service.run()

        result = await task
        assert result.total_fetched == 1
        assert not service.is_running

    async def test_timeout_returns_partial_result(
        self, build_service, fake_fetcher, make_candidates, rss_source
    ):
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(2)}, delay=0.3)
        service, _ = build_service([rss_source], [rss], refresh_timeout_seconds=0.05)

        result = await service.run()

        assert result.state == RefreshState.TIMED_OUT
        assert result.success
        assert service.status()["in_flight_tasks"] == 1

        await service.drain()

        assert service.status()["in_flight_tasks"] == 0

    async def test_parallel_groups_by_type(
        self, build_service, fake_fetcher, make_candidates, reddit_source, rss_source
    ):
        reddit = fake_fetcher(
            SourceType.REDDIT, {"primary": make_candidates(2, "https://e.com/r")}, delay=0.01
        )
        rss = fake_fetcher(
            SourceType.RSS, {"primary": make_candidates(2, "https://e.com/f")}, delay=0.01
        )
        service, _ = build_service([reddit_source, rss_source], [reddit, rss])

        result = await service.run(parallel=True)

        assert result.total_fetched == 4
        assert result.per_type_stats["reddit"]["success"] == 1
        assert result.per_type_stats["rss"]["success"] == 1

    async def test_sources_processed_in_priority_order(
        self, build_service, fake_fetcher, rss_source
    ):
        later = Source(
            name="Later Feed", type="rss", url="https://later.example.com/feed", priority=9
        )
        rss = fake_fetcher(SourceType.RSS)
        service, _ = build_service([later, rss_source], [rss])

        await service.run()

        assert [name for name, _, _ in rss.calls[:1]] == ["Example Feed"]

    async def test_status_and_metrics_after_run(
        self, build_service, fake_fetcher, make_candidates, rss_source, mock_metrics
    ):
        rss = fake_fetcher(SourceType.RSS, {"primary": make_candidates(1)})
        service, _ = build_service([rss_source], [rss])

        result = await service.run()

        status = service.status()
        assert status["state"] == "completed"
        assert status["last_result"]["run_id"] == result.run_id
        assert "timestamp" in status["last_result"]
        mock_metrics.record_refresh.assert_called_once()
