"""
Refresh service - runs one aggregation pass over all active sources.

Features:
- Global item cap split fairly across sources
- Sequential or per-type parallel dispatch
- Wall-clock budget that stops launching new sources
- Per-type statistics and per-source outcomes recorded in the registry
- Never lets a single source's failure escape the run
"""

import asyncio
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

import structlog

from devdigest.config.settings import Settings, get_settings
from devdigest.ingestion.api_fetcher import APIFetcher
from devdigest.ingestion.base_fetcher import BaseFetcher
from devdigest.ingestion.deduplication import Deduplicator
from devdigest.ingestion.http_client import HTTPClient, RetryConfig
from devdigest.ingestion.pacing import PacingPolicy
from devdigest.ingestion.reddit_fetcher import RedditFetcher, RedditTokenProvider
from devdigest.ingestion.rss_fetcher import RSSFetcher
from devdigest.ingestion.schemas import SourceType
from devdigest.observability.logging import log_context
from devdigest.observability.metrics import MetricsCollector, get_metrics
from devdigest.services.run_state import RefreshRun, RefreshState
from devdigest.services.strategy_executor import (
    ContentStore,
    ProgressiveStrategyExecutor,
    SourceFetchResult,
)
from devdigest.sources.schemas import FetchOutcome, Source, SourceConfigError

logger = structlog.get_logger(__name__)

FetcherFactory = Callable[[HTTPClient], dict[SourceType, BaseFetcher]]


class RefreshInProgressError(Exception):
    """Raised when a refresh is requested while another one is running."""


class SourceRegistry(Protocol):
    async def list_active_sources(self) -> list[Source]: ...

    async def record_fetch_outcome(self, source_id: str, outcome: FetchOutcome) -> None: ...


@dataclass
class RefreshResult:
    """Structured outcome of a refresh run. ``success`` is always True."""

    run_id: str
    state: RefreshState
    total_fetched: int
    sources_processed: int
    per_type_stats: dict[str, Any]
    duration_ms: int
    max_total: int
    max_per_source: int
    forced: bool = False
    errors: list[str] = field(default_factory=list)
    sources: list[dict[str, Any]] = field(default_factory=list)
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "run_id": self.run_id,
            "state": self.state.value,
            "total_fetched": self.total_fetched,
            "sources_processed": self.sources_processed,
            "per_type_stats": self.per_type_stats,
            "duration_ms": self.duration_ms,
            "max_total": self.max_total,
            "max_per_source": self.max_per_source,
            "forced": self.forced,
            "errors": self.errors,
            "sources": self.sources,
            "timestamp": self.finished_at.isoformat(),
        }


def per_source_cap(max_total: int, source_count: int, minimum: int = 3) -> int:
    """Fair share of the global cap, never below ``minimum``."""
    if source_count <= 0:
        return 0
    return max(minimum, max_total // source_count)


def create_fetchers(
    client: HTTPClient,
    settings: Settings | None = None,
) -> dict[SourceType, BaseFetcher]:
    """Default fetcher set, sharing one HTTP client."""
    settings = settings or get_settings()
    token_provider = None
    if settings.reddit_configured:
        token_provider = RedditTokenProvider(client)
        logger.info("Reddit OAuth enabled")

    return {
        SourceType.REDDIT: RedditFetcher(client, token_provider=token_provider),
        SourceType.RSS: RSSFetcher(client),
        SourceType.API: APIFetcher(client),
    }


def group_by_type(sources: list[Source]) -> list[list[Source]]:
    """Split sources into per-type groups, keeping priority order in each."""
    groups: dict[str, list[Source]] = {}
    for source in sources:
        groups.setdefault(source.type_name, []).append(source)
    return list(groups.values())


class RefreshService:
    """
    Orchestrates a refresh over all active sources.

    Usage:
        service = RefreshService(registry, store)
        result = await service.run()
    """

    def __init__(
        self,
        registry: SourceRegistry,
        store: ContentStore,
        settings: Settings | None = None,
        fetcher_factory: FetcherFactory | None = None,
        pacing: PacingPolicy | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_settings()
        self._registry = registry
        self._store = store
        self._fetcher_factory = fetcher_factory or (
            lambda client: create_fetchers(client, self._settings)
        )
        self._pacing = pacing or PacingPolicy.from_settings(self._settings)
        self._metrics = metrics or get_metrics()
        self._clock = clock

        self._state = RefreshState.IDLE
        self._last_result: RefreshResult | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == RefreshState.RUNNING

    @property
    def last_result(self) -> RefreshResult | None:
        return self._last_result

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "is_running": self.is_running,
            "in_flight_tasks": len(self._background),
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }

    async def run(self, parallel: bool | None = None, force: bool = False) -> RefreshResult:
        """
        Run one refresh pass.

        Args:
            parallel: Process source-type groups concurrently (default from settings)
            force: Only deduplicate against recently stored items

        Raises:
            RefreshInProgressError: Another run is still in progress
        """
        if self.is_running:
            raise RefreshInProgressError("A refresh is already running")

        self._state = RefreshState.RUNNING
        parallel = self._settings.parallel_refresh if parallel is None else parallel
        started = self._clock()
        run = RefreshRun(
            max_total=self._settings.max_total_items,
            deadline=started + self._settings.refresh_timeout_seconds,
            clock=self._clock,
            force=force,
        )
        try:
            with log_context(run_id=run.run_id):
                result = await self._run(run, parallel, started)
        except BaseException:
            self._state = RefreshState.IDLE
            raise

        self._state = result.state
        self._last_result = result
        self._metrics.record_refresh(result.state.value, result.duration_ms / 1000, result.total_fetched)
        return result

    async def _run(self, run: RefreshRun, parallel: bool, started: float) -> RefreshResult:
        try:
            sources = await self._registry.list_active_sources()
        except Exception as e:
            logger.error("Failed to load active sources", error=str(e), exc_info=True)
            run.errors.append(f"registry: {e}")
            sources = []

        cap = per_source_cap(
            self._settings.max_total_items,
            len(sources),
            self._settings.min_items_per_source,
        )

        logger.info(
            "Refresh started",
            sources=len(sources),
            max_total=run.max_total,
            max_per_source=cap,
            parallel=parallel,
            force=run.force,
        )

        pending: set[asyncio.Task] = set()
        stack = AsyncExitStack()
        try:
            if sources:
                client = await stack.enter_async_context(
                    HTTPClient(RetryConfig.from_settings(self._settings))
                )
                executor = self._build_executor(client, run.force)
                groups = group_by_type(sources) if parallel else [sources]
                tasks = {
                    asyncio.create_task(
                        self._process_group(run, group, executor, cap),
                        name=f"refresh_{run.run_id}_{i}",
                    )
                    for i, group in enumerate(groups)
                }

                done, pending = await asyncio.wait(tasks, timeout=run.time_left())
                for task in done:
                    if not task.cancelled() and task.exception() is not None:
                        error = task.exception()
                        logger.error("Refresh group failed", error=str(error))
                        run.errors.append(f"group: {error}")
        finally:
            if pending:
                run.timed_out = True
                self._drain_in_background(pending, stack, run)
            else:
                await stack.aclose()

        state = RefreshState.TIMED_OUT if run.timed_out else RefreshState.COMPLETED
        result = RefreshResult(
            run_id=run.run_id,
            state=state,
            total_fetched=run.accepted,
            sources_processed=len(run.source_results),
            per_type_stats=run.per_type_dict(),
            duration_ms=int((self._clock() - started) * 1000),
            max_total=run.max_total,
            max_per_source=cap,
            forced=run.force,
            errors=list(run.errors),
            sources=[r.to_dict() for r in run.source_results],
        )

        logger.info(
            "Refresh finished",
            state=state.value,
            total_fetched=result.total_fetched,
            sources_processed=result.sources_processed,
            errors=len(result.errors),
            duration_ms=result.duration_ms,
        )
        return result

    def _build_executor(self, client: HTTPClient, force: bool) -> ProgressiveStrategyExecutor:
        window = timedelta(hours=self._settings.dedup_window_hours) if force else None
        return ProgressiveStrategyExecutor(
            fetchers=self._fetcher_factory(client),
            store=self._store,
            deduplicator=Deduplicator(self._store, window=window),
            pacing=self._pacing,
            good_enough_ratio=self._settings.good_enough_ratio,
            desperate_ratio=self._settings.desperate_ratio,
            metrics=self._metrics,
        )

    def _drain_in_background(
        self,
        pending: set[asyncio.Task],
        stack: AsyncExitStack,
        run: RefreshRun,
    ) -> None:
        """Let in-flight sources finish after the deadline, then close resources."""
        logger.warning("Refresh budget exceeded, leaving in-flight work running", tasks=len(pending))

        async def finish() -> None:
            try:
                await asyncio.wait(pending)
            finally:
                await stack.aclose()
            logger.info("In-flight refresh work finished", run_id=run.run_id, accepted=run.accepted)

        task = asyncio.create_task(finish(), name=f"refresh_{run.run_id}_drain")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for work left running by timed-out refreshes."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _process_group(
        self,
        run: RefreshRun,
        sources: list[Source],
        executor: ProgressiveStrategyExecutor,
        cap: int,
    ) -> None:
        for index, source in enumerate(sources):
            if run.expired():
                run.timed_out = True
                logger.warning("Refresh deadline reached, not starting more sources")
                return
            if run.exhausted:
                logger.info("Global item cap reached", accepted=run.accepted)
                return

            if index > 0:
                await self._pacing.between_sources(run.deadline)

            await self._process_source(run, source, executor, cap)

    async def _process_source(
        self,
        run: RefreshRun,
        source: Source,
        executor: ProgressiveStrategyExecutor,
        cap: int,
    ) -> SourceFetchResult | None:
        target = min(cap, run.remaining)
        if target <= 0:
            return None

        try:
            result = await executor.execute(source, target, run)
        except SourceConfigError as e:
            logger.warning("Source skipped", source=source.name, error=str(e))
            self._metrics.record_source_error(source.type_name, "config")
            result = SourceFetchResult.failed(source, target, str(e))
        except Exception as e:
            logger.error("Source processing failed", source=source.name, error=str(e), exc_info=True)
            self._metrics.record_source_error(source.type_name, type(e).__name__)
            result = SourceFetchResult.failed(source, target, f"{type(e).__name__}: {e}")

        if not result.success and result.yields:
            self._metrics.record_source_error(source.type_name, "fetch")

        run.record_source(source, result)

        outcome = FetchOutcome(
            success=result.success,
            item_count=result.accepted,
            error=result.error,
        )
        try:
            await self._registry.record_fetch_outcome(source.id, outcome)
        except Exception as e:
            logger.warning("Failed to record source outcome", source=source.name, error=str(e))

        return result
