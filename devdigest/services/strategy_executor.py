"""
Progressive strategy executor.

Tries a source's strategies in order until the source's target is met:

1. Each strategy's candidates go through normalize → filter → dedup → save,
   stopping as soon as the target (or the run budget) is reached.
2. A strategy that alone yields at least ``good_enough_ratio`` of the
   target ends exploration early.
3. When all regular strategies together stay below ``desperate_ratio`` of
   the target, the fetcher's desperate strategies are tried as well.

A strategy that fails is logged and recorded with zero yield; the next
strategy still runs. No strategy is attempted once the target is met.
"""

import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

import structlog

from devdigest.ingestion.base_fetcher import BaseFetcher, FetchError
from devdigest.ingestion.deduplication import Deduplicator
from devdigest.ingestion.filters import FilterEngine
from devdigest.ingestion.http_client import HTTPClientError
from devdigest.ingestion.normalizer import Normalizer
from devdigest.ingestion.pacing import PacingPolicy
from devdigest.ingestion.schemas import Candidate, ContentItem, SourceType
from devdigest.ingestion.strategies import FetchStrategy
from devdigest.observability.metrics import MetricsCollector, get_metrics
from devdigest.services.run_state import RefreshRun
from devdigest.sources.schemas import Source, SourceConfigError
from devdigest.storage.repository import DuplicateKeyError

logger = structlog.get_logger(__name__)

ACCEPTED = "accepted"
DUPLICATE = "duplicate"
FILTERED = "filtered"
INVALID = "invalid"
NO_BUDGET = "no_budget"


class ContentStore(Protocol):
    async def find_by_url(self, url: str, since=None) -> ContentItem | None: ...

    async def save(self, item: ContentItem) -> None: ...


@dataclass
class StrategyYield:
    """What a single strategy attempt produced."""

    strategy: str
    tier: str
    fetched: int = 0
    accepted: int = 0
    duplicates: int = 0
    filtered: int = 0
    invalid: int = 0
    error: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "tier": self.tier,
            "fetched": self.fetched,
            "accepted": self.accepted,
            "duplicates": self.duplicates,
            "filtered": self.filtered,
            "invalid": self.invalid,
            "error": self.error,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass
class SourceFetchResult:
    """Outcome of processing one source."""

    source_id: str
    source_name: str
    source_type: str
    target: int
    items: list[ContentItem] = field(default_factory=list)
    yields: list[StrategyYield] = field(default_factory=list)
    success: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, source: Source, target: int, error: str) -> "SourceFetchResult":
        return cls(
            source_id=source.id,
            source_name=source.name,
            source_type=source.type_name,
            target=target,
            success=False,
            error=error,
        )

    @property
    def accepted(self) -> int:
        return len(self.items)

    @property
    def duplicates(self) -> int:
        return sum(y.duplicates for y in self.yields)

    @property
    def filtered(self) -> int:
        return sum(y.filtered for y in self.yields)

    @property
    def any_succeeded(self) -> bool:
        return any(y.succeeded for y in self.yields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "source": self.source_name,
            "type": self.source_type,
            "target": self.target,
            "success": self.success,
            "item_count": self.accepted,
            "duplicates": self.duplicates,
            "filtered": self.filtered,
            "error": self.error,
            "strategies": [y.to_dict() for y in self.yields],
        }


class ProgressiveStrategyExecutor:
    """Runs a source's strategy ladder against one target count."""

    def __init__(
        self,
        fetchers: dict[SourceType, BaseFetcher],
        store: ContentStore,
        deduplicator: Deduplicator | None = None,
        normalizer: Normalizer | None = None,
        filter_engine: FilterEngine | None = None,
        pacing: PacingPolicy | None = None,
        good_enough_ratio: float = 0.6,
        desperate_ratio: float = 0.3,
        metrics: MetricsCollector | None = None,
    ):
        self._fetchers = fetchers
        self._store = store
        self._dedup = deduplicator or Deduplicator(store)
        self._normalizer = normalizer or Normalizer()
        self._filters = filter_engine or FilterEngine()
        self._pacing = pacing or PacingPolicy()
        self._good_enough_ratio = good_enough_ratio
        self._desperate_ratio = desperate_ratio
        self._metrics = metrics or get_metrics()

    @property
    def dedup_window(self) -> timedelta | None:
        return self._dedup.window

    def fetcher_for(self, source: Source) -> BaseFetcher:
        fetcher = self._fetchers.get(source.type) if isinstance(source.type, SourceType) else None
        if fetcher is None:
            raise SourceConfigError(f"No fetcher for source type {source.type_name!r}")
        return fetcher

    async def execute(
        self,
        source: Source,
        target: int,
        run: RefreshRun | None = None,
    ) -> SourceFetchResult:
        """
        Fetch up to ``target`` new items for ``source``.

        Raises:
            SourceConfigError: Unknown type or invalid type-specific config.
        """
        result = SourceFetchResult(
            source_id=source.id,
            source_name=source.name,
            source_type=source.type_name,
            target=target,
        )
        if target <= 0:
            result.success = True
            return result

        fetcher = self.fetcher_for(source)
        config = source.parse_config()

        await self._run_ladder(fetcher, source, fetcher.strategies(source, config), result, run)

        if result.accepted < self._desperate_ratio * target and not self._halted(result, run):
            desperate = fetcher.desperate_strategies(source, config)
            if desperate:
                logger.info(
                    "Low yield, trying desperate strategies",
                    source=source.name,
                    accepted=result.accepted,
                    target=target,
                )
                await self._run_ladder(fetcher, source, desperate, result, run)

        result.success = result.any_succeeded
        if not result.success:
            errors = [y.error for y in result.yields if y.error]
            result.error = errors[-1] if errors else "no strategy attempted"

        logger.info(
            "Source processed",
            source=source.name,
            accepted=result.accepted,
            target=target,
            duplicates=result.duplicates,
            filtered=result.filtered,
            strategies=len(result.yields),
            success=result.success,
        )
        return result

    def _halted(self, result: SourceFetchResult, run: RefreshRun | None) -> bool:
        if result.accepted >= result.target:
            return True
        return run is not None and run.should_stop()

    async def _run_ladder(
        self,
        fetcher: BaseFetcher,
        source: Source,
        strategies: list[FetchStrategy],
        result: SourceFetchResult,
        run: RefreshRun | None,
    ) -> None:
        for strategy in strategies:
            if self._halted(result, run):
                return

            if strategy.retry_only and result.any_succeeded:
                self._metrics.record_strategy(source.type_name, strategy.name, "skipped")
                continue

            if result.yields:
                await self._pacing.between_strategies(run.deadline if run else None)
                if self._halted(result, run):
                    return

            attempt = await self._attempt(fetcher, source, strategy, result, run)
            result.yields.append(attempt)

            if attempt.accepted >= self._good_enough_ratio * result.target:
                logger.debug(
                    "Strategy yield good enough, stopping",
                    source=source.name,
                    strategy=strategy.name,
                    accepted=attempt.accepted,
                )
                return

    async def _attempt(
        self,
        fetcher: BaseFetcher,
        source: Source,
        strategy: FetchStrategy,
        result: SourceFetchResult,
        run: RefreshRun | None,
    ) -> StrategyYield:
        attempt = StrategyYield(strategy=strategy.name, tier=strategy.tier.name.lower())
        remaining = result.target - result.accepted
        if run is not None:
            remaining = min(remaining, run.remaining)

        start = time.monotonic()
        try:
            candidates = await fetcher.fetch(source, strategy, remaining)
        except SourceConfigError:
            raise
        except (FetchError, HTTPClientError) as e:
            attempt.error = str(e)
            attempt.elapsed_seconds = time.monotonic() - start
            logger.warning(
                "Strategy failed",
                source=source.name,
                strategy=strategy.name,
                error=str(e),
            )
            self._metrics.record_strategy(source.type_name, strategy.name, "error", attempt.elapsed_seconds)
            return attempt
        except Exception as e:
            attempt.error = f"{type(e).__name__}: {e}"
            attempt.elapsed_seconds = time.monotonic() - start
            logger.error(
                "Unexpected strategy failure",
                source=source.name,
                strategy=strategy.name,
                error=str(e),
                exc_info=True,
            )
            self._metrics.record_strategy(source.type_name, strategy.name, "error", attempt.elapsed_seconds)
            return attempt

        attempt.fetched = len(candidates)

        for candidate in candidates:
            if self._halted(result, run):
                break

            status = await self._process(candidate, source, strategy, result, run)
            if status == ACCEPTED:
                attempt.accepted += 1
            elif status == DUPLICATE:
                attempt.duplicates += 1
            elif status == FILTERED:
                attempt.filtered += 1
            elif status == INVALID:
                attempt.invalid += 1
            elif status == NO_BUDGET:
                break

        attempt.elapsed_seconds = time.monotonic() - start

        self._metrics.record_item(source.type_name, ACCEPTED, attempt.accepted)
        self._metrics.record_item(source.type_name, DUPLICATE, attempt.duplicates)
        self._metrics.record_item(source.type_name, FILTERED, attempt.filtered)
        self._metrics.record_item(source.type_name, INVALID, attempt.invalid)
        self._metrics.record_strategy(
            source.type_name,
            strategy.name,
            "yield" if attempt.accepted else "empty",
            attempt.elapsed_seconds,
        )

        logger.debug(
            "Strategy attempted",
            source=source.name,
            strategy=strategy.name,
            fetched=attempt.fetched,
            accepted=attempt.accepted,
            duplicates=attempt.duplicates,
            filtered=attempt.filtered,
        )
        return attempt

    async def _process(
        self,
        candidate: Candidate,
        source: Source,
        strategy: FetchStrategy,
        result: SourceFetchResult,
        run: RefreshRun | None,
    ) -> str:
        try:
            item = self._normalizer.normalize(candidate, source, strategy)
        except ValueError as e:
            logger.debug("Invalid candidate", source=source.name, url=candidate.url, error=str(e))
            return INVALID

        decision = self._filters.evaluate(candidate, source.filters, strategy.tier)
        if not decision:
            logger.debug(
                "Candidate filtered",
                source=source.name,
                url=item.url,
                reason=decision.reason,
                detail=decision.detail,
            )
            return FILTERED

        if await self._dedup.exists(item.url):
            return DUPLICATE

        if run is not None and not run.try_reserve():
            return NO_BUDGET

        try:
            await self._store.save(item)
        except DuplicateKeyError:
            if run is not None:
                run.release()
            logger.debug("Concurrent duplicate on save", source=source.name, url=item.url)
            return DUPLICATE
        except BaseException:
            if run is not None:
                run.release()
            raise

        if run is not None:
            run.commit()
        result.items.append(item)
        return ACCEPTED
