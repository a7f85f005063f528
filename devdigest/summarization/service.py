"""
Summarization worker.

Runs after ingestion, over items that have not been processed yet. A model
summarizer is optional: rate limits, transient failures and an open
circuit all fall back to the keyword heuristic, so every pending item ends
up processed. Ingestion never waits on this stage.
"""

from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from devdigest.ingestion.schemas import ContentItem
from devdigest.observability.metrics import MetricsCollector, get_metrics
from devdigest.summarization.circuit_breaker import CircuitBreaker, CircuitOpenError
from devdigest.summarization.config import SummarizationConfig
from devdigest.summarization.fallback import heuristic_summary
from devdigest.summarization.schemas import SummaryResult

logger = structlog.get_logger(__name__)


class SummarizerError(Exception):
    """Base error raised by summarizer implementations."""


class SummarizerRateLimitError(SummarizerError):
    """The summarizer's quota or rate limit was hit."""


class SummarizerTransientError(SummarizerError):
    """A retryable summarizer failure (timeout, 5xx)."""


class Summarizer(Protocol):
    async def summarize(self, item: ContentItem) -> SummaryResult: ...


class ProcessingStore(Protocol):
    async def list_unprocessed(self, limit: int = 20) -> list[ContentItem]: ...

    async def mark_processed(
        self,
        url: str,
        analysis: dict[str, Any],
        reading_time: int | None = None,
    ) -> bool: ...


@dataclass
class SummarizationStats:
    processed: int = 0
    model: int = 0
    fallback: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "model": self.model,
            "fallback": self.fallback,
            "errors": self.errors,
        }


class SummarizationService:
    """
    Summarizes pending items with an optional model and heuristic fallback.

    Usage:
        service = SummarizationService(store, summarizer=my_summarizer)
        stats = await service.summarize_pending()
    """

    def __init__(
        self,
        store: ProcessingStore,
        summarizer: Summarizer | None = None,
        config: SummarizationConfig | None = None,
        breaker: CircuitBreaker | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._store = store
        self._summarizer = summarizer
        self._config = config or SummarizationConfig()
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=self._config.circuit_failure_threshold,
            recovery_timeout=self._config.circuit_recovery_timeout,
        )
        self._metrics = metrics or get_metrics()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def model_enabled(self) -> bool:
        return self._summarizer is not None and self._config.enabled

    async def summarize(self, item: ContentItem) -> SummaryResult:
        """Summarize one item, falling back to the heuristic on any model failure."""
        if not self.model_enabled:
            return heuristic_summary(item, self._config.max_key_topics)

        try:
            result = await self._breaker.call(self._summarizer.summarize, item)
        except CircuitOpenError:
            logger.debug("Summarizer circuit open, using fallback", url=item.url)
            return heuristic_summary(item, self._config.max_key_topics)
        except SummarizerRateLimitError as e:
            logger.warning("Summarizer rate limited, using fallback", url=item.url, error=str(e))
            return heuristic_summary(item, self._config.max_key_topics)
        except SummarizerError as e:
            logger.warning("Summarizer failed, using fallback", url=item.url, error=str(e))
            return heuristic_summary(item, self._config.max_key_topics)

        return result.model_copy(
            update={"key_topics": result.key_topics[: self._config.max_key_topics]}
        )

    async def summarize_pending(self, limit: int | None = None) -> SummarizationStats:
        """Process up to ``limit`` unprocessed items."""
        stats = SummarizationStats()
        items = await self._store.list_unprocessed(limit or self._config.batch_size)
        if not items:
            return stats

        logger.info("Summarizing pending items", count=len(items), model=self.model_enabled)

        for item in items:
            result = await self.summarize(item)
            updated = await self._store.mark_processed(
                item.url,
                result.to_analysis(),
                reading_time=result.reading_time,
            )
            if not updated:
                stats.errors += 1
                logger.warning("Item vanished before it was marked processed", url=item.url)
                continue

            stats.processed += 1
            if result.method == "fallback":
                stats.fallback += 1
            else:
                stats.model += 1
            self._metrics.record_summary(result.method)

        logger.info("Summarization finished", **stats.to_dict())
        return stats
