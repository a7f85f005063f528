"""
Prometheus metrics for monitoring the aggregation pipeline.

Defines and exposes metrics for:
- Items accepted, filtered and deduplicated per source type
- Strategy attempts and their outcomes
- Source fetch errors
- Refresh run duration

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging
from enum import Enum

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from devdigest.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0)


def _label(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else value


class MetricsCollector:
    """
    Prometheus metrics collector for the devdigest pipeline.

    Usage:
        metrics = get_metrics()
        metrics.record_item(SourceType.REDDIT, "accepted")
        metrics.record_strategy(SourceType.RSS, "descriptive", "empty")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.items_processed = Counter(
            "devdigest_items_processed_total",
            "Candidates processed by the pipeline",
            ["source_type", "status"],  # accepted, duplicate, filtered, invalid
        )

        self.strategy_attempts = Counter(
            "devdigest_strategy_attempts_total",
            "Fetch strategy attempts",
            ["source_type", "strategy", "outcome"],  # yield, empty, error, skipped
        )

        self.source_errors = Counter(
            "devdigest_source_errors_total",
            "Source level fetch failures",
            ["source_type", "error_type"],
        )

        self.fetch_latency = Histogram(
            "devdigest_fetch_latency_seconds",
            "Time spent fetching a single strategy",
            ["source_type"],
            buckets=LATENCY_BUCKETS,
        )

        self.refresh_duration = Histogram(
            "devdigest_refresh_duration_seconds",
            "Wall-clock duration of a refresh run",
            ["state"],
            buckets=LATENCY_BUCKETS,
        )

        self.last_refresh_items = Gauge(
            "devdigest_last_refresh_items",
            "Items accepted in the most recent refresh run",
        )

        self.summaries_generated = Counter(
            "devdigest_summaries_generated_total",
            "Content items summarized",
            ["method"],  # model, fallback
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_item(self, source_type: Enum | str, status: str, count: int = 1) -> None:
        """Record the outcome of processing one or more candidates."""
        if count <= 0:
            return
        self.items_processed.labels(
            source_type=_label(source_type),
            status=status,
        ).inc(count)

    def record_strategy(
        self,
        source_type: Enum | str,
        strategy: str,
        outcome: str,
        latency: float | None = None,
    ) -> None:
        """Record a strategy attempt and, optionally, how long the fetch took."""
        type_str = _label(source_type)
        self.strategy_attempts.labels(
            source_type=type_str,
            strategy=strategy,
            outcome=outcome,
        ).inc()
        if latency is not None:
            self.fetch_latency.labels(source_type=type_str).observe(latency)

    def record_source_error(self, source_type: Enum | str, error_type: str) -> None:
        """Record a source-level failure."""
        self.source_errors.labels(
            source_type=_label(source_type),
            error_type=error_type,
        ).inc()

    def record_refresh(self, state: str, duration: float, items: int) -> None:
        """Record the end of a refresh run."""
        self.refresh_duration.labels(state=state).observe(duration)
        self.last_refresh_items.set(items)

    def record_summary(self, method: str) -> None:
        """Record a generated summary."""
        self.summaries_generated.labels(method=method).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
