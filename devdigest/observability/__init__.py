"""Observability layer - logging and metrics."""

from devdigest.observability.logging import setup_logging
from devdigest.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
