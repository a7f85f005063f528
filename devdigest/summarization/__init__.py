"""Post-ingestion summarization with a heuristic fallback."""

from devdigest.summarization.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from devdigest.summarization.config import SummarizationConfig
from devdigest.summarization.fallback import heuristic_summary
from devdigest.summarization.schemas import SummaryResult
from devdigest.summarization.service import (
    SummarizationService,
    SummarizationStats,
    Summarizer,
    SummarizerError,
    SummarizerRateLimitError,
    SummarizerTransientError,
)

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "SummarizationConfig",
    "SummarizationService",
    "SummarizationStats",
    "Summarizer",
    "SummarizerError",
    "SummarizerRateLimitError",
    "SummarizerTransientError",
    "SummaryResult",
    "heuristic_summary",
]
