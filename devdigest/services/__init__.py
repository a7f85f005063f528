"""Refresh orchestration services."""

from devdigest.services.refresh_service import (
    RefreshInProgressError,
    RefreshResult,
    RefreshService,
    create_fetchers,
    per_source_cap,
)
from devdigest.services.run_state import RefreshRun, RefreshState
from devdigest.services.strategy_executor import (
    ProgressiveStrategyExecutor,
    SourceFetchResult,
    StrategyYield,
)

__all__ = [
    "ProgressiveStrategyExecutor",
    "RefreshInProgressError",
    "RefreshResult",
    "RefreshRun",
    "RefreshService",
    "RefreshState",
    "SourceFetchResult",
    "StrategyYield",
    "create_fetchers",
    "per_source_cap",
]
