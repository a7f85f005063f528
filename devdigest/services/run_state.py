"""
Per-run accumulator for a refresh.

One ``RefreshRun`` is created for every refresh invocation and passed
down to every source and strategy it processes. It owns the global item
budget, the wall-clock deadline and the per-type statistics, so nothing
about a run leaks into the next one.

The budget uses reserve/commit/release: a slot is reserved right before
an item is saved and committed once the save succeeds. Reservation is
synchronous, so concurrent source tasks on the same event loop can never
overshoot ``max_total``.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from devdigest.ingestion.schemas import SourceType

if TYPE_CHECKING:
    from devdigest.services.strategy_executor import SourceFetchResult
    from devdigest.sources.schemas import Source


class RefreshState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


@dataclass
class TypeStats:
    processed: int = 0
    success: int = 0
    failed: int = 0
    total_fetched: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "total_fetched": self.total_fetched,
        }


class RefreshRun:
    """Mutable state of one refresh invocation."""

    def __init__(
        self,
        max_total: int,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        force: bool = False,
    ):
        self.run_id = uuid.uuid4().hex[:12]
        self.max_total = max_total
        self.deadline = deadline
        self.force = force
        self.started_at = datetime.now(timezone.utc)
        self.timed_out = False

        self._clock = clock
        self._accepted = 0
        self._reserved = 0

        self.per_type: dict[str, TypeStats] = {t.value: TypeStats() for t in SourceType}
        self.errors: list[str] = []
        self.source_results: list["SourceFetchResult"] = []

    # ── Budget ──────────────────────────────────────────────────

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def remaining(self) -> int:
        return max(0, self.max_total - self._accepted - self._reserved)

    @property
    def exhausted(self) -> bool:
        return self._accepted >= self.max_total

    def try_reserve(self) -> bool:
        """Claim one slot of the global budget. False when none is left."""
        if self._accepted + self._reserved >= self.max_total:
            return False
        self._reserved += 1
        return True

    def commit(self) -> None:
        """Turn a reservation into an accepted item."""
        self._reserved -= 1
        self._accepted += 1

    def release(self) -> None:
        """Give back a reservation whose save did not happen."""
        self._reserved -= 1

    # ── Deadline ────────────────────────────────────────────────

    def time_left(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    def expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    def should_stop(self) -> bool:
        return self.exhausted or self.expired()

    # ── Results ─────────────────────────────────────────────────

    def record_source(self, source: "Source", result: "SourceFetchResult") -> None:
        stats = self.per_type.setdefault(source.type_name, TypeStats())
        stats.processed += 1
        stats.total_fetched += result.accepted
        if result.success:
            stats.success += 1
        else:
            stats.failed += 1
            self.errors.append(f"{source.name}: {result.error or 'all strategies failed'}")
        self.source_results.append(result)

    def per_type_dict(self) -> dict[str, Any]:
        return {name: stats.to_dict() for name, stats in self.per_type.items()}
