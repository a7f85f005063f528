"""
Politeness delays between fetch strategies and between sources.

Keeps the pauses that avoid hammering third-party endpoints in one
configurable object. Pauses never run past a run's deadline.

Usage:
    pacing = PacingPolicy(strategy_delay=1.0, source_delay=0.5)
    await pacing.between_strategies(deadline=run.deadline)
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from devdigest.config.settings import Settings


class PacingPolicy:
    """Configurable pauses, with an injectable sleep for tests."""

    def __init__(
        self,
        strategy_delay: float = 1.0,
        source_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.strategy_delay = strategy_delay
        self.source_delay = source_delay
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "PacingPolicy":
        return cls(
            strategy_delay=settings.strategy_delay_seconds,
            source_delay=settings.source_delay_seconds,
        )

    @classmethod
    def no_delay(cls) -> "PacingPolicy":
        return cls(strategy_delay=0.0, source_delay=0.0)

    async def between_strategies(self, deadline: float | None = None) -> None:
        await self._pause(self.strategy_delay, deadline)

    async def between_sources(self, deadline: float | None = None) -> None:
        await self._pause(self.source_delay, deadline)

    async def _pause(self, delay: float, deadline: float | None) -> None:
        if deadline is not None:
            delay = min(delay, deadline - self._clock())
        if delay > 0:
            await self._sleep(delay)
