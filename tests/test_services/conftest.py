"""Fixtures for executor and refresh service tests."""

import asyncio
from typing import Any

import pytest

from devdigest.ingestion.base_fetcher import FetchError
from devdigest.ingestion.pacing import PacingPolicy
from devdigest.ingestion.schemas import Candidate, SourceType
from devdigest.ingestion.strategies import FetchStrategy, LeniencyTier


class FakeFetcher:
    """Scripted fetcher: each strategy name maps to candidates or an exception."""

    def __init__(
        self,
        source_type: SourceType,
        responses: dict[str, Any] | None = None,
        strategies: list[FetchStrategy] | None = None,
        desperate: list[FetchStrategy] | None = None,
        delay: float = 0.0,
    ):
        self.source_type = source_type
        self.responses = responses or {}
        self._strategies = strategies or [
            FetchStrategy(name="primary", tier=LeniencyTier.STRICT),
            FetchStrategy(name="secondary", tier=LeniencyTier.RELAXED),
            FetchStrategy(name="tertiary", tier=LeniencyTier.LENIENT),
        ]
        self._desperate = desperate or []
        self.delay = delay
        self.calls: list[tuple[str, str, int]] = []

    def strategies(self, source, config) -> list[FetchStrategy]:
        return list(self._strategies)

    def desperate_strategies(self, source, config) -> list[FetchStrategy]:
        return list(self._desperate)

    async def fetch(self, source, strategy: FetchStrategy, remaining: int) -> list[Candidate]:
        self.calls.append((source.name, strategy.name, remaining))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.get(strategy.name, [])
        if callable(response):
            response = response(source)
        if isinstance(response, BaseException):
            raise response
        return list(response)

    @property
    def strategy_names(self) -> list[str]:
        return [name for _, name, _ in self.calls]


@pytest.fixture
def make_candidates():
    """Factory for ``count`` distinct candidates under a URL prefix."""

    def _make(count: int, prefix: str = "https://example.com/post") -> list[Candidate]:
        return [
            Candidate(
                title=f"Post number {i} about Python tooling",
                url=f"{prefix}/{i}",
                description="A reasonably detailed description of the post.",
            )
            for i in range(count)
        ]

    return _make


@pytest.fixture
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture
def network_error():
    return lambda message="connection reset": FetchError(message)


@pytest.fixture
def no_pacing() -> PacingPolicy:
    return PacingPolicy.no_delay()
