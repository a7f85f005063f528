"""
Base fetcher interface and shared functionality for per-type fetchers.

Each source type has one fetcher. A fetcher knows:
- which strategies to try for a source, in order
- how to execute one strategy against the network (``_fetch_raw``)
- how to adapt its raw records into canonical ``Candidate`` objects

The progressive strategy executor drives fetchers; fetchers never touch
the store, filters, or the run budget.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from devdigest.ingestion.http_client import HTTPClient, HTTPClientError
from devdigest.ingestion.schemas import Candidate, RawRecord, SourceType
from devdigest.ingestion.strategies import FetchStrategy
from devdigest.sources.schemas import Source, SourceConfig

logger = logging.getLogger(__name__)

RawT = TypeVar("RawT", bound=RawRecord)
ConfigT = TypeVar("ConfigT", bound=SourceConfig)


class FetchError(Exception):
    """A strategy could not retrieve content (network, status, payload)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(FetchError):
    """The response arrived but its payload could not be decoded."""


class FeedParseError(ParseError):
    """An RSS/Atom document could not be parsed."""


@dataclass
class FetcherStats:
    """Statistics for the most recent fetch call."""

    raw_records: int = 0
    candidates: int = 0
    skipped: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseFetcher(ABC, Generic[RawT, ConfigT]):
    """
    Abstract base class for per-type fetchers.

    Subclasses must implement:
        - source_type: SourceType handled by this fetcher
        - strategies(): ordered regular strategies for a source
        - _fetch_raw(): execute one strategy, returning raw records
        - _adapt(): convert one raw record to a Candidate (or None to skip)

    Subclasses may override:
        - desperate_strategies(): extra strategies used on very low yield
        - _order(): processing order of candidates for a strategy
    """

    def __init__(self, client: HTTPClient):
        self._client = client
        self._stats = FetcherStats()

    @property
    @abstractmethod
    def source_type(self) -> SourceType:
        """Return the source type this fetcher handles."""
        ...

    @property
    def name(self) -> str:
        return f"{self.source_type.value}_fetcher"

    @property
    def stats(self) -> FetcherStats:
        return self._stats

    @abstractmethod
    def strategies(self, source: Source, config: ConfigT) -> list[FetchStrategy]:
        """Regular strategies for ``source``, most conservative first."""
        ...

    def desperate_strategies(self, source: Source, config: ConfigT) -> list[FetchStrategy]:
        """Strategies attempted only when regular ones yield very little."""
        return []

    @abstractmethod
    async def _fetch_raw(
        self,
        source: Source,
        config: ConfigT,
        strategy: FetchStrategy,
        remaining: int,
    ) -> list[RawT]:
        """
        Execute one strategy and return raw records.

        Raises:
            FetchError: Network failure, non-2xx status, or bad payload.
        """
        ...

    @abstractmethod
    def _adapt(self, raw: RawT) -> Candidate | None:
        """
        Convert a raw record to a Candidate.

        Returns None for records that lack required fields. Should not raise.
        """
        ...

    def _order(self, candidates: list[Candidate], strategy: FetchStrategy) -> list[Candidate]:
        return candidates

    async def fetch(
        self,
        source: Source,
        strategy: FetchStrategy,
        remaining: int,
    ) -> list[Candidate]:
        """
        Fetch candidates for one strategy, in processing order.

        Returns at most ``strategy.limit`` candidates. ``remaining`` is how
        many more items the source still needs; fetchers use it to bound
        secondary requests.

        Raises:
            FetchError: The strategy failed.
            SourceConfigError: The source config is invalid.
        """
        self._stats = FetcherStats()
        config = source.parse_config()

        raws = await self._fetch_raw(source, config, strategy, remaining)
        self._stats.raw_records = len(raws)

        candidates: list[Candidate] = []
        for raw in raws:
            try:
                candidate = self._adapt(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed record in {self.name}: {e}")
                candidate = None

            if candidate is None:
                self._stats.skipped += 1
                continue
            candidates.append(candidate)

        ordered = self._order(candidates, strategy)[: strategy.limit]
        self._stats.candidates = len(ordered)

        logger.debug(
            f"{self.name} {source.name}/{strategy.name}: "
            f"raw={self._stats.raw_records}, candidates={len(ordered)}, "
            f"skipped={self._stats.skipped}, "
            f"elapsed={self._stats.elapsed_seconds:.2f}s"
        )
        return ordered

    # Shared HTTP helpers

    async def _get(
        self,
        url: str,
        strategy: FetchStrategy,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with the strategy's timeout, mapping client errors to FetchError."""
        try:
            return await self._client.get(
                url,
                params=params,
                headers=headers,
                timeout=strategy.timeout,
            )
        except HTTPClientError as e:
            raise FetchError(str(e), status_code=e.status_code) from e
        except httpx.HTTPError as e:
            raise FetchError(f"{type(e).__name__} for {url}: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON payload: {e}") from e
