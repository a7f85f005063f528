"""
Fetch strategies and filter leniency tiers.

A ``FetchStrategy`` describes one concrete way of asking a source for
content: which listing, which time window, how many items, which request
headers. Strategies are built fresh for each source by its fetcher and
thrown away once the source has been processed.

Each strategy carries a ``LeniencyTier`` that tells the filter engine how
strict to be with the candidates it yields. Later strategies explore
broader windows and are filtered more leniently.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DESCRIPTIVE_USER_AGENT = "DevDigest/1.0.0 (Content Aggregator)"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class LeniencyTier(Enum):
    """How strictly a strategy's candidates are filtered.

    The value is the divisor applied to a source's minimum length.
    """

    STRICT = 1
    RELAXED = 2
    LENIENT = 4
    DESPERATE = 8

    @property
    def length_divisor(self) -> int:
        return self.value

    @property
    def allows_partial_keywords(self) -> bool:
        """From LENIENT up, any word of a multi-word include phrase matches."""
        return self.value >= LeniencyTier.LENIENT.value


@dataclass(frozen=True)
class FetchStrategy:
    """One attempt at fetching a source.

    Attributes:
        name: Short identifier used in logs and per-strategy yields.
        description: Human-readable explanation.
        tier: Leniency applied when filtering this strategy's candidates.
        sort: Listing order (Reddit: hot/new/top/rising).
        window: Time window for ``top`` listings (hour..all).
        limit: Maximum candidates this strategy may return.
        headers: Request headers; empty means send none.
        timeout: Request timeout in seconds.
        params: Extra query parameters.
        url: Overrides the source URL when set.
        retry_only: Only attempted when no earlier strategy succeeded.
    """

    name: str
    description: str = ""
    tier: LeniencyTier = LeniencyTier.STRICT
    sort: str | None = None
    window: str | None = None
    limit: int = 25
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 20.0
    params: dict[str, Any] = field(default_factory=dict)
    url: str | None = None
    retry_only: bool = False

    def provenance(self) -> dict[str, Any]:
        """Strategy details recorded on every item it produced."""
        info: dict[str, Any] = {"name": self.name, "tier": self.tier.name.lower()}
        if self.sort:
            info["sort"] = self.sort
        if self.window:
            info["window"] = self.window
        return info
