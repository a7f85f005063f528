"""
Per-source keyword and length filtering with strategy-aware leniency.

Rules are applied in a fixed order:
1. exclude keywords (absolute, never relaxed)
2. minimum length, measured in characters of title + description + body,
   divided by the strategy tier's divisor
3. include keywords (any substring match; from LENIENT up any word of
   three or more letters from a multi-word phrase also counts)
"""

import logging
from dataclasses import dataclass

from devdigest.ingestion.schemas import Candidate
from devdigest.ingestion.strategies import LeniencyTier
from devdigest.sources.schemas import FilterRules

logger = logging.getLogger(__name__)

REASON_EXCLUDED = "excluded_keyword"
REASON_TOO_SHORT = "too_short"
REASON_NO_INCLUDE_MATCH = "no_include_match"


@dataclass(frozen=True)
class FilterDecision:
    accepted: bool
    reason: str | None = None
    detail: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


ACCEPT = FilterDecision(accepted=True)


def _filter_text(candidate: Candidate) -> str:
    """Description and body together; the description is stored as the summary."""
    parts = [candidate.description, candidate.body]
    if candidate.body and candidate.body.startswith(candidate.description):
        parts = [candidate.body]
    return " ".join(p for p in parts if p)


def _phrase_words(phrase: str) -> list[str]:
    return [w for w in phrase.lower().split() if len(w) > 2]


class FilterEngine:
    """Applies a source's ``FilterRules`` to candidates."""

    def evaluate(
        self,
        candidate: Candidate,
        rules: FilterRules,
        tier: LeniencyTier = LeniencyTier.STRICT,
    ) -> FilterDecision:
        title = candidate.title or ""
        body = _filter_text(candidate)
        haystack = f"{title} {body}".lower()

        for keyword in rules.exclude_keywords:
            if keyword and keyword.lower() in haystack:
                return FilterDecision(False, REASON_EXCLUDED, keyword)

        if rules.min_word_count:
            threshold = rules.min_word_count / tier.length_divisor
            length = len(title) + len(body)
            if length < threshold:
                return FilterDecision(
                    False, REASON_TOO_SHORT, f"{length} < {threshold:g}"
                )

        if rules.include_keywords and not self._matches_include(
            haystack, rules.include_keywords, tier
        ):
            return FilterDecision(False, REASON_NO_INCLUDE_MATCH)

        return ACCEPT

    def _matches_include(
        self,
        haystack: str,
        keywords: list[str],
        tier: LeniencyTier,
    ) -> bool:
        for keyword in keywords:
            if keyword and keyword.lower() in haystack:
                return True

        if not tier.allows_partial_keywords:
            return False

        for keyword in keywords:
            words = _phrase_words(keyword)
            if len(words) > 1 and any(w in haystack for w in words):
                return True
        return False
