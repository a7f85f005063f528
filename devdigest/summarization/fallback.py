"""
Keyword-based summary used when no model summary is available.

The first matching topic rule picks the post summary. The community gist
and key topics are chosen independently from the same text.
"""

import math
import re

from devdigest.ingestion.schemas import ContentItem
from devdigest.summarization.schemas import SummaryResult

DEFAULT_SUMMARY = "This content discusses technology-related topics."
DEFAULT_GIST = (
    "People are likely discussing the technical aspects and practical "
    "applications of this content."
)
DEFAULT_TOPIC = "Technology"
TARGET_AUDIENCE = "General developers and tech enthusiasts"
WORDS_PER_MINUTE = 200

JOB_TERMS = ("job", "career", "hiring")
TUTORIAL_TERMS = ("tutorial", "how to", "guide")
AI_TERMS = ("ai", "artificial intelligence", "machine learning")
STARTUP_TERMS = ("startup", "business", "entrepreneur")
NEWS_TERMS = ("news", "update", "announcement")
DISCUSSION_TERMS = ("discussion", "question", "opinion")
FRONTEND_TERMS = ("react", "angular", "frontend")
PROGRAMMING_TERMS = ("programming", "coding", "development")

TOPIC_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("AI/ML", AI_TERMS),
    ("Startups/Business", STARTUP_TERMS),
    ("Frontend Development", FRONTEND_TERMS),
    ("Programming/Development", PROGRAMMING_TERMS),
    ("Jobs/Careers", JOB_TERMS),
    ("Web Development", ("web", "frontend", "backend")),
    ("Mobile Development", ("mobile", "app", "ios", "android")),
    ("Data/Analytics", ("data", "database", "analytics")),
    ("Cloud Computing", ("cloud", "aws", "azure")),
    ("Security/Privacy", ("security", "cybersecurity", "privacy")),
    ("Design/UX", ("design", "ui", "ux")),
]

GIST_RULES: list[tuple[tuple[str, ...], str]] = [
    (
        JOB_TERMS,
        "People are likely discussing job market trends, sharing career advice "
        "and offering referrals or openings.",
    ),
    (
        AI_TERMS,
        "People are likely debating AI implementation strategies, ethical "
        "implications and practical use cases.",
    ),
    (
        STARTUP_TERMS,
        "People are likely sharing startup experiences and debating funding "
        "and growth approaches.",
    ),
    (
        FRONTEND_TERMS,
        "People are likely comparing frameworks and debating performance "
        "and architectural decisions.",
    ),
    (
        PROGRAMMING_TERMS,
        "People are likely sharing coding techniques and debating development "
        "best practices.",
    ),
]

_EXPERIENCE = re.compile(r"\d+(?:\.\d+)?\s*(?:years?|yrs?)\s*(?:of\s*)?experience", re.I)
_STEPS = re.compile(r"\d+\s*(?:steps?|parts?|sections?)", re.I)
_PERFORMANCE = re.compile(r"\d+(?:\.\d+)?%?\s*(?:accuracy|performance|improvement)", re.I)
_FUNDING = re.compile(r"\$\d+[KMB]?\s*(?:funding|investment|revenue)", re.I)
_GROWTH = re.compile(r"\d+(?:\.\d+)?%\s*(?:growth|increase)", re.I)


def _term_pattern(term: str) -> re.Pattern[str]:
    # Short terms like "ai" or "ui" would match inside ordinary words.
    if len(term) <= 3:
        return re.compile(rf"\b{re.escape(term)}\b", re.I)
    return re.compile(re.escape(term), re.I)


_PATTERNS: dict[str, re.Pattern[str]] = {}


def mentions(text: str, terms: tuple[str, ...]) -> bool:
    for term in terms:
        pattern = _PATTERNS.get(term)
        if pattern is None:
            pattern = _PATTERNS[term] = _term_pattern(term)
        if pattern.search(text):
            return True
    return False


def _post_summary(text: str) -> str:
    if mentions(text, JOB_TERMS):
        experience = _EXPERIENCE.search(text)
        detail = f" with {experience.group(0)}" if experience else ""
        return (
            f"This is a career-related post{detail}. It covers job search, "
            "required skills and opportunities in the tech industry."
        )
    if mentions(text, TUTORIAL_TERMS):
        steps = _STEPS.search(text)
        lead = f"The tutorial covers {steps.group(0)}" if steps else (
            "The tutorial provides step-by-step instructions"
        )
        return f"{lead}. It includes practical examples and implementation advice."
    if mentions(text, AI_TERMS):
        performance = _PERFORMANCE.search(text)
        detail = f" reporting {performance.group(0)}" if performance else ""
        return (
            f"This article discusses AI/ML technologies{detail}. It covers "
            "implementation strategies and implications for the industry."
        )
    if mentions(text, STARTUP_TERMS):
        funding = _FUNDING.search(text)
        growth = _GROWTH.search(text)
        detail = ""
        if funding:
            detail += f" with {funding.group(0)}"
        if growth:
            detail += f" showing {growth.group(0)}"
        return (
            f"This content covers startup and business topics{detail}. It "
            "includes market analysis and entrepreneurial insights."
        )
    if mentions(text, NEWS_TERMS):
        return (
            "This is a news article or update. It reports recent developments "
            "and their implications for the tech community."
        )
    if mentions(text, DISCUSSION_TERMS):
        return (
            "This is a discussion post or opinion piece. It presents different "
            "perspectives and invites community engagement."
        )
    return DEFAULT_SUMMARY


def _community_gist(text: str) -> str:
    for terms, gist in GIST_RULES:
        if mentions(text, terms):
            return gist
    return DEFAULT_GIST


def key_topics(text: str, limit: int = 5) -> list[str]:
    topics = [name for name, terms in TOPIC_RULES if mentions(text, terms)]
    return topics[:limit] or [DEFAULT_TOPIC]


def heuristic_summary(item: ContentItem, max_topics: int = 5) -> SummaryResult:
    """Build a summary from keyword rules over the item's title and text."""
    text = f"{item.title} {item.content or item.summary or ''}"
    words = len(text.split())

    return SummaryResult(
        post_summary=_post_summary(text),
        community_gist=_community_gist(text),
        key_topics=key_topics(text, max_topics),
        reading_time=min(120, max(1, math.ceil(words / WORDS_PER_MINUTE))),
        target_audience=TARGET_AUDIENCE,
        method="fallback",
    )
