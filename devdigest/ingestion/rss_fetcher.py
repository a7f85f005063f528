"""
RSS/Atom feed fetcher.

Uses feedparser for both RSS ``<item>`` and Atom ``<entry>`` documents.
All strategies hit the same URL and differ only in request headers and
timeout; some publishers block unknown agents, others block browsers.
The header variants after the first are only tried when the first
request fails.
"""

import logging
from datetime import datetime, timezone
from urllib.parse import urlparse

import feedparser

from devdigest.ingestion.base_fetcher import BaseFetcher, FeedParseError
from devdigest.ingestion.schemas import SUMMARY_MAX_CHARS, Candidate, RssRaw, SourceType
from devdigest.ingestion.strategies import (
    BROWSER_USER_AGENT,
    DESCRIPTIVE_USER_AGENT,
    FetchStrategy,
    LeniencyTier,
)
from devdigest.ingestion.text import extract_text, parse_datetime, truncate
from devdigest.sources.schemas import RssSourceConfig, Source

logger = logging.getLogger(__name__)

FEED_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/xml;q=0.9, "
    "text/xml;q=0.9, */*;q=0.8"
)
FEED_ITEM_LIMIT = 50


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_query_only(link: str) -> bool:
    """Links like ``https://example.com/?p=123`` carry no real path."""
    parsed = urlparse(link)
    return parsed.path in ("", "/") and bool(parsed.query)


def resolve_entry_link(entry: dict) -> str | None:
    """
    Pick the canonical link for a feed entry.

    Falls back to an alternate ``<link href>`` and then to an absolute
    ``<id>``/``<guid>``. Query-only links are replaced by the guid when
    the guid is a clean absolute URL.
    """
    link = (entry.get("link") or "").strip()

    if not link:
        for candidate in entry.get("links") or []:
            href = (candidate.get("href") or "").strip()
            if href and candidate.get("rel", "alternate") == "alternate":
                link = href
                break

    guid = (entry.get("id") or "").strip()

    if not _is_http_url(link):
        link = guid if _is_http_url(guid) else ""
    elif _is_query_only(link) and _is_http_url(guid) and "?" not in guid:
        link = guid

    return link or None


def detect_format(parsed, text: str) -> str:
    version = getattr(parsed, "version", "") or ""
    if version.startswith("atom"):
        return "atom"
    if version.startswith("rss"):
        return "rss"
    return "atom" if "<feed" in text[:2000] else "rss"


class RSSFetcher(BaseFetcher[RssRaw, RssSourceConfig]):
    """Fetches RSS 2.0 and Atom feeds."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.RSS

    def strategies(self, source: Source, config: RssSourceConfig) -> list[FetchStrategy]:
        return [
            FetchStrategy(
                name="descriptive",
                description="Descriptive aggregator user agent",
                tier=LeniencyTier.STRICT,
                limit=FEED_ITEM_LIMIT,
                headers={"User-Agent": DESCRIPTIVE_USER_AGENT, "Accept": FEED_ACCEPT},
                timeout=20.0,
            ),
            FetchStrategy(
                name="browser",
                description="Browser-like user agent",
                tier=LeniencyTier.STRICT,
                limit=FEED_ITEM_LIMIT,
                headers={"User-Agent": BROWSER_USER_AGENT, "Accept": FEED_ACCEPT},
                timeout=25.0,
                retry_only=True,
            ),
            FetchStrategy(
                name="bare",
                description="No custom headers",
                tier=LeniencyTier.STRICT,
                limit=FEED_ITEM_LIMIT,
                timeout=30.0,
                retry_only=True,
            ),
        ]

    async def _fetch_raw(
        self,
        source: Source,
        config: RssSourceConfig,
        strategy: FetchStrategy,
        remaining: int,
    ) -> list[RssRaw]:
        response = await self._get(strategy.url or source.url, strategy, headers=strategy.headers)
        text = response.text

        parsed = feedparser.parse(text)
        if parsed.bozo and not parsed.entries:
            raise FeedParseError(
                f"Could not parse feed for {source.name}: {parsed.get('bozo_exception')}"
            )

        feed_format = detect_format(parsed, text)
        logger.debug(f"Parsed {feed_format} feed {source.name} with {len(parsed.entries)} entries")
        return [RssRaw(entry=dict(entry), feed_format=feed_format) for entry in parsed.entries]

    def _adapt(self, raw: RssRaw) -> Candidate | None:
        entry = raw.entry

        title = extract_text(entry.get("title") or "")
        link = resolve_entry_link(entry)
        if not title or not link:
            return None

        description = extract_text(entry.get("summary") or entry.get("description") or "")

        body = ""
        content = entry.get("content") or []
        if content and isinstance(content[0], dict):
            body = extract_text(content[0].get("value") or "")

        published = (
            parse_datetime(entry.get("published_parsed"))
            or parse_datetime(entry.get("updated_parsed"))
            or parse_datetime(entry.get("published"))
            or parse_datetime(entry.get("updated"))
            or datetime.now(timezone.utc)
        )

        tags = [
            tag.get("term")
            for tag in entry.get("tags") or []
            if isinstance(tag, dict) and tag.get("term")
        ]

        return Candidate(
            title=title,
            url=link,
            description=truncate(description, SUMMARY_MAX_CHARS),
            body=body,
            published_at=published,
            author=entry.get("author"),
            tags=tags,
            extra={"feed_format": raw.feed_format},
        )

    def _order(self, candidates: list[Candidate], strategy: FetchStrategy) -> list[Candidate]:
        return sorted(candidates, key=lambda c: c.published_at, reverse=True)
