"""
Generic JSON API fetcher.

Handles arbitrary listing endpoints by unwrapping the item array from a
handful of well-known envelope keys and resolving each field through an
alias list. A story-index mode covers APIs that return a list of ids
first and item details second (Hacker News).
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from devdigest.ingestion.base_fetcher import BaseFetcher, FetchError
from devdigest.ingestion.schemas import ApiRaw, Candidate, SourceType
from devdigest.ingestion.strategies import (
    DESCRIPTIVE_USER_AGENT,
    FetchStrategy,
    LeniencyTier,
)
from devdigest.ingestion.text import extract_text, parse_datetime
from devdigest.sources.schemas import ApiSourceConfig, Source

logger = logging.getLogger(__name__)

HN_HOST = "hacker-news.firebaseio.com"
HN_ITEM_URL = "https://hacker-news.firebaseio.com/v0/item/{id}.json"
HN_DISCUSSION_URL = "https://news.ycombinator.com/item?id={id}"

# Detail requests per remaining item in story-index mode
INDEX_OVERFETCH = 3

ITEM_KEYS = ("items", "articles", "posts", "results", "stories", "data", "entries", "hits")

TITLE_FIELDS = ("title", "name", "headline")
URL_FIELDS = ("url", "link", "html_url", "permalink")
SUMMARY_FIELDS = ("summary", "description", "body", "excerpt", "content", "text")
AUTHOR_FIELDS = ("author", "by", "creator", "user.login", "user.name", "user.username")
PUBLISHED_FIELDS = (
    "published_at",
    "publishedAt",
    "created_at",
    "date",
    "pubDate",
    "timestamp",
    "time",
)
TAG_FIELDS = ("tags", "tag_list", "topics", "labels", "categories")
SCORE_FIELDS = ("score", "points", "ups", "positive_reactions_count", "stargazers_count")
COMMENT_FIELDS = ("comments", "descendants", "num_comments", "comments_count")


def unwrap_items(payload: Any) -> list[Any] | None:
    """Locate the item array in an API payload, or None if there is none."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ITEM_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return None


def _lookup(record: dict[str, Any], path: str) -> Any:
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def first_value(record: dict[str, Any], fields: tuple[str, ...]) -> Any:
    """Return the first non-empty value among ``fields`` (dotted paths allowed)."""
    for path in fields:
        value = _lookup(record, path)
        if value not in (None, "", [], {}):
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        value = value.get("name") or value.get("login") or value.get("username") or ""
    return str(value).strip()


def _as_tags(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    tags = []
    for tag in value if isinstance(value, list) else [value]:
        name = _as_text(tag)
        if name:
            tags.append(name)
    return tags


def _as_int(value: Any) -> int:
    if isinstance(value, list):
        return len(value)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class APIFetcher(BaseFetcher[ApiRaw, ApiSourceConfig]):
    """Fetches JSON listings from arbitrary APIs."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.API

    def _headers(self, config: ApiSourceConfig) -> dict[str, str]:
        return {
            "User-Agent": DESCRIPTIVE_USER_AGENT,
            "Accept": "application/json",
            **config.headers,
        }

    def strategies(self, source: Source, config: ApiSourceConfig) -> list[FetchStrategy]:
        headers = self._headers(config)
        strategies = [
            FetchStrategy(
                name="primary",
                description="Configured endpoint",
                tier=LeniencyTier.STRICT,
                limit=50,
                headers=headers,
                timeout=20.0,
            ),
            FetchStrategy(
                name="increased_limit",
                description=f"Endpoint with {config.limit_param}=100",
                tier=LeniencyTier.RELAXED,
                limit=100,
                headers=headers,
                timeout=25.0,
                params={config.limit_param: 100},
            ),
        ]

        stripped = strip_query(source.url)
        if stripped != source.url:
            strategies.append(
                FetchStrategy(
                    name="stripped_query",
                    description="Endpoint without query parameters",
                    tier=LeniencyTier.STRICT,
                    limit=50,
                    headers=headers,
                    timeout=25.0,
                    url=stripped,
                    retry_only=True,
                )
            )
        return strategies

    def _item_url(self, source: Source, config: ApiSourceConfig) -> str | None:
        if config.item_url:
            return config.item_url
        if HN_HOST in source.url:
            return HN_ITEM_URL
        return None

    async def _fetch_raw(
        self,
        source: Source,
        config: ApiSourceConfig,
        strategy: FetchStrategy,
        remaining: int,
    ) -> list[ApiRaw]:
        url = strategy.url or source.url
        response = await self._get(url, strategy, headers=strategy.headers, params=strategy.params)
        payload = self._json(response)

        item_url = self._item_url(source, config)
        if item_url:
            return await self._fetch_story_index(
                source, payload, item_url, strategy, remaining
            )

        records = unwrap_items(payload)
        if records is None:
            logger.warning(f"No item array found in response from {source.name}")
            return []

        return [ApiRaw(record=r) for r in records if isinstance(r, dict)]

    async def _fetch_story_index(
        self,
        source: Source,
        payload: Any,
        item_url: str,
        strategy: FetchStrategy,
        remaining: int,
    ) -> list[ApiRaw]:
        """Resolve an id listing into item details, skipping failed lookups."""
        ids = unwrap_items(payload) or []
        count = min(strategy.limit, max(1, remaining) * INDEX_OVERFETCH)
        ids = [i for i in ids if isinstance(i, (int, str))][:count]
        is_hn = item_url == HN_ITEM_URL

        async def fetch_item(item_id: int | str) -> dict[str, Any] | None:
            response = await self._get(
                item_url.format(id=item_id), strategy, headers=strategy.headers
            )
            detail = self._json(response)
            return detail if isinstance(detail, dict) else None

        results = await asyncio.gather(
            *(fetch_item(i) for i in ids), return_exceptions=True
        )

        raws: list[ApiRaw] = []
        for item_id, result in zip(ids, results):
            if isinstance(result, FetchError):
                logger.warning(f"Item {item_id} lookup failed for {source.name}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None or result.get("deleted") or result.get("dead"):
                continue

            extra: dict[str, Any] = {}
            if is_hn:
                score = _as_int(result.get("score"))
                result.setdefault("url", HN_DISCUSSION_URL.format(id=item_id))
                result.setdefault("description", f"Hacker News post with {score} points")
                extra["hn_id"] = result.get("id", item_id)
            raws.append(ApiRaw(record=result, extra=extra))

        return raws

    def _adapt(self, raw: ApiRaw) -> Candidate | None:
        record = raw.record

        title = extract_text(_as_text(first_value(record, TITLE_FIELDS)))
        url = _as_text(first_value(record, URL_FIELDS))
        if not title or not url:
            return None

        summary = extract_text(_as_text(first_value(record, SUMMARY_FIELDS)))
        published = (
            parse_datetime(first_value(record, PUBLISHED_FIELDS))
            or datetime.now(timezone.utc)
        )

        return Candidate(
            title=title,
            url=url,
            description=summary,
            published_at=published,
            author=_as_text(first_value(record, AUTHOR_FIELDS)) or None,
            tags=_as_tags(first_value(record, TAG_FIELDS)),
            score=_as_int(first_value(record, SCORE_FIELDS)),
            comments=_as_int(first_value(record, COMMENT_FIELDS)),
            extra=dict(raw.extra),
        )
