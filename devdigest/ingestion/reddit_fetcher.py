"""
Reddit fetcher for subreddit listings.

Prefers the OAuth API when credentials are configured and falls back to
the public ``.json`` listing endpoints, trying several header approaches
since the public endpoints reject some user agents.

Strategy ladder for a subreddit:
    1. configured sort/window (strict)
    2. top/week (relaxed)
    3. top/month (lenient)
    4. new/day (relaxed)
    5. rising/day (relaxed)
    desperate: top/all (only when overall yield is very low)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from devdigest.config.settings import get_settings
from devdigest.ingestion.base_fetcher import BaseFetcher, FetchError, ParseError
from devdigest.ingestion.http_client import HTTPClient, HTTPClientError
from devdigest.ingestion.schemas import Candidate, RedditRaw, SourceType
from devdigest.ingestion.strategies import (
    BROWSER_USER_AGENT,
    FetchStrategy,
    LeniencyTier,
)
from devdigest.ingestion.text import parse_datetime
from devdigest.sources.schemas import RedditSourceConfig, Source

logger = logging.getLogger(__name__)

# Reddit API endpoints
REDDIT_API_BASE = "https://oauth.reddit.com"
REDDIT_PUBLIC_BASE = "https://www.reddit.com"
REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp")
IMAGE_HOSTS = ("imgur.com", "i.redd.it")
DEFAULT_THUMBNAIL_SIZE = 140

# Seconds shaved off the advertised token lifetime
TOKEN_EXPIRY_MARGIN = 60


class RedditTokenProvider:
    """
    Application-only OAuth token for the Reddit API.

    Tokens are cached until shortly before they expire. Returns None when
    credentials are missing or the grant fails, which makes the fetcher
    use the public endpoints instead.
    """

    def __init__(
        self,
        client: HTTPClient,
        client_id: str | None = None,
        client_secret: str | None = None,
        user_agent: str | None = None,
        clock=time.monotonic,
    ):
        settings = get_settings()
        self._client = client
        self._client_id = client_id or settings.reddit_client_id
        self._client_secret = client_secret or settings.reddit_client_secret
        self._user_agent = user_agent or settings.reddit_user_agent
        self._clock = clock

        self._access_token: str | None = None
        self._expires_at: float = 0.0

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    async def get_access_token(self) -> str | None:
        """
        Get OAuth access token from Reddit.

        Returns:
            Access token string or None on failure
        """
        if not self.configured:
            return None

        if self._access_token and self._clock() < self._expires_at:
            return self._access_token

        try:
            response = await self._client.post(
                REDDIT_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
                headers={"User-Agent": self._user_agent},
            )
            data = response.json()
        except (HTTPClientError, httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to get Reddit access token: {e}")
            return None

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            logger.error("Reddit token response did not include an access token")
            return None

        expires_in = float(data.get("expires_in") or 3600)
        self._access_token = token
        self._expires_at = self._clock() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN)
        return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call requests a new one."""
        self._access_token = None
        self._expires_at = 0.0


def _is_direct_image(url: str) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    if parsed.path.lower().endswith(IMAGE_EXTENSIONS):
        return True
    return any(host in parsed.netloc.lower() for host in IMAGE_HOSTS)


def extract_images(post: dict[str, Any]) -> list[dict[str, Any]]:
    """Collect preview, thumbnail and direct-link images from a post."""
    images: list[dict[str, Any]] = []

    preview = post.get("preview") or {}
    for image in preview.get("images") or []:
        source = image.get("source") or {}
        url = source.get("url")
        if url:
            images.append({
                "url": url.replace("&amp;", "&"),
                "width": source.get("width"),
                "height": source.get("height"),
                "type": "preview",
            })

    thumbnail = post.get("thumbnail") or ""
    if thumbnail.startswith("http"):
        images.append({
            "url": thumbnail,
            "width": post.get("thumbnail_width") or DEFAULT_THUMBNAIL_SIZE,
            "height": post.get("thumbnail_height") or DEFAULT_THUMBNAIL_SIZE,
            "type": "thumbnail",
        })

    link = post.get("url") or ""
    if _is_direct_image(link):
        images.append({"url": link, "type": "direct"})

    return images


class RedditFetcher(BaseFetcher[RedditRaw, RedditSourceConfig]):
    """
    Fetches subreddit listings through progressively broader strategies.

    Content Handling:
        - Stickied posts are skipped
        - External link posts keep the external URL; self posts use the permalink
        - Self-text is the description
    """

    def __init__(
        self,
        client: HTTPClient,
        token_provider: RedditTokenProvider | None = None,
        user_agent: str | None = None,
    ):
        super().__init__(client)
        self._token_provider = token_provider
        self._user_agent = user_agent or get_settings().reddit_user_agent

    @property
    def source_type(self) -> SourceType:
        return SourceType.REDDIT

    def strategies(
        self, source: Source, config: RedditSourceConfig
    ) -> list[FetchStrategy]:
        return [
            FetchStrategy(
                name="configured",
                description=f"Configured {config.sort_by}/{config.time_filter} listing",
                tier=LeniencyTier.STRICT,
                sort=config.sort_by,
                window=config.time_filter,
                limit=25,
            ),
            FetchStrategy(
                name="top_week",
                description="Top posts of the past week",
                tier=LeniencyTier.RELAXED,
                sort="top",
                window="week",
                limit=50,
            ),
            FetchStrategy(
                name="top_month",
                description="Top posts of the past month",
                tier=LeniencyTier.LENIENT,
                sort="top",
                window="month",
                limit=50,
            ),
            FetchStrategy(
                name="new_day",
                description="Newest posts",
                tier=LeniencyTier.RELAXED,
                sort="new",
                window="day",
                limit=25,
            ),
            FetchStrategy(
                name="rising_day",
                description="Rising posts",
                tier=LeniencyTier.RELAXED,
                sort="rising",
                window="day",
                limit=25,
            ),
        ]

    def desperate_strategies(
        self, source: Source, config: RedditSourceConfig
    ) -> list[FetchStrategy]:
        return [
            FetchStrategy(
                name="top_all",
                description="Top posts of all time",
                tier=LeniencyTier.DESPERATE,
                sort="top",
                window="all",
                limit=100,
            ),
        ]

    def _public_approaches(self) -> list[tuple[str, dict[str, str]]]:
        return [
            ("browser", {"User-Agent": f"{BROWSER_USER_AGENT} {self._user_agent}"}),
            ("descriptive", {"User-Agent": f"{self._user_agent} (by /u/devdigest)"}),
            ("bare", {}),
        ]

    async def _fetch_raw(
        self,
        source: Source,
        config: RedditSourceConfig,
        strategy: FetchStrategy,
        remaining: int,
    ) -> list[RedditRaw]:
        subreddit = config.subreddit
        sort = strategy.sort or config.sort_by
        params: dict[str, Any] = {"limit": strategy.limit}
        if strategy.window:
            params["t"] = strategy.window

        token = None
        if self._token_provider is not None:
            token = await self._token_provider.get_access_token()

        if token:
            try:
                response = await self._get(
                    f"{REDDIT_API_BASE}/r/{subreddit}/{sort}",
                    strategy,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "User-Agent": self._user_agent,
                    },
                    params=params,
                )
                return self._parse_listing(response)
            except FetchError as e:
                if e.status_code in (401, 403):
                    self._token_provider.invalidate()
                logger.warning(
                    f"OAuth fetch failed for r/{subreddit}, using public endpoint: {e}"
                )

        public_url = f"{REDDIT_PUBLIC_BASE}/r/{subreddit}/{sort}.json"
        last_error: FetchError | None = None

        for approach, headers in self._public_approaches():
            try:
                response = await self._get(public_url, strategy, headers=headers, params=params)
                return self._parse_listing(response)
            except FetchError as e:
                last_error = e
                logger.debug(f"Public approach {approach} failed for r/{subreddit}: {e}")

        raise FetchError(
            f"All Reddit approaches failed for r/{subreddit}: {last_error}",
            status_code=last_error.status_code if last_error else None,
        )

    def _parse_listing(self, response) -> list[RedditRaw]:
        payload = self._json(response)
        try:
            children = payload["data"]["children"]
        except (KeyError, TypeError) as e:
            raise ParseError(f"Unexpected Reddit listing shape: {e}") from e

        return [
            RedditRaw(data=child["data"])
            for child in children
            if isinstance(child, dict) and isinstance(child.get("data"), dict)
        ]

    def _adapt(self, raw: RedditRaw) -> Candidate | None:
        post = raw.data

        if post.get("stickied"):
            return None

        title = (post.get("title") or "").strip()
        if not title:
            return None

        permalink = post.get("permalink")
        permalink_url = f"{REDDIT_PUBLIC_BASE}{permalink}" if permalink else None

        url = post.get("url_overridden_by_dest") or post.get("url") or permalink_url
        if not url:
            return None
        if url.startswith("/"):
            url = f"{REDDIT_PUBLIC_BASE}{url}"

        flair = post.get("link_flair_text")
        thumbnail = post.get("thumbnail") or ""

        return Candidate(
            title=title,
            url=url,
            description=post.get("selftext") or "",
            published_at=parse_datetime(post.get("created_utc")) or datetime.now(timezone.utc),
            author=post.get("author"),
            tags=[flair] if flair else [],
            score=int(post.get("score") or post.get("ups") or 0),
            comments=int(post.get("num_comments") or 0),
            extra={
                "subreddit": post.get("subreddit"),
                "permalink": permalink_url,
                "images": extract_images(post),
                "is_video": bool(post.get("is_video")),
                "thumbnail": thumbnail if thumbnail.startswith("http") else None,
                "upvote_ratio": post.get("upvote_ratio"),
            },
        )

    def _order(self, candidates: list[Candidate], strategy: FetchStrategy) -> list[Candidate]:
        if strategy.sort in ("new", "rising"):
            return sorted(candidates, key=lambda c: c.published_at, reverse=True)
        if strategy.sort == "top":
            return sorted(candidates, key=lambda c: c.score, reverse=True)
        return candidates
