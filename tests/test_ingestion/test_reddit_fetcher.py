"""Tests for the Reddit fetcher and OAuth token provider."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from devdigest.ingestion.base_fetcher import FetchError
from devdigest.ingestion.reddit_fetcher import (
    REDDIT_TOKEN_URL,
    RedditFetcher,
    RedditTokenProvider,
    extract_images,
)
from devdigest.ingestion.strategies import LeniencyTier

PUBLIC_HOT = "https://www.reddit.com/r/Python/hot.json"
OAUTH_HOT = "https://oauth.reddit.com/r/Python/hot"


def _fetcher(client, token_provider=None) -> RedditFetcher:
    return RedditFetcher(client, token_provider=token_provider, user_agent="DevDigest/1.0.0")


class TestStrategies:
    def test_ladder_order_and_tiers(self, http_client, reddit_source):
        fetcher = _fetcher(http_client)
        config = reddit_source.parse_config()

        strategies = fetcher.strategies(reddit_source, config)

        assert [s.name for s in strategies] == [
            "configured",
            "top_week",
            "top_month",
            "new_day",
            "rising_day",
        ]
        assert strategies[0].tier == LeniencyTier.STRICT
        assert strategies[0].sort == "hot"
        assert strategies[2].tier == LeniencyTier.LENIENT
        assert strategies[1].limit == 50

    def test_desperate_is_top_all(self, http_client, reddit_source):
        fetcher = _fetcher(http_client)

        (desperate,) = fetcher.desperate_strategies(reddit_source, reddit_source.parse_config())

        assert (desperate.sort, desperate.window, desperate.limit) == ("top", "all", 100)
        assert desperate.tier == LeniencyTier.DESPERATE


class TestPublicEndpoint:
    @respx.mock
    async def test_adapts_posts(self, http_client, reddit_source, make_post, make_listing):
        self_post = make_post(
            title="How do you structure FastAPI apps?",
            url="https://www.reddit.com/r/Python/comments/def456/how_do_you/",
            url_overridden_by_dest=None,
            permalink="/r/Python/comments/def456/how_do_you/",
            selftext="Looking for advice on project layout.",
            link_flair_text="Discussion",
        )
        sticky = make_post(title="Weekly thread", stickied=True)
        respx.get(PUBLIC_HOT).mock(
            return_value=httpx.Response(200, json=make_listing(make_post(), self_post, sticky))
        )

        fetcher = _fetcher(http_client)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]
        candidates = await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert len(candidates) == 2
        link, question = candidates
        assert link.url == "https://github.com/example/runner"
        assert link.score == 120
        assert link.comments == 14
        assert link.extra["permalink"].startswith("https://www.reddit.com/r/Python/comments/abc123")
        assert question.description == "Looking for advice on project layout."
        assert question.tags == ["Discussion"]
        assert fetcher.stats.skipped == 1

    @respx.mock
    async def test_sends_limit_and_window(self, http_client, reddit_source, make_listing):
        route = respx.get("https://www.reddit.com/r/Python/top.json").mock(
            return_value=httpx.Response(200, json=make_listing())
        )

        fetcher = _fetcher(http_client)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[1]
        await fetcher.fetch(reddit_source, strategy, remaining=10)

        url = str(route.calls.last.request.url)
        assert "limit=50" in url
        assert "t=week" in url

    @respx.mock
    async def test_falls_back_across_header_approaches(
        self, http_client, reddit_source, make_post, make_listing
    ):
        route = respx.get(PUBLIC_HOT).mock(
            side_effect=[
                httpx.Response(403),
                httpx.Response(200, json=make_listing(make_post())),
            ]
        )

        fetcher = _fetcher(http_client)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]
        candidates = await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert len(candidates) == 1
        assert route.call_count == 2
        first, second = (c.request.headers["User-Agent"] for c in route.calls)
        assert "Mozilla" in first
        assert "(by /u/devdigest)" in second

    @respx.mock
    async def test_all_approaches_failing_raises(self, http_client, reddit_source):
        route = respx.get(PUBLIC_HOT).mock(return_value=httpx.Response(429))

        fetcher = _fetcher(http_client)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert exc_info.value.status_code == 429
        assert route.call_count == 3

    @respx.mock
    async def test_unexpected_shape_raises(self, http_client, reddit_source):
        respx.get(PUBLIC_HOT).mock(return_value=httpx.Response(200, json={"error": 404}))

        fetcher = _fetcher(http_client)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]

        with pytest.raises(FetchError):
            await fetcher.fetch(reddit_source, strategy, remaining=10)

    @respx.mock
    async def test_top_listing_ordered_by_score(
        self, http_client, reddit_source, make_post, make_listing
    ):
        posts = [
            make_post(title="low", url="https://e.com/1", score=5),
            make_post(title="high", url="https://e.com/2", score=500),
        ]
        respx.get("https://www.reddit.com/r/Python/top.json").mock(
            return_value=httpx.Response(200, json=make_listing(*posts))
        )

        fetcher = _fetcher(http_client)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[1]
        candidates = await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert [c.title for c in candidates] == ["high", "low"]


class TestOAuth:
    @respx.mock
    async def test_uses_oauth_endpoint_with_token(
        self, http_client, reddit_source, make_post, make_listing
    ):
        provider = MagicMock()
        provider.get_access_token = AsyncMock(return_value="tok")
        route = respx.get(OAUTH_HOT).mock(
            return_value=httpx.Response(200, json=make_listing(make_post()))
        )

        fetcher = _fetcher(http_client, provider)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]
        candidates = await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert len(candidates) == 1
        assert route.calls.last.request.headers["Authorization"] == "Bearer tok"

    @respx.mock
    async def test_unauthorized_invalidates_and_falls_back(
        self, http_client, reddit_source, make_post, make_listing
    ):
        provider = MagicMock()
        provider.get_access_token = AsyncMock(return_value="expired")
        respx.get(OAUTH_HOT).mock(return_value=httpx.Response(401))
        public = respx.get(PUBLIC_HOT).mock(
            return_value=httpx.Response(200, json=make_listing(make_post()))
        )

        fetcher = _fetcher(http_client, provider)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]
        candidates = await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert len(candidates) == 1
        assert public.called
        provider.invalidate.assert_called_once()


class TestTokenProvider:
    @respx.mock
    async def test_token_cached_until_expiry(self, http_client):
        route = respx.post(REDDIT_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "abc", "expires_in": 3600})
        )
        now = [0.0]
        provider = RedditTokenProvider(
            http_client, client_id="id", client_secret="secret", clock=lambda: now[0]
        )

        assert await provider.get_access_token() == "abc"
        assert await provider.get_access_token() == "abc"
        assert route.call_count == 1

        now[0] = 3600.0
        await provider.get_access_token()
        assert route.call_count == 2

    async def test_unconfigured_returns_none(self, http_client):
        provider = RedditTokenProvider(http_client, client_id="", client_secret="")
        provider._client_id = None

        assert provider.configured is False
        assert await provider.get_access_token() is None

    @respx.mock
    async def test_failed_grant_returns_none(self, http_client):
        respx.post(REDDIT_TOKEN_URL).mock(return_value=httpx.Response(401))
        provider = RedditTokenProvider(http_client, client_id="id", client_secret="bad")

        assert await provider.get_access_token() is None

    @respx.mock
    async def test_protocol_error_returns_none(self, http_client):
        respx.post(REDDIT_TOKEN_URL).mock(side_effect=httpx.RemoteProtocolError("connection dropped"))
        provider = RedditTokenProvider(http_client, client_id="id", client_secret="secret")

        assert await provider.get_access_token() is None

    @respx.mock
    async def test_flaky_token_endpoint_falls_back_to_public(
        self, http_client, reddit_source, make_post, make_listing
    ):
        respx.post(REDDIT_TOKEN_URL).mock(side_effect=httpx.RemoteProtocolError("connection dropped"))
        public = respx.get(PUBLIC_HOT).mock(
            return_value=httpx.Response(200, json=make_listing(make_post()))
        )
        provider = RedditTokenProvider(http_client, client_id="id", client_secret="secret")

        fetcher = _fetcher(http_client, provider)
        strategy = fetcher.strategies(reddit_source, reddit_source.parse_config())[0]
        candidates = await fetcher.fetch(reddit_source, strategy, remaining=10)

        assert len(candidates) == 1
        assert public.called


class TestExtractImages:
    def test_preview_thumbnail_and_direct(self):
        post = {
            "preview": {
                "images": [
                    {"source": {"url": "https://preview.redd.it/a.jpg?w=1&amp;s=2", "width": 800, "height": 600}}
                ]
            },
            "thumbnail": "https://b.thumbs.redditmedia.com/t.jpg",
            "url": "https://i.redd.it/xyz.png",
        }

        images = extract_images(post)

        assert [i["type"] for i in images] == ["preview", "thumbnail", "direct"]
        assert images[0]["url"] == "https://preview.redd.it/a.jpg?w=1&s=2"
        assert images[1]["width"] == 140

    def test_self_thumbnail_ignored(self):
        assert extract_images({"thumbnail": "self", "url": "https://e.com/article"}) == []
