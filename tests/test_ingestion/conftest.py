"""Shared fixtures for ingestion tests."""

from typing import AsyncGenerator

import pytest

from devdigest.ingestion.http_client import HTTPClient, RetryConfig


@pytest.fixture
async def http_client() -> AsyncGenerator[HTTPClient, None]:
    """HTTP client without retries, so mocked failures surface immediately."""
    async with HTTPClient(RetryConfig(max_retries=0)) as client:
        yield client


@pytest.fixture
def make_post():
    """Factory for a Reddit listing child ``data`` payload."""

    def _make(**overrides) -> dict:
        post = {
            "title": "Show r/Python: a tiny async task runner",
            "url": "https://github.com/example/runner",
            "permalink": "/r/Python/comments/abc123/show_rpython_a_tiny_async_task_runner/",
            "selftext": "",
            "author": "alice",
            "created_utc": 1772359200,
            "score": 120,
            "num_comments": 14,
            "subreddit": "Python",
            "stickied": False,
            "is_video": False,
            "thumbnail": "self",
            "upvote_ratio": 0.97,
        }
        post.update(overrides)
        return post

    return _make


@pytest.fixture
def make_listing():
    """Factory wrapping posts in a Reddit listing envelope."""

    def _make(*posts: dict) -> dict:
        return {
            "kind": "Listing",
            "data": {"children": [{"kind": "t3", "data": p} for p in posts]},
        }

    return _make
