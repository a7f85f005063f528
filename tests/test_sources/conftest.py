"""Fixtures for sources tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_db() -> MagicMock:
    db = MagicMock()
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=0)
    return db


@pytest.fixture
def source_row():
    """Factory for a dict standing in for an asyncpg sources row."""

    def _make(**overrides) -> dict:
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        row = {
            "id": "example-feed",
            "name": "Example Feed",
            "type": "rss",
            "url": "https://blog.example.com/feed.xml",
            "category": "Tech News",
            "description": "",
            "is_active": True,
            "priority": 2,
            "config": "{}",
            "filters": '{"include_keywords": ["python"], "min_word_count": 50}',
            "stats": '{"total_fetched": 7, "total_runs": 2, "total_errors": 1}',
            "last_fetched": now,
            "created_at": now,
            "updated_at": now,
        }
        row.update(overrides)
        return row

    return _make
