"""Tests for the content repository and the in-memory store."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from devdigest.storage.memory import InMemoryContentStore
from devdigest.storage.repository import ContentRepository, DuplicateKeyError


@pytest.fixture
def mock_db() -> MagicMock:
    db = MagicMock()
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=0)
    return db


@pytest.fixture
def item_row(sample_item):
    row = sample_item.model_dump()
    row["sentiment"] = "positive"
    row["technologies"] = ["Python"]
    row["analysis"] = None
    row["metadata"] = json.dumps({"author": "pg"})
    return row


class TestContentRepository:
    async def test_find_by_url_unscoped(self, mock_db, item_row):
        mock_db.fetchrow.return_value = item_row

        item = await ContentRepository(mock_db).find_by_url(item_row["url"])

        assert item.url == item_row["url"]
        assert item.metadata == {"author": "pg"}
        assert item.sentiment.value == "positive"
        assert "created_at" not in mock_db.fetchrow.await_args.args[0]

    async def test_find_by_url_with_window(self, mock_db):
        since = datetime(2026, 3, 1, tzinfo=timezone.utc)

        result = await ContentRepository(mock_db).find_by_url("https://e.com/x", since=since)

        assert result is None
        sql, url, bound = mock_db.fetchrow.await_args.args
        assert "created_at >= $2" in sql
        assert bound == since

    async def test_save_serializes_fields(self, mock_db, sample_item):
        item = sample_item.model_copy(update={"metadata": {"strategy": {"name": "primary"}}})

        await ContentRepository(mock_db).save(item)

        args = mock_db.execute.await_args.args
        assert args[1] == item.url
        assert args[8] == "neutral"
        assert args[12] is None
        assert json.loads(args[13]) == {"strategy": {"name": "primary"}}

    async def test_unique_violation_becomes_duplicate(self, mock_db, sample_item):
        mock_db.execute.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(DuplicateKeyError) as exc_info:
            await ContentRepository(mock_db).save(sample_item)

        assert exc_info.value.url == sample_item.url

    async def test_list_recent_filters(self, mock_db, item_row):
        mock_db.fetchval.return_value = 1
        mock_db.fetch.return_value = [item_row]

        items, total = await ContentRepository(mock_db).list_recent(
            limit=5, category="Startups", source="Hacker News"
        )

        assert total == 1
        assert items[0].title == item_row["title"]
        assert mock_db.fetch.await_args.args[1:] == ("Startups", "Hacker News", 5, 0)

    async def test_mark_processed(self, mock_db):
        mock_db.execute.return_value = "UPDATE 1"

        updated = await ContentRepository(mock_db).mark_processed(
            "https://e.com/x", {"method": "fallback"}, reading_time=3
        )

        assert updated
        _, url, analysis, reading_time = mock_db.execute.await_args.args
        assert json.loads(analysis) == {"method": "fallback"}
        assert reading_time == 3


class TestInMemoryContentStore:
    async def test_save_and_find(self, memory_store, sample_item):
        await memory_store.save(sample_item)

        assert await memory_store.find_by_url(sample_item.url) == sample_item
        assert await memory_store.count() == 1

    async def test_duplicate_save_rejected(self, memory_store, sample_item):
        await memory_store.save(sample_item)

        with pytest.raises(DuplicateKeyError):
            await memory_store.save(sample_item)

    async def test_concurrent_saves_keep_one(self, memory_store, sample_item):
        results = await asyncio.gather(
            *(memory_store.save(sample_item) for _ in range(5)), return_exceptions=True
        )

        assert sum(r is None for r in results) == 1
        assert await memory_store.count() == 1

    async def test_since_window(self, memory_store, sample_item):
        now = datetime.now(timezone.utc)
        memory_store.seed(sample_item, now - timedelta(hours=30))

        assert await memory_store.find_by_url(sample_item.url, since=now - timedelta(hours=24)) is None
        assert await memory_store.find_by_url(sample_item.url, since=now - timedelta(hours=48))

    async def test_list_recent_newest_first(self, sample_item):
        older = sample_item.model_copy(
            update={"url": "https://e.com/old", "published_at": sample_item.published_at - timedelta(days=1)}
        )
        other = sample_item.model_copy(update={"url": "https://e.com/other", "category": "AI"})
        store = InMemoryContentStore([older, sample_item, other])

        items, total = await store.list_recent(category="Startups")

        assert total == 2
        assert [i.url for i in items] == [sample_item.url, "https://e.com/old"]

    async def test_unprocessed_and_mark(self, memory_store, sample_item):
        await memory_store.save(sample_item)

        assert await memory_store.mark_processed(sample_item.url, {"method": "model"}, reading_time=4)
        assert await memory_store.list_unprocessed() == []
        stored = await memory_store.find_by_url(sample_item.url)
        assert stored.is_processed
        assert stored.reading_time == 4
        assert not await memory_store.mark_processed("https://e.com/missing", {})
