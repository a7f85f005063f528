"""In-process content store with the same interface as ContentRepository.

Used for dry runs and tests. Saves are serialized with a lock so that URL
uniqueness holds under concurrent refresh tasks.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

from devdigest.ingestion.schemas import ContentItem
from devdigest.storage.repository import DuplicateKeyError


class InMemoryContentStore:
    def __init__(self, items: list[ContentItem] | None = None):
        self._items: dict[str, ContentItem] = {}
        self._created_at: dict[str, datetime] = {}
        self._lock = asyncio.Lock()
        for item in items or []:
            self._items[item.url] = item
            self._created_at[item.url] = datetime.now(timezone.utc)

    def seed(self, item: ContentItem, created_at: datetime) -> None:
        """Insert an item with an explicit storage time."""
        self._items[item.url] = item
        self._created_at[item.url] = created_at

    async def find_by_url(
        self, url: str, since: datetime | None = None
    ) -> ContentItem | None:
        item = self._items.get(url)
        if item is None:
            return None
        if since is not None and self._created_at[url] < since:
            return None
        return item

    async def save(self, item: ContentItem) -> None:
        async with self._lock:
            if item.url in self._items:
                raise DuplicateKeyError(item.url)
            self._items[item.url] = item
            self._created_at[item.url] = datetime.now(timezone.utc)

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        category: str | None = None,
        source: str | None = None,
    ) -> tuple[list[ContentItem], int]:
        items = [
            i for i in self._items.values()
            if (category is None or i.category == category)
            and (source is None or i.source == source)
        ]
        items.sort(key=lambda i: i.published_at, reverse=True)
        return items[offset:offset + limit], len(items)

    async def list_unprocessed(self, limit: int = 20) -> list[ContentItem]:
        pending = [u for u, i in self._items.items() if not i.is_processed]
        pending.sort(key=lambda u: self._created_at[u])
        return [self._items[u] for u in pending[:limit]]

    async def mark_processed(
        self,
        url: str,
        analysis: dict[str, Any],
        reading_time: int | None = None,
    ) -> bool:
        item = self._items.get(url)
        if item is None:
            return False
        update: dict[str, Any] = {"is_processed": True, "analysis": analysis}
        if reading_time is not None:
            update["reading_time"] = reading_time
        self._items[url] = item.model_copy(update=update)
        return True

    async def count(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[ContentItem]:
        return list(self._items.values())
