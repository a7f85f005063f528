"""
URL-based deduplication against the content store.

Two items are duplicates when their URLs are equal, nothing more. A normal
refresh checks the whole store; a forced refresh only looks back over a
recent window so that older items can be re-admitted.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from devdigest.ingestion.schemas import ContentItem

logger = logging.getLogger(__name__)


class ContentLookup(Protocol):
    async def find_by_url(
        self, url: str, since: datetime | None = None
    ) -> ContentItem | None: ...


class Deduplicator:
    """Checks candidate URLs against already persisted items."""

    def __init__(self, store: ContentLookup, window: timedelta | None = None):
        self._store = store
        self._window = window

    @property
    def window(self) -> timedelta | None:
        return self._window

    def _since(self) -> datetime | None:
        if self._window is None:
            return None
        return datetime.now(timezone.utc) - self._window

    async def exists(self, url: str) -> bool:
        """Whether an item with this URL is already stored (within the window)."""
        existing = await self._store.find_by_url(url, since=self._since())
        if existing is not None:
            logger.debug(f"Duplicate URL skipped: {url}")
            return True
        return False
