"""Storage layer for content persistence."""

from devdigest.storage.database import Database, get_database
from devdigest.storage.memory import InMemoryContentStore
from devdigest.storage.repository import ContentRepository, DuplicateKeyError

__all__ = [
    "ContentRepository",
    "Database",
    "DuplicateKeyError",
    "InMemoryContentStore",
    "get_database",
]
