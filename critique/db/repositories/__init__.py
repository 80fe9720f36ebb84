"""Database repositories for Critique."""

from critique.db.repositories.base_repository import BaseRepository
from critique.db.repositories.cache_repository import CacheEntryRepository

__all__ = [
    "BaseRepository",
    "CacheEntryRepository",
]
