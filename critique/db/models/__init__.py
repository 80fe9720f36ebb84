"""Database models for Critique."""

from critique.db.models.cache_entry import CacheEntry

__all__ = [
    "CacheEntry",
]
