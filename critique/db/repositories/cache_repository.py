"""Cache entry repository for database operations."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from critique.db.models.cache_entry import CacheEntry
from critique.db.repositories.base_repository import BaseRepository


class CacheEntryRepository(BaseRepository[CacheEntry]):
    """Repository for CacheEntry model operations."""

    def __init__(self, session: AsyncSession):
        """Initialize cache entry repository."""
        super().__init__(CacheEntry, session)

    async def upsert(self, key: str, value: str) -> CacheEntry:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: Cache key
            value: Serialized value

        Returns:
            Stored CacheEntry instance
        """
        entry = CacheEntry(key=key, value=value, updated_at=datetime.now(timezone.utc))
        return await self.add(entry)

    async def delete_by_key(self, key: str) -> bool:
        """
        Delete the entry for a key.

        Args:
            key: Cache key

        Returns:
            True if an entry was deleted, False if none existed
        """
        entry = await self.get(key)
        if entry is None:
            return False
        await self.delete(entry)
        return True

    async def get_keys_with_prefix(self, prefix: str) -> list[str]:
        """
        List keys starting with a prefix.

        Args:
            prefix: Key prefix

        Returns:
            Sorted list of matching keys
        """
        result = await self.session.execute(
            select(CacheEntry.key)
            .where(CacheEntry.key.startswith(prefix, autoescape=True))  # type: ignore[attr-defined]
            .order_by(CacheEntry.key)
        )
        return list(result.scalars().all())
