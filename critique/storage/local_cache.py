"""Local key-value cache persisted across CLI runs and API restarts."""

import json
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from critique.db.repositories.cache_repository import CacheEntryRepository

logger = structlog.get_logger(__name__)


class LocalCache:
    """
    Small key-value store over the cache_entries table.

    Holds the tag catalog, per-job screenshot metadata and the current job id.
    Each call runs in its own transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        """Return the raw value stored under a key, or None."""
        async with self._session_factory() as session:
            entry = await CacheEntryRepository(session).get(key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str) -> None:
        """Store a raw value under a key."""
        async with self._session_factory() as session:
            await CacheEntryRepository(session).upsert(key, value)
            await session.commit()
        logger.debug("cache_set", key=key, size=len(value))

    async def remove(self, key: str) -> bool:
        """Remove a key. Returns False when nothing was stored."""
        async with self._session_factory() as session:
            removed = await CacheEntryRepository(session).delete_by_key(key)
            await session.commit()
        logger.debug("cache_remove", key=key, removed=removed)
        return removed

    async def keys(self, prefix: str = "") -> list[str]:
        """List stored keys with a prefix."""
        async with self._session_factory() as session:
            return await CacheEntryRepository(session).get_keys_with_prefix(prefix)

    async def get_json(self, key: str, default: Any = None) -> Any:
        """
        Return a JSON value stored under a key.

        Corrupt entries are logged and treated as missing.
        """
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("cache_entry_corrupt", key=key, error=str(e))
            return default

    async def set_json(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under a key."""
        await self.set(key, json.dumps(value, default=str))
