"""Key-value entry backing the local metadata cache."""

from datetime import datetime, timezone

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(SQLModel, table=True):
    """One cached value (tag catalog, per-job screenshot metadata, current job)."""

    __tablename__ = "cache_entries"

    key: str = Field(primary_key=True, max_length=255, nullable=False)
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)
