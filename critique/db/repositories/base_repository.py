"""Base repository with common database operations."""

from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """Base repository for common CRUD operations."""

    def __init__(self, model: type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLModel class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def add(self, obj: ModelType) -> ModelType:
        """
        Insert or update a record.

        Args:
            obj: Model instance to persist

        Returns:
            Persisted model instance
        """
        merged = await self.session.merge(obj)
        await self.session.flush()
        return merged

    async def get(self, pk: Any) -> ModelType | None:
        """
        Get record by primary key.

        Args:
            pk: Primary key value

        Returns:
            Model instance or None
        """
        return await self.session.get(self.model, pk)

    async def delete(self, obj: ModelType) -> None:
        """
        Delete a record.

        Args:
            obj: Model instance to delete
        """
        await self.session.delete(obj)
        await self.session.flush()
