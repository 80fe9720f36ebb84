"""FastAPI dependencies for route handlers."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from critique.config import settings
from critique.core.users import UserDirectory
from critique.db.session import get_session
from critique.storage.blob_backend import FilesystemBlobBackend


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide async database session to route handlers.

    Yields:
        AsyncSession: Session on the local cache database
    """
    async for session in get_session():
        yield session


def get_blob_backend() -> FilesystemBlobBackend:
    """Provide the blob backend rooted at settings.blob_dir."""
    return FilesystemBlobBackend(settings.blob_root, settings.public_base_url)


def get_user_directory() -> UserDirectory:
    """Provide the access-token lookup table."""
    return UserDirectory()
