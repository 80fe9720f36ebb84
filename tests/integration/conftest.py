"""Fixtures for exercising the HTTP surface."""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from critique.api.dependencies import get_blob_backend, get_db
from critique.db.session import build_engine, build_session_factory
from critique.main import app
from critique.storage.blob_backend import FilesystemBlobBackend


@pytest.fixture
def blob_backend(tmp_path: Path) -> FilesystemBlobBackend:
    return FilesystemBlobBackend(tmp_path / "blobs", "http://testserver")


@pytest.fixture
def client(blob_backend: FilesystemBlobBackend) -> Generator[TestClient, None, None]:
    """TestClient with the blob store redirected to a temporary directory."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    session_factory = build_session_factory(engine)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_blob_backend] = lambda: blob_backend
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
