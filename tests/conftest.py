"""Pytest configuration and fixtures."""

import os
import tempfile

# Keep the module-level settings object away from the working directory.
os.environ.setdefault("CRITIQUE_DATA_DIR", tempfile.mkdtemp(prefix="critique-tests-"))

from collections.abc import AsyncGenerator, Generator  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from PIL import Image  # noqa: E402

from critique.config import Settings  # noqa: E402
from critique.core.annotations import AnnotationStore  # noqa: E402
from critique.core.permissions import Role  # noqa: E402
from critique.core.users import User  # noqa: E402
from critique.db.session import build_engine, build_session_factory, close_db, init_db  # noqa: E402
from critique.storage.local_cache import LocalCache  # noqa: E402
from critique.storage.models import BlobPage  # noqa: E402
from critique.utils.exceptions import StorageUnavailableError  # noqa: E402


class FakeImageStore:
    """In-memory ImageStore that can be told to fail."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_delete_urls: set[str] = set()
        self.deleted: list[str] = []

    async def put(self, key: str, data: bytes, content_type: str = "image/jpeg") -> str:
        if self.fail_put:
            raise StorageUnavailableError("upload service unreachable")
        url = f"https://blobs.test/{key}"
        self.blobs[url] = data
        return url

    async def delete(self, url: str) -> bool:
        if url in self.fail_delete_urls:
            raise StorageUnavailableError(f"cannot delete {url}")
        self.deleted.append(url)
        return self.blobs.pop(url, None) is not None

    async def list(
        self, prefix: str = "screenshots/", limit: int = 100, cursor: str | None = None
    ) -> BlobPage:
        return BlobPage(blobs=[])


class SteppingClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def test_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """
    Provide test configuration with overrides.

    Yields:
        Settings instance for testing
    """
    original_env = os.environ.copy()

    os.environ["CRITIQUE_DATA_DIR"] = str(tmp_path / "data")
    os.environ["CRITIQUE_LOG_LEVEL"] = "DEBUG"
    os.environ["CRITIQUE_STORAGE_TIMEOUT_SECONDS"] = "2.5"

    yield Settings()

    os.environ.clear()
    os.environ.update(original_env)


@pytest_asyncio.fixture
async def cache() -> AsyncGenerator[LocalCache, None]:
    """LocalCache over a fresh in-memory SQLite database."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield LocalCache(build_session_factory(engine))
    await close_db(engine)


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def admin() -> User:
    return User(name="Admin", role=Role.ADMIN)


@pytest.fixture
def client_user() -> User:
    return User(name="Client Reviewer", role=Role.CLIENT)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def frame() -> Image.Image:
    """A 200x100 rendered frame: red left half, blue right half."""
    image = Image.new("RGB", (200, 100), (255, 0, 0))
    image.paste((0, 0, 255), (100, 0, 200, 100))
    return image


@pytest.fixture
def open_store(cache: LocalCache, image_store: FakeImageStore, admin: User, clock: SteppingClock):
    """Factory opening an AnnotationStore on the shared cache and image store."""

    async def factory(user: User | None = None, job_id: str = "job-1") -> AnnotationStore:
        return await AnnotationStore.open(
            job_id, user or admin, image_store, cache, clock=clock
        )

    return factory
