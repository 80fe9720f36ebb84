"""Unit tests for the filesystem blob backend."""

from pathlib import Path

import pytest

from critique.storage.blob_backend import FilesystemBlobBackend


@pytest.fixture
def backend(tmp_path: Path) -> FilesystemBlobBackend:
    return FilesystemBlobBackend(tmp_path / "blobs", "http://localhost:8000/")


def test_put_and_read(backend: FilesystemBlobBackend):
    info = backend.put("screenshots/job-1/screenshot-1.jpg", b"jpeg-bytes")

    assert info.url == "http://localhost:8000/blobs/screenshots/job-1/screenshot-1.jpg"
    assert info.size == len(b"jpeg-bytes")
    assert info.content_type == "image/jpeg"
    assert backend.read(info.pathname) == b"jpeg-bytes"


@pytest.mark.parametrize("pathname", ["", "/etc/passwd", "../outside.jpg", "a/../../b.jpg"])
def test_rejects_unsafe_pathnames(backend: FilesystemBlobBackend, pathname: str):
    with pytest.raises(ValueError):
        backend.put(pathname, b"x")


def test_list_with_prefix_and_cursor(backend: FilesystemBlobBackend):
    for name in ["a", "b", "c"]:
        backend.put(f"screenshots/job-1/{name}.jpg", b"x")
    backend.put("metadata/job-1/a.json", b"{}")

    first = backend.list(prefix="screenshots/", limit=2)
    second = backend.list(prefix="screenshots/", limit=2, cursor=first.cursor)

    assert [b.pathname for b in first.blobs] == [
        "screenshots/job-1/a.jpg",
        "screenshots/job-1/b.jpg",
    ]
    assert first.has_more and first.cursor == "screenshots/job-1/b.jpg"
    assert [b.pathname for b in second.blobs] == ["screenshots/job-1/c.jpg"]
    assert not second.has_more and second.cursor is None


def test_delete_by_url_or_pathname(backend: FilesystemBlobBackend):
    info = backend.put("screenshots/a.jpg", b"x")
    backend.put("screenshots/b.jpg", b"x")

    assert backend.delete(info.url) is True
    assert backend.delete("screenshots/b.jpg") is True
    assert backend.delete(info.url) is False
    assert backend.count() == 0


def test_delete_foreign_url(backend: FilesystemBlobBackend):
    with pytest.raises(ValueError):
        backend.delete("https://elsewhere.test/files/a.jpg")
