"""Integration tests for the blob upload/list/delete endpoints."""

import inspect

import pytest
from pydantic import SecretStr

from critique.api.routes import blobs, health, screenshots
from critique.config import settings

pytestmark = pytest.mark.integration


class TestUpload:
    """Test POST /api/upload-screenshot."""

    def test_upload_stores_body(self, client, blob_backend):
        response = client.post(
            "/api/upload-screenshot",
            params={"filename": "screenshots/job-1/screenshot-1.jpg"},
            content=b"jpeg-bytes",
            headers={"Content-Type": "image/jpeg"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["pathname"] == "screenshots/job-1/screenshot-1.jpg"
        assert data["url"] == "http://testserver/blobs/screenshots/job-1/screenshot-1.jpg"
        assert data["size"] == 10
        assert blob_backend.read(data["pathname"]) == b"jpeg-bytes"

    def test_upload_requires_filename(self, client):
        response = client.post("/api/upload-screenshot", content=b"x")

        assert response.status_code == 400
        assert response.json() == {"error": "Filename is required"}

    def test_upload_rejects_traversal(self, client):
        response = client.post(
            "/api/upload-screenshot", params={"filename": "../evil.jpg"}, content=b"x"
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid filename"
        assert "details" in response.json()

    def test_upload_wrong_method(self, client):
        response = client.get("/api/upload-screenshot", params={"filename": "a.jpg"})

        assert response.status_code == 405
        assert "error" in response.json()


class TestList:
    """Test GET /api/list-screenshots."""

    def test_list_defaults_to_screenshots_prefix(self, client, blob_backend):
        blob_backend.put("screenshots/job-1/a.jpg", b"x")
        blob_backend.put("metadata/job-1/a.json", b"{}")

        response = client.get("/api/list-screenshots")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [b["pathname"] for b in data["screenshots"]] == ["screenshots/job-1/a.jpg"]
        assert data["screenshots"][0]["contentType"] == "image/jpeg"
        assert data["has_more"] is False

    def test_list_paginates(self, client, blob_backend):
        for name in "abc":
            blob_backend.put(f"screenshots/{name}.jpg", b"x")

        first = client.get("/api/list-screenshots", params={"limit": 2}).json()
        second = client.get(
            "/api/list-screenshots", params={"limit": 2, "cursor": first["cursor"]}
        ).json()

        assert first["has_more"] is True
        assert [b["pathname"] for b in second["screenshots"]] == ["screenshots/c.jpg"]

    def test_list_invalid_limit(self, client):
        response = client.get("/api/list-screenshots", params={"limit": 0})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"


class TestDelete:
    """Test DELETE /api/delete-screenshot."""

    def test_delete_by_url(self, client, blob_backend):
        info = blob_backend.put("screenshots/a.jpg", b"x")

        response = client.delete("/api/delete-screenshot", params={"url": info.url})

        assert response.status_code == 200
        assert response.json() == {"success": True, "deleted": True}
        assert blob_backend.count() == 0

    def test_delete_missing_blob_succeeds(self, client):
        response = client.delete(
            "/api/delete-screenshot", params={"url": "http://testserver/blobs/nope.jpg"}
        )

        assert response.status_code == 200
        assert response.json()["deleted"] is False

    def test_delete_requires_url(self, client):
        response = client.delete("/api/delete-screenshot")

        assert response.status_code == 400
        assert response.json() == {"error": "URL is required"}


class TestApiKey:
    """Test write protection with X-API-Key."""

    def test_missing_key_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "require_api_key", True)
        monkeypatch.setattr(settings, "api_key", SecretStr("s3cret-key"))

        response = client.post(
            "/api/upload-screenshot", params={"filename": "a.jpg"}, content=b"x"
        )

        assert response.status_code == 401
        assert "API key is required" in response.json()["error"]

    def test_valid_key_accepted(self, client, monkeypatch):
        monkeypatch.setattr(settings, "require_api_key", True)
        monkeypatch.setattr(settings, "api_key", SecretStr("s3cret-key"))

        response = client.post(
            "/api/upload-screenshot",
            params={"filename": "a.jpg"},
            content=b"x",
            headers={"X-API-Key": "s3cret-key"},
        )

        assert response.status_code == 200

    def test_list_is_public(self, client, monkeypatch):
        monkeypatch.setattr(settings, "require_api_key", True)
        monkeypatch.setattr(settings, "api_key", SecretStr("s3cret-key"))

        assert client.get("/api/list-screenshots").status_code == 200


def test_filesystem_handlers_are_sync():
    """Handlers doing blocking file I/O are plain functions so FastAPI runs them in its threadpool."""
    handlers = (
        blobs.list_screenshots,
        blobs.delete_screenshot,
        screenshots.create_screenshot_record,
        screenshots.list_screenshot_records,
        screenshots.delete_screenshot_record,
        health.test_connection,
    )

    assert not any(inspect.iscoroutinefunction(handler) for handler in handlers)
