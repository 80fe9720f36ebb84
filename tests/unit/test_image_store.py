"""Unit tests for the HTTP image store client."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from critique.storage.image_store import HttpImageStore
from critique.utils.exceptions import StorageUnavailableError

BASE_URL = "http://storage.test/api"


def make_store(handler, **kwargs) -> HttpImageStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpImageStore(base_url=BASE_URL, client=client, api_key="", **kwargs)


@pytest.mark.asyncio
async def test_put_posts_body_and_returns_url():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "success": True,
                "url": "http://storage.test/blobs/screenshots/job-1/a.jpg",
                "pathname": "screenshots/job-1/a.jpg",
                "size": 3,
            },
        )

    url = await make_store(handler).put("screenshots/job-1/a.jpg", b"abc")

    assert url == "http://storage.test/blobs/screenshots/job-1/a.jpg"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/upload-screenshot"
    assert request.url.params["filename"] == "screenshots/job-1/a.jpg"
    assert request.content == b"abc"
    assert request.headers["content-type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_put_sends_api_key():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-api-key"] == "secret"
        return httpx.Response(200, json={"url": "http://x/blobs/a"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    store = HttpImageStore(base_url=BASE_URL, client=client, api_key="secret")

    assert await store.put("a", b"1") == "http://x/blobs/a"


@pytest.mark.asyncio
async def test_put_retries_then_succeeds():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(503, json={"error": "busy"})
        return httpx.Response(200, json={"url": "http://x/blobs/a"})

    with patch("critique.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        url = await make_store(handler, max_retries=1).put("a", b"1")

    assert url == "http://x/blobs/a"
    assert calls["count"] == 2
    sleep.assert_awaited_once()


@pytest.mark.asyncio
async def test_put_raises_storage_unavailable_after_retries():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with patch("critique.utils.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(StorageUnavailableError) as exc_info:
            await make_store(handler, max_retries=2).put("a", b"1")

    assert "ConnectError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_put_without_url_in_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True})

    with pytest.raises(StorageUnavailableError):
        await make_store(handler, max_retries=0).put("a", b"1")


@pytest.mark.asyncio
async def test_invalid_json_is_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>gateway</html>")

    with pytest.raises(StorageUnavailableError):
        await make_store(handler).delete("http://x/blobs/a")


@pytest.mark.asyncio
async def test_delete_passes_url():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.params["url"] == "http://x/blobs/a"
        return httpx.Response(200, json={"success": True, "deleted": True})

    assert await make_store(handler).delete("http://x/blobs/a") is True


@pytest.mark.asyncio
async def test_delete_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Delete failed"})

    with pytest.raises(StorageUnavailableError) as exc_info:
        await make_store(handler).delete("http://x/blobs/a")

    assert "500" in str(exc_info.value)


@pytest.mark.asyncio
async def test_list_parses_page():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["prefix"] == "screenshots/job-1/"
        assert request.url.params["cursor"] == "screenshots/job-1/a.jpg"
        body = {
            "success": True,
            "screenshots": [
                {
                    "url": "http://x/blobs/screenshots/job-1/b.jpg",
                    "pathname": "screenshots/job-1/b.jpg",
                    "size": 10,
                    "contentType": "image/jpeg",
                    "uploadedAt": "2024-06-01T12:00:00Z",
                }
            ],
            "cursor": None,
            "has_more": False,
        }
        return httpx.Response(200, content=json.dumps(body).encode())

    page = await make_store(handler).list(
        prefix="screenshots/job-1/", limit=5, cursor="screenshots/job-1/a.jpg"
    )

    assert [b.pathname for b in page.blobs] == ["screenshots/job-1/b.jpg"]
    assert page.blobs[0].content_type == "image/jpeg"
    assert not page.has_more
