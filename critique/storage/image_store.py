"""Client for the image persistence service."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

import httpx
import structlog

from critique.config import settings
from critique.storage.models import BlobInfo, BlobPage
from critique.utils.exceptions import StorageUnavailableError
from critique.utils.retry import retry_with_exponential_backoff

logger = structlog.get_logger(__name__)


class ImageStore(Protocol):
    """Remote persistence for captured image bytes."""

    async def put(self, key: str, data: bytes, content_type: str = "image/jpeg") -> str:
        """Store bytes under a key and return their public URL."""
        ...

    async def delete(self, url: str) -> bool:
        """Delete a stored image by URL."""
        ...

    async def list(
        self, prefix: str = "screenshots/", limit: int = 100, cursor: str | None = None
    ) -> BlobPage:
        """List stored images under a prefix."""
        ...


class HttpImageStore:
    """
    ImageStore speaking to the upload/list/delete endpoints over HTTP.

    Every failure (connection error, timeout, non-2xx response, malformed body)
    is reported as StorageUnavailableError so that callers can degrade.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API base URL (defaults to settings.storage_api_url)
            timeout: Per-request timeout in seconds (defaults to settings.storage_timeout_seconds)
            max_retries: Upload retries (defaults to settings.storage_max_retries)
            api_key: Value for the X-API-Key header (defaults to settings.api_key)
            client: Pre-built httpx client, mainly for tests
        """
        self.base_url = (base_url or settings.storage_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.storage_timeout_seconds
        self.max_retries = (
            max_retries if max_retries is not None else settings.storage_max_retries
        )
        if api_key is None and settings.api_key is not None:
            api_key = settings.api_key.get_secret_value()
        self.api_key = api_key
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if content_type:
            headers["Content-Type"] = content_type
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str | int],
        content: bytes | None = None,
        content_type: str | None = None,
    ) -> dict:  # type: ignore[type-arg]
        url = f"{self.base_url}{path}"
        try:
            async with self._session() as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    content=content,
                    headers=self._headers(content_type),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise StorageUnavailableError(
                f"{method} {path} failed: {type(e).__name__}: {e}"
            ) from e

        if response.status_code >= 400:
            raise StorageUnavailableError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise StorageUnavailableError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(payload, dict):
            raise StorageUnavailableError(f"{method} {path} returned unexpected payload")
        return payload

    async def _put_once(self, key: str, data: bytes, content_type: str) -> str:
        payload = await self._request(
            "POST",
            "/upload-screenshot",
            params={"filename": key},
            content=data,
            content_type=content_type,
        )
        url = payload.get("url")
        if not isinstance(url, str) or not url:
            raise StorageUnavailableError("Upload response did not include a URL")
        return url

    async def put(self, key: str, data: bytes, content_type: str = "image/jpeg") -> str:
        """
        Upload bytes under a key.

        Args:
            key: Blob pathname
            data: Image bytes
            content_type: MIME type of the bytes

        Returns:
            Public URL of the stored image

        Raises:
            StorageUnavailableError: If every attempt fails
        """
        url = await retry_with_exponential_backoff(
            self._put_once,
            key,
            data,
            content_type,
            max_retries=self.max_retries,
            retry_on_exceptions=(StorageUnavailableError,),
        )
        logger.info("image_uploaded", key=key, size=len(data), url=url)
        return url

    async def delete(self, url: str) -> bool:
        """
        Delete an image by URL.

        Returns:
            True when the service confirmed the deletion

        Raises:
            StorageUnavailableError: If the service could not be reached or refused
        """
        payload = await self._request("DELETE", "/delete-screenshot", params={"url": url})
        deleted = bool(payload.get("success"))
        logger.info("image_deleted", url=url, success=deleted)
        return deleted

    async def list(
        self, prefix: str = "screenshots/", limit: int = 100, cursor: str | None = None
    ) -> BlobPage:
        """
        List stored images under a prefix.

        Raises:
            StorageUnavailableError: If the service could not be reached
        """
        params: dict[str, str | int] = {"prefix": prefix, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        payload = await self._request("GET", "/list-screenshots", params=params)
        try:
            blobs = [BlobInfo.model_validate(item) for item in payload.get("screenshots", [])]
        except ValueError as e:
            raise StorageUnavailableError(f"Malformed listing: {e}") from e
        return BlobPage(
            blobs=blobs,
            cursor=payload.get("cursor"),
            has_more=bool(payload.get("has_more", False)),
        )
