"""Filesystem-backed blob store served by the API."""

import mimetypes
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import structlog

from critique.storage.models import BlobInfo, BlobPage

logger = structlog.get_logger(__name__)

BLOB_ROUTE = "/blobs"


class FilesystemBlobBackend:
    """
    Store blobs as files below a root directory.

    Pathnames are POSIX-style keys such as ``screenshots/job-1/screenshot-1.jpg``.
    Public URLs are ``<public_base_url>/blobs/<pathname>``.
    """

    def __init__(self, root: Path, public_base_url: str) -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, pathname: str) -> Path:
        """Map a pathname to a file below root, rejecting traversal."""
        pure = PurePosixPath(pathname)
        if not pathname or pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"Invalid blob pathname: {pathname!r}")
        return self.root.joinpath(*pure.parts)

    def url_for(self, pathname: str) -> str:
        """Return the public URL of a pathname."""
        return f"{self.public_base_url}{BLOB_ROUTE}/{pathname}"

    def pathname_from_url(self, url: str) -> str:
        """
        Extract the pathname from a public URL (or accept a bare pathname).

        Raises:
            ValueError: If the URL does not point into this blob store
        """
        parsed = urlparse(url)
        if not parsed.scheme:
            return url.lstrip("/")
        marker = f"{BLOB_ROUTE}/"
        path = unquote(parsed.path)
        if marker not in path:
            raise ValueError(f"URL is not served by this blob store: {url}")
        return path.split(marker, 1)[1]

    def _info(self, pathname: str, file_path: Path) -> BlobInfo:
        stat = file_path.stat()
        return BlobInfo(
            url=self.url_for(pathname),
            pathname=pathname,
            size=stat.st_size,
            content_type=mimetypes.guess_type(pathname)[0],
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def put(self, pathname: str, data: bytes) -> BlobInfo:
        """
        Write a blob, replacing any existing blob at the same pathname.

        Args:
            pathname: Blob key
            data: Blob bytes

        Returns:
            BlobInfo for the stored blob
        """
        file_path = self._resolve(pathname)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)
        logger.info("blob_stored", pathname=pathname, size=len(data))
        return self._info(pathname, file_path)

    def read(self, pathname: str) -> bytes:
        """
        Read a blob.

        Raises:
            FileNotFoundError: If no blob exists at the pathname
        """
        return self._resolve(pathname).read_bytes()

    def list(self, prefix: str = "", limit: int = 100, cursor: str | None = None) -> BlobPage:
        """
        List blobs whose pathname starts with a prefix, ordered by pathname.

        Args:
            prefix: Pathname prefix
            limit: Maximum number of blobs in the page
            cursor: Pathname of the last blob of the previous page

        Returns:
            BlobPage with the next cursor when more blobs remain
        """
        pathnames = sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file()
        )
        matching = [
            name
            for name in pathnames
            if name.startswith(prefix) and (cursor is None or name > cursor)
        ]
        page = matching[:limit]
        has_more = len(matching) > limit
        blobs = [self._info(name, self.root / name) for name in page]
        return BlobPage(
            blobs=blobs,
            cursor=page[-1] if has_more and page else None,
            has_more=has_more,
        )

    def delete(self, url_or_pathname: str) -> bool:
        """
        Delete a blob by public URL or pathname.

        Returns:
            True if a blob was removed, False if it did not exist
        """
        pathname = self.pathname_from_url(url_or_pathname)
        file_path = self._resolve(pathname)
        if not file_path.exists():
            logger.info("blob_not_found", pathname=pathname)
            return False
        file_path.unlink()
        logger.info("blob_deleted", pathname=pathname)
        return True

    def count(self) -> int:
        """Return the number of stored blobs."""
        return sum(1 for path in self.root.rglob("*") if path.is_file())
