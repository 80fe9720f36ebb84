"""Upload, list and delete endpoints for the blob store."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from critique.api.dependencies import get_blob_backend
from critique.api.schemas.blobs import DeleteResponse, ListResponse, UploadResponse
from critique.api.security import verify_api_key
from critique.config import settings
from critique.storage.blob_backend import FilesystemBlobBackend

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["blobs"])


@router.post(
    "/upload-screenshot",
    response_model=UploadResponse,
    dependencies=[Depends(verify_api_key)],
)
async def upload_screenshot(
    request: Request,
    filename: str | None = Query(None, description="Blob pathname to store under"),
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> UploadResponse:
    """
    Store the raw request body as a blob.

    Raises:
        HTTPException: 400 without filename or body, 500 if the write fails
    """
    if not filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    data = await request.body()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is empty")

    try:
        info = await run_in_threadpool(backend.put, filename, data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid filename", "details": str(e)},
        ) from e
    except OSError as e:
        logger.error("upload_failed", filename=filename, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Upload failed", "details": str(e)},
        ) from e

    return UploadResponse(url=info.url, pathname=info.pathname, size=info.size)


@router.get("/list-screenshots", response_model=ListResponse)
def list_screenshots(
    prefix: str = Query("screenshots/", description="Pathname prefix"),
    limit: int | None = Query(None, ge=1, le=1000, description="Page size"),
    cursor: str | None = Query(None, description="Cursor from the previous page"),
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> ListResponse:
    """
    List blobs under a prefix, one page at a time.

    Raises:
        HTTPException: 500 if the blob store cannot be read
    """
    try:
        page = backend.list(prefix=prefix, limit=limit or settings.storage_list_limit, cursor=cursor)
    except OSError as e:
        logger.error("list_failed", prefix=prefix, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to list screenshots", "details": str(e)},
        ) from e

    return ListResponse(screenshots=page.blobs, cursor=page.cursor, has_more=page.has_more)


@router.delete(
    "/delete-screenshot",
    response_model=DeleteResponse,
    dependencies=[Depends(verify_api_key)],
)
def delete_screenshot(
    url: str | None = Query(None, description="Public URL or pathname of the blob"),
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> DeleteResponse:
    """
    Delete a blob. Deleting a blob that does not exist still succeeds.

    Raises:
        HTTPException: 400 without url or for a foreign URL, 500 if removal fails
    """
    if not url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="URL is required")

    try:
        deleted = backend.delete(url)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid URL", "details": str(e)},
        ) from e
    except OSError as e:
        logger.error("delete_failed", url=url, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Delete failed", "details": str(e)},
        ) from e

    return DeleteResponse(deleted=deleted)
