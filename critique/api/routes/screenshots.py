"""Job-scoped screenshot records stored as an image blob plus a metadata blob."""

import json
import mimetypes
import time
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from critique.api.dependencies import get_blob_backend
from critique.api.schemas.screenshots import (
    ScreenshotCreateRequest,
    ScreenshotDeleteRequest,
    ScreenshotDeleteResponse,
    ScreenshotListResponse,
    ScreenshotRecordResponse,
)
from critique.api.security import verify_api_key
from critique.storage.blob_backend import FilesystemBlobBackend
from critique.utils.imaging import from_data_uri

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/screenshots", tags=["screenshots"])


def _storage_failure(message: str, error: OSError) -> HTTPException:
    logger.error("screenshot_record_storage_failed", message=message, error=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": message, "details": str(error)},
    )


@router.post(
    "",
    response_model=ScreenshotRecordResponse,
    dependencies=[Depends(verify_api_key)],
)
def create_screenshot_record(
    body: ScreenshotCreateRequest,
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> ScreenshotRecordResponse:
    """
    Store a data-URI image and its metadata under a job.

    Raises:
        HTTPException: 400 for missing fields or a malformed image, 500 on storage failure
    """
    if not body.image_data or body.metadata is None or not body.job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    try:
        mime_type, data = from_data_uri(body.image_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid image data", "details": str(e)},
        ) from e

    timestamp = int(time.time() * 1000)
    extension = mimetypes.guess_extension(mime_type) or ".png"
    filename = f"screenshots/{body.job_id}/{timestamp}{extension}"
    metadata_filename = f"metadata/{body.job_id}/{timestamp}.json"

    try:
        image = backend.put(filename, data)
        record: dict[str, Any] = {
            "id": timestamp,
            "url": image.url,
            "filename": filename,
            "metadataFilename": metadata_filename,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "jobId": body.job_id,
            "user": body.metadata.get("user", "unknown"),
            "comments": [],
            **body.metadata,
        }
        backend.put(metadata_filename, json.dumps(record).encode("utf-8"))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid jobId", "details": str(e)},
        ) from e
    except OSError as e:
        raise _storage_failure("Failed to store screenshot", e) from e

    logger.info("screenshot_record_created", job_id=body.job_id, record_id=timestamp)
    return ScreenshotRecordResponse(screenshot=record)


@router.get("", response_model=ScreenshotListResponse)
def list_screenshot_records(
    job_id: str | None = Query(None, alias="jobId", description="Job whose records to list"),
    limit: int = Query(20, ge=1, le=1000),
    cursor: str | None = Query(None),
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> ScreenshotListResponse:
    """
    Return a job's records, newest first. Unreadable metadata blobs are skipped.

    Raises:
        HTTPException: 400 without jobId, 500 if the blob store cannot be listed
    """
    if not job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="jobId is required")

    try:
        page = backend.list(prefix=f"metadata/{job_id}/", limit=limit, cursor=cursor)
    except OSError as e:
        raise _storage_failure("Failed to list screenshots", e) from e

    records = []
    for blob in page.blobs:
        try:
            records.append(json.loads(backend.read(blob.pathname)))
        except (OSError, ValueError) as e:
            logger.warning("screenshot_metadata_unreadable", pathname=blob.pathname, error=str(e))

    records.sort(key=lambda r: str(r.get("timestamp", "")), reverse=True)
    return ScreenshotListResponse(screenshots=records, cursor=page.cursor, has_more=page.has_more)


@router.delete(
    "",
    response_model=ScreenshotDeleteResponse,
    dependencies=[Depends(verify_api_key)],
)
def delete_screenshot_record(
    body: ScreenshotDeleteRequest,
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> ScreenshotDeleteResponse:
    """
    Delete a record's image and metadata blobs.

    Raises:
        HTTPException: 400 for missing or invalid names, 500 on storage failure
    """
    if not body.filename or not body.metadata_filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing filename or metadataFilename",
        )

    try:
        backend.delete(body.filename)
        backend.delete(body.metadata_filename)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid filename", "details": str(e)},
        ) from e
    except OSError as e:
        raise _storage_failure("Failed to delete screenshot", e) from e

    logger.info("screenshot_record_deleted", filename=body.filename)
    return ScreenshotDeleteResponse(message="Screenshot deleted")
