"""Pydantic schemas for the blob upload/list/delete endpoints."""

from pydantic import BaseModel

from critique.storage.models import BlobInfo


class UploadResponse(BaseModel):
    """Response schema for a blob upload."""

    success: bool = True
    url: str
    pathname: str
    size: int

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "url": "http://localhost:8000/blobs/screenshots/job-1718000000000/screenshot-1718000000123.jpg",
                    "pathname": "screenshots/job-1718000000000/screenshot-1718000000123.jpg",
                    "size": 48213,
                }
            ]
        }
    }


class ListResponse(BaseModel):
    """Response schema for a prefix listing."""

    success: bool = True
    screenshots: list[BlobInfo]
    cursor: str | None = None
    has_more: bool = False


class DeleteResponse(BaseModel):
    """Response schema for a blob deletion."""

    success: bool = True
    deleted: bool
