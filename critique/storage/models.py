"""Shared shapes for blob metadata."""

from datetime import datetime

from pydantic import BaseModel, Field


class BlobInfo(BaseModel):
    """A stored blob as reported by the blob store."""

    url: str
    pathname: str
    size: int = 0
    content_type: str | None = Field(default=None, alias="contentType")
    uploaded_at: datetime | None = Field(default=None, alias="uploadedAt")

    model_config = {"populate_by_name": True}


class BlobPage(BaseModel):
    """One page of a prefix listing."""

    blobs: list[BlobInfo]
    cursor: str | None = None
    has_more: bool = False
