"""Pydantic schemas for job-scoped screenshot records."""

from typing import Any

from pydantic import BaseModel, Field


class ScreenshotCreateRequest(BaseModel):
    """Request body for storing a screenshot with its metadata."""

    image_data: str | None = Field(default=None, alias="imageData")
    metadata: dict[str, Any] | None = None
    job_id: str | None = Field(default=None, alias="jobId")

    model_config = {"populate_by_name": True}


class ScreenshotDeleteRequest(BaseModel):
    """Request body for deleting a stored screenshot record."""

    filename: str | None = None
    metadata_filename: str | None = Field(default=None, alias="metadataFilename")

    model_config = {"populate_by_name": True}


class ScreenshotRecordResponse(BaseModel):
    """Response schema for a stored record."""

    success: bool = True
    screenshot: dict[str, Any]


class ScreenshotListResponse(BaseModel):
    """Response schema for a job's records, newest first."""

    success: bool = True
    screenshots: list[dict[str, Any]]
    cursor: str | None = None
    has_more: bool = False


class ScreenshotDeleteResponse(BaseModel):
    """Response schema for a record deletion."""

    success: bool = True
    message: str


class SessionResponse(BaseModel):
    """The reviewer resolved from the request's access token."""

    name: str
    role: str
    can_delete: bool = Field(alias="canDelete")

    model_config = {"populate_by_name": True}
