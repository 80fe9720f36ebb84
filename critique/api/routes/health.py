"""Health check and storage diagnostics endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from critique.api.dependencies import get_blob_backend, get_db
from critique.config import settings
from critique.storage.blob_backend import FilesystemBlobBackend
from critique.version import __version__

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> dict[str, str]:  # noqa: B008
    """
    Health check endpoint that verifies API and local cache connectivity.

    Raises:
        HTTPException: 503 if the cache database is unavailable
    """
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected", "version": __version__}
    except Exception as e:
        raise HTTPException(status_code=503, detail="Database unavailable") from e


@router.get("/api/test-connection")
def test_connection(
    request: Request,
    backend: FilesystemBlobBackend = Depends(get_blob_backend),  # noqa: B008
) -> dict[str, Any]:
    """Report whether the blob store is reachable and how many blobs it holds."""
    diagnostics: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "environment": settings.environment,
        "version": __version__,
        "blob_root": str(backend.root),
        "api_key_required": settings.require_api_key,
    }
    try:
        diagnostics["blob_count"] = backend.count()
        diagnostics["blob_connection_working"] = True
    except OSError as e:
        diagnostics["blob_connection_working"] = False
        diagnostics["blob_error"] = str(e)

    return {"status": "API working", "diagnostics": diagnostics}
