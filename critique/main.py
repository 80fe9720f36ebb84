"""FastAPI application serving the blob store and review endpoints."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from critique.api.middleware import RequestLoggingMiddleware
from critique.api.routes import api_router, health
from critique.config import settings
from critique.db.session import close_db, init_db
from critique.storage.blob_backend import BLOB_ROUTE
from critique.utils.logging import configure_logging
from critique.version import __version__

configure_logging(log_level=settings.log_level, environment=settings.environment)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events."""
    await init_db()
    logger.info("application_startup", version=__version__, blob_dir=str(settings.blob_dir))
    yield
    await close_db()
    logger.info("application_shutdown")


app = FastAPI(
    title="Critique API",
    description="Screenshot storage and review endpoints for 3D model approval",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(api_router)

app.mount(BLOB_ROUTE, StaticFiles(directory=settings.blob_root), name="blobs")


def _error_body(error: str, details: object = None) -> dict[str, object]:
    body: dict[str, object] = {"error": error}
    if details is not None:
        body["details"] = details
    return body


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTP errors as {error, details}."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = _error_body(str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors as 400."""
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request", jsonable_errors(exc)),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    """Reduce validation errors to JSON-safe location/message pairs."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Handle cache database errors with appropriate logging and response."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error("database_error", error=str(exc), request_id=request_id)
    return JSONResponse(status_code=500, content=_error_body("Database error occurred"))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error("unhandled_exception", error=str(exc), request_id=request_id)
    return JSONResponse(
        status_code=500, content=_error_body("Internal server error", str(exc))
    )
