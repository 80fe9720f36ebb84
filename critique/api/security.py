"""API security and reviewer identification dependencies."""

import secrets

import structlog
from fastapi import Depends, Header, HTTPException, Query, status

from critique.api.dependencies import get_user_directory
from critique.config import settings
from critique.core.users import User, UserDirectory

logger = structlog.get_logger(__name__)


async def verify_api_key(
    x_api_key: str | None = Header(None, description="Write token for blob endpoints"),
) -> None:
    """
    Verify the X-API-Key header on blob write endpoints.

    The check is bypassed when require_api_key is disabled.

    Raises:
        HTTPException: 401 if the key is missing or wrong, 500 if no key is configured
    """
    if not settings.require_api_key:
        logger.debug("api_key_check_skipped", reason="authentication_disabled")
        return

    if not x_api_key:
        logger.warning("api_key_missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required. Provide it in the X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not settings.api_key:
        logger.error("api_key_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API authentication is not properly configured",
        )

    # Constant-time comparison
    if not secrets.compare_digest(x_api_key, settings.api_key.get_secret_value()):
        logger.warning(
            "api_key_invalid",
            provided_key_prefix=x_api_key[:8] + "..." if len(x_api_key) > 8 else "***",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    logger.debug("api_key_valid")


async def get_current_user(
    x_user_token: str | None = Header(None, description="Reviewer access token"),
    user: str | None = Query(None, description="Reviewer access token"),
    directory: UserDirectory = Depends(get_user_directory),  # noqa: B008
) -> User:
    """
    Resolve the acting reviewer from the X-User-Token header or ``?user=``.

    A request without a token acts as the configured default user.

    Raises:
        HTTPException: 401 if the token is unknown
    """
    resolved = directory.resolve(x_user_token or user)
    if resolved is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user token",
        )
    return resolved
