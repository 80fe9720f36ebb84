"""Current reviewer lookup."""

from fastapi import APIRouter, Depends

from critique.api.schemas.screenshots import SessionResponse
from critique.api.security import get_current_user
from critique.core.users import User

router = APIRouter(tags=["session"])


@router.get("/session", response_model=SessionResponse)
async def current_session(user: User = Depends(get_current_user)) -> SessionResponse:  # noqa: B008
    """Return the reviewer behind the request's access token."""
    return SessionResponse(name=user.name, role=user.role.value, can_delete=user.can_delete)
