"""Reviewer identities resolved from access tokens."""

from dataclasses import dataclass

import structlog

from critique.config import UserSpec, settings
from critique.core.permissions import Action, Role, is_allowed

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class User:
    """The acting reviewer for a session."""

    name: str
    role: Role

    @property
    def can_delete(self) -> bool:
        return is_allowed(self.role, Action.DELETE_SCREENSHOT)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict[str, str | bool]:
        return {"name": self.name, "role": self.role.value, "canDelete": self.can_delete}


class UserDirectory:
    """Static lookup table from access token to reviewer."""

    def __init__(
        self,
        tokens: dict[str, UserSpec] | None = None,
        default_token: str | None = None,
    ) -> None:
        self._tokens = tokens if tokens is not None else settings.user_tokens
        self.default_token = default_token or settings.default_user_token

    def resolve(self, token: str | None) -> User | None:
        """
        Resolve a token to a User.

        A missing token falls back to the default token; an unknown token
        resolves to None.
        """
        token = token or self.default_token
        spec = self._tokens.get(token)
        if spec is None:
            logger.warning("unknown_user_token")
            return None
        return User(name=spec.name, role=Role(spec.role))
