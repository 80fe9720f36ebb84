"""Role-based permission policy for review actions."""

from enum import Enum


class Role(str, Enum):
    """Reviewer roles."""

    ADMIN = "admin"
    CLIENT = "client"


class Action(str, Enum):
    """Capabilities checked before a store mutation."""

    DELETE_SCREENSHOT = "delete_screenshot"
    CLEAR_ALL = "clear_all"
    DELETE_ANY_COMMENT = "delete_any_comment"
    DELETE_OWN_COMMENT = "delete_own_comment"
    MANAGE_TAGS = "manage_tags"
    RESOLVE = "resolve"
    APPLY_ANY_TAG = "apply_any_tag"
    APPLY_CLIENT_TAG = "apply_client_tag"


PERMISSIONS: dict[Role, frozenset[Action]] = {
    Role.ADMIN: frozenset(Action),
    Role.CLIENT: frozenset({Action.DELETE_OWN_COMMENT, Action.APPLY_CLIENT_TAG}),
}


def is_allowed(role: Role, action: Action) -> bool:
    """Return whether a role holds a capability."""
    return action in PERMISSIONS[role]


def can_apply_tag(role: Role, client_visible: bool) -> bool:
    """Return whether a role may apply or remove a tag with the given visibility."""
    if is_allowed(role, Action.APPLY_ANY_TAG):
        return True
    return client_visible and is_allowed(role, Action.APPLY_CLIENT_TAG)


def can_delete_comment(role: Role, actor_name: str, comment_author: str) -> bool:
    """Return whether an actor may delete a comment."""
    if is_allowed(role, Action.DELETE_ANY_COMMENT):
        return True
    return actor_name == comment_author and is_allowed(role, Action.DELETE_OWN_COMMENT)
