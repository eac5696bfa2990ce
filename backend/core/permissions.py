"""Event role hierarchy: OWNER > ADMIN > EDITOR > VIEWER."""

from enum import Enum
from typing import Optional


class EventRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


ROLE_HIERARCHY = {
    EventRole.OWNER: 4,
    EventRole.ADMIN: 3,
    EventRole.EDITOR: 2,
    EventRole.VIEWER: 1,
}


def role_level(role: Optional[str]) -> int:
    if not role:
        return 0
    try:
        return ROLE_HIERARCHY[EventRole(role)]
    except ValueError:
        return 0


def has_permission(user_role: Optional[str], required_role: str) -> bool:
    return role_level(user_role) >= role_level(required_role)


def can_invite_role(inviter_role: Optional[str], invitee_role: str) -> bool:
    """Owners may grant any role; admins only EDITOR or VIEWER."""
    if inviter_role == EventRole.OWNER.value:
        return True
    if inviter_role == EventRole.ADMIN.value:
        return invitee_role in (EventRole.EDITOR.value, EventRole.VIEWER.value)
    return False


def can_remove_member(actor_role: Optional[str], target_role: str) -> bool:
    if actor_role == EventRole.OWNER.value:
        return True
    if actor_role == EventRole.ADMIN.value:
        return target_role in (EventRole.EDITOR.value, EventRole.VIEWER.value)
    return False


def role_sort_key(role: str) -> int:
    # OWNER first
    return -role_level(role)
