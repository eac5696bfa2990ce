import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import AuthUser, get_current_user
from core.permissions import EventRole, has_permission
from db.database import get_async_session, EventMember as EventMemberModel

logger = logging.getLogger(__name__)

EVENT_ID_REQUIRED = "Event ID is required (provide in URL, x-event-id header, query param, or body)"


@dataclass(frozen=True)
class EventAccess:
    event_id: uuid.UUID
    role: str
    user: AuthUser


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


async def resolve_event_id(request: Request) -> Optional[str]:
    """Path `event_id`, then x-event-id header, then `event_id` query param, then JSON body."""
    raw = (
        request.path_params.get("event_id")
        or request.headers.get("x-event-id")
        or request.query_params.get("event_id")
    )
    if not raw and request.method in ("POST", "PUT", "PATCH", "DELETE"):
        body = await _json_body(request)
        if isinstance(body, dict):
            raw = body.get("event_id")
    return str(raw) if raw else None


def parse_event_id(raw: Optional[str]) -> uuid.UUID:
    if not raw:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=EVENT_ID_REQUIRED)
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid event ID")


async def get_member_role(db: AsyncSession, event_id: uuid.UUID, user_id: str) -> Optional[str]:
    res = await db.execute(
        select(EventMemberModel.role).where(
            EventMemberModel.event_id == event_id,
            EventMemberModel.user_id == user_id,
        )
    )
    return res.scalar_one_or_none()


async def get_event_access(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> EventAccess:
    event_id = parse_event_id(await resolve_event_id(request))
    role = await get_member_role(db, event_id, user.id)
    if not role:
        logger.info(f"User {user.id} denied access to event {event_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this event")
    return EventAccess(event_id=event_id, role=role, user=user)


def require_event_role(minimum: EventRole, detail: str):
    async def role_checker(access: EventAccess = Depends(get_event_access)) -> EventAccess:
        if not has_permission(access.role, minimum.value):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return access

    return role_checker


require_owner = require_event_role(EventRole.OWNER, "Only event owners can perform this action")
require_member_manager = require_event_role(EventRole.ADMIN, "Only owners and admins can manage members")
require_item_editor = require_event_role(EventRole.EDITOR, "Only editors, admins, and owners can modify items")


async def check_event_role(
    db: AsyncSession,
    event_id: uuid.UUID,
    user: AuthUser,
    minimum: EventRole = EventRole.VIEWER,
    denied_detail: str = "You do not have access to this event",
    role_detail: str = "Insufficient permissions for this event",
) -> str:
    """Membership + role check for routes that find the event through a child record (item, batch)."""
    role = await get_member_role(db, event_id, user.id)
    if not role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denied_detail)
    if not has_permission(role, minimum.value):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=role_detail)
    return role
