import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.event_access import EventAccess, get_event_access, require_member_manager
from core.permissions import EventRole, can_invite_role, can_remove_member, role_sort_key
from db.database import get_async_session, EventMember as EventMemberModel
from schemas.common import MessageResponse
from schemas.events import EventMemberCreate, EventMemberRead, EventMemberRoleUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_member_or_404(db: AsyncSession, event_id: UUID, user_id: str) -> EventMemberModel:
    res = await db.execute(
        select(EventMemberModel).where(
            EventMemberModel.event_id == event_id,
            EventMemberModel.user_id == user_id,
        )
    )
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return m


async def _owner_count(db: AsyncSession, event_id: UUID) -> int:
    res = await db.execute(
        select(func.count(EventMemberModel.id)).where(
            EventMemberModel.event_id == event_id,
            EventMemberModel.role == EventRole.OWNER.value,
        )
    )
    return int(res.scalar_one())


@router.get("", response_model=List[EventMemberRead])
async def list_members(
    event_id: UUID,
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(EventMemberModel).where(EventMemberModel.event_id == access.event_id))
    members = sorted(res.scalars().all(), key=lambda m: (role_sort_key(m.role), m.created_at))
    return [EventMemberRead.model_validate(m) for m in members]


@router.post("", response_model=EventMemberRead, status_code=status.HTTP_201_CREATED)
async def add_member(
    event_id: UUID,
    payload: EventMemberCreate,
    access: EventAccess = Depends(require_member_manager),
    db: AsyncSession = Depends(get_async_session),
):
    if not can_invite_role(access.role, payload.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"You cannot assign role {payload.role}")

    existing = await db.execute(
        select(EventMemberModel).where(
            EventMemberModel.event_id == access.event_id,
            EventMemberModel.user_id == payload.user_id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a member of this event")

    m = EventMemberModel(event_id=access.event_id, user_id=payload.user_id, role=payload.role)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    logger.info(f"{access.user.id} added {payload.user_id} to event {access.event_id} as {payload.role}")
    return EventMemberRead.model_validate(m)


@router.delete("/{user_id}", response_model=MessageResponse)
async def remove_member(
    event_id: UUID,
    user_id: str,
    access: EventAccess = Depends(require_member_manager),
    db: AsyncSession = Depends(get_async_session),
):
    target = await _get_member_or_404(db, access.event_id, user_id)

    if target.role == EventRole.OWNER.value and await _owner_count(db, access.event_id) <= 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot remove the last owner from an event")

    if not can_remove_member(access.role, target.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins cannot remove owners or other admins")

    await db.delete(target)
    await db.commit()
    logger.info(f"{access.user.id} removed {user_id} from event {access.event_id}")
    return MessageResponse(message="Member removed successfully")


@router.patch("/{user_id}/role", response_model=EventMemberRead)
async def change_member_role(
    event_id: UUID,
    user_id: str,
    payload: EventMemberRoleUpdate,
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    if access.role != EventRole.OWNER.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only event owners can change member roles")

    target = await _get_member_or_404(db, access.event_id, user_id)

    if (
        target.role == EventRole.OWNER.value
        and payload.role != EventRole.OWNER.value
        and await _owner_count(db, access.event_id) <= 1
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot demote the last owner. Promote another member to owner first.",
        )

    target.role = payload.role
    await db.commit()
    await db.refresh(target)
    logger.info(f"{access.user.id} set role of {user_id} in event {access.event_id} to {payload.role}")
    return EventMemberRead.model_validate(target)
