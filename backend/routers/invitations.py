import logging
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import AuthUser, get_current_user
from core.event_access import EventAccess, get_member_role, require_member_manager
from core.permissions import EventRole, can_invite_role, has_permission
from db.database import (
    get_async_session,
    utcnow,
    EventInvitation as InvitationModel,
    EventMember as EventMemberModel,
)
from schemas.common import InvitationStatus, MessageResponse
from schemas.events import (
    EventMemberRead,
    InvitationAccepted,
    InvitationCreate,
    InvitationRead,
    PendingInvitationRead,
)

logger = logging.getLogger(__name__)

router = APIRouter()

INVITATION_TTL = timedelta(days=7)


async def _get_invitation_or_404(db: AsyncSession, invitation_id: UUID) -> InvitationModel:
    res = await db.execute(select(InvitationModel).where(InvitationModel.id == invitation_id))
    inv = res.scalar_one_or_none()
    if not inv:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    return inv


def _require_user_email(user: AuthUser) -> str:
    if not user.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User email not available")
    return user.email.lower()


async def _ensure_respondable(db: AsyncSession, inv: InvitationModel, user: AuthUser) -> None:
    """Shared checks for accept/decline; marks overdue invitations EXPIRED."""
    if inv.invitee_email != _require_user_email(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This invitation is not for your email address")
    if inv.status != "PENDING":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invitation has already been {inv.status.lower()}",
        )
    if inv.expires_at < utcnow():
        inv.status = "EXPIRED"
        await db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation has expired")


@router.post(
    "/events/{event_id}/invitations",
    response_model=InvitationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    event_id: UUID,
    payload: InvitationCreate,
    access: EventAccess = Depends(require_member_manager),
    db: AsyncSession = Depends(get_async_session),
):
    if not can_invite_role(access.role, payload.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You cannot invite users with role {payload.role}. Admins can only invite EDITOR or VIEWER roles.",
        )

    email = str(payload.invitee_email).lower()
    existing = await db.execute(
        select(InvitationModel).where(
            InvitationModel.event_id == access.event_id,
            InvitationModel.invitee_email == email,
            InvitationModel.status == "PENDING",
        )
    )
    if existing.scalars().first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An invitation is already pending for this email")

    inv = InvitationModel(
        event_id=access.event_id,
        inviter_id=access.user.id,
        invitee_email=email,
        role=payload.role,
        status="PENDING",
        message=payload.message,
        expires_at=utcnow() + INVITATION_TTL,
    )
    db.add(inv)
    await db.commit()
    await db.refresh(inv)
    logger.info(f"{access.user.id} invited {email} to event {access.event_id} as {payload.role}")
    return InvitationRead.model_validate(inv)


@router.get("/events/{event_id}/invitations", response_model=List[InvitationRead])
async def list_event_invitations(
    event_id: UUID,
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    access: EventAccess = Depends(require_member_manager),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(InvitationModel).where(InvitationModel.event_id == access.event_id)
    if status_filter:
        stmt = stmt.where(InvitationModel.status == status_filter)
    stmt = stmt.order_by(InvitationModel.created_at.desc())
    res = await db.execute(stmt)
    return [InvitationRead.model_validate(i) for i in res.scalars().all()]


@router.get("/invitations/pending", response_model=List[PendingInvitationRead])
async def list_my_pending_invitations(
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    email = _require_user_email(user)
    now = utcnow()

    await db.execute(
        update(InvitationModel)
        .where(
            InvitationModel.invitee_email == email,
            InvitationModel.status == "PENDING",
            InvitationModel.expires_at < now,
        )
        .values(status="EXPIRED")
    )
    await db.commit()

    res = await db.execute(
        select(InvitationModel)
        .options(selectinload(InvitationModel.event))
        .where(
            InvitationModel.invitee_email == email,
            InvitationModel.status == "PENDING",
            InvitationModel.expires_at >= now,
        )
        .order_by(InvitationModel.created_at.desc())
    )
    return [PendingInvitationRead.model_validate(i) for i in res.scalars().all()]


@router.put("/invitations/{invitation_id}/accept", response_model=InvitationAccepted)
async def accept_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    inv = await _get_invitation_or_404(db, invitation_id)
    await _ensure_respondable(db, inv, user)

    if await get_member_role(db, inv.event_id, user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already a member of this event")

    member = EventMemberModel(event_id=inv.event_id, user_id=user.id, role=inv.role)
    db.add(member)
    inv.status = "ACCEPTED"
    inv.responded_at = utcnow()
    await db.commit()
    await db.refresh(member)
    logger.info(f"{user.id} accepted invitation {inv.id} to event {inv.event_id}")
    return InvitationAccepted(
        message="Invitation accepted successfully",
        event_member=EventMemberRead.model_validate(member),
    )


@router.put("/invitations/{invitation_id}/decline", response_model=MessageResponse)
async def decline_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    inv = await _get_invitation_or_404(db, invitation_id)
    await _ensure_respondable(db, inv, user)

    inv.status = "DECLINED"
    inv.responded_at = utcnow()
    await db.commit()
    return MessageResponse(message="Invitation declined")


@router.delete("/invitations/{invitation_id}", response_model=MessageResponse)
async def cancel_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    inv = await _get_invitation_or_404(db, invitation_id)
    role = await get_member_role(db, inv.event_id, user.id)
    if not has_permission(role, EventRole.ADMIN.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only event owners and admins can cancel invitations",
        )

    await db.delete(inv)
    await db.commit()
    logger.info(f"{user.id} cancelled invitation {invitation_id}")
    return MessageResponse(message="Invitation cancelled successfully")
