import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import AuthUser, get_current_user
from core.event_access import EventAccess, get_event_access, require_owner
from db.database import (
    get_async_session,
    Event as EventModel,
    EventMember as EventMemberModel,
    Item as ItemModel,
)
from schemas.common import MessageResponse
from schemas.events import EventCreate, EventDetail, EventRead, EventSummary, EventUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _member_counts(db: AsyncSession, event_ids: list) -> dict:
    if not event_ids:
        return {}
    res = await db.execute(
        select(EventMemberModel.event_id, func.count(EventMemberModel.id))
        .where(EventMemberModel.event_id.in_(event_ids))
        .group_by(EventMemberModel.event_id)
    )
    return {eid: int(n) for eid, n in res.all()}


async def _get_event_or_404(db: AsyncSession, event_id) -> EventModel:
    res = await db.execute(select(EventModel).where(EventModel.id == event_id))
    e = res.scalar_one_or_none()
    if not e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return e


def _serialize_event(e: EventModel, role: str, member_count: int) -> EventSummary:
    base = EventRead.model_validate(e)
    return EventSummary(**base.model_dump(), role=role, member_count=member_count)


@router.get("", response_model=List[EventSummary])
async def list_events(
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    res = await db.execute(
        select(EventModel, EventMemberModel.role)
        .join(EventMemberModel, EventMemberModel.event_id == EventModel.id)
        .where(EventMemberModel.user_id == user.id)
        .order_by(EventModel.created_at.desc())
    )
    rows = res.all()
    counts = await _member_counts(db, [e.id for e, _ in rows])
    return [_serialize_event(e, role, counts.get(e.id, 0)) for e, role in rows]


@router.get("/{event_id}", response_model=EventDetail)
async def get_event(
    event_id: UUID,
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    e = await _get_event_or_404(db, access.event_id)
    counts = await _member_counts(db, [e.id])
    item_count = (
        await db.execute(select(func.count(ItemModel.id)).where(ItemModel.event_id == e.id))
    ).scalar_one()
    summary = _serialize_event(e, access.role, counts.get(e.id, 0))
    return EventDetail(**summary.model_dump(), item_count=int(item_count))


@router.post("", response_model=EventSummary, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    e = EventModel(**payload.model_dump())
    db.add(e)
    await db.flush()
    db.add(EventMemberModel(event_id=e.id, user_id=user.id, role="OWNER"))
    await db.commit()
    await db.refresh(e)
    logger.info(f"Event {e.id} created by {user.id}")
    return _serialize_event(e, "OWNER", 1)


@router.put("/{event_id}", response_model=EventSummary)
async def update_event(
    event_id: UUID,
    payload: EventUpdate,
    access: EventAccess = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    e = await _get_event_or_404(db, access.event_id)

    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        name = data["name"].strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name cannot be empty")
        e.name = name
    for field in ("description", "start_date", "end_date", "location"):
        if field in data:
            setattr(e, field, data[field])

    if e.start_date and e.end_date and e.end_date < e.start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not be before start_date")

    await db.commit()
    await db.refresh(e)
    counts = await _member_counts(db, [e.id])
    return _serialize_event(e, access.role, counts.get(e.id, 0))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: UUID,
    access: EventAccess = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    e = await _get_event_or_404(db, access.event_id)
    await db.delete(e)
    await db.commit()
    logger.info(f"Event {access.event_id} deleted by {access.user.id}")
    return MessageResponse(message="Event deleted successfully")
