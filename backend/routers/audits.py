import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import AuthUser, get_optional_user
from core.event_access import (
    EventAccess,
    get_event_access,
    get_member_role,
    parse_event_id,
    require_item_editor,
    resolve_event_id,
)
from db.database import get_async_session, utcnow, AuditLog as AuditLogModel, Item as ItemModel
from schemas.audits import AuditCreate, AuditRead, AuditStats, AuditWithItem, RecentAudit
from schemas.common import Page, Pagination

logger = logging.getLogger(__name__)

router = APIRouter()

STATS_WINDOW = timedelta(days=30)
RECENT_AUDITS = 5


async def audit_event_id(
    request: Request,
    user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
) -> UUID:
    """Event scope for audit reads; membership is enforced only when a bearer user is present."""
    event_id = parse_event_id(await resolve_event_id(request))
    if user and not await get_member_role(db, event_id, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this event")
    return event_id


@router.post("", response_model=AuditRead, status_code=status.HTTP_201_CREATED)
async def create_audit(
    payload: AuditCreate,
    access: EventAccess = Depends(require_item_editor),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.event_id != access.event_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only create audits in events you have access to",
        )

    item = (await db.execute(select(ItemModel).where(ItemModel.id == payload.item_id))).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    if item.event_id != access.event_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Item does not belong to this event")

    now = utcnow()
    audit = AuditLogModel(
        item_id=item.id,
        event_id=access.event_id,
        actual_quantity=payload.actual_quantity,
        expected_quantity=payload.expected_quantity,
        discrepancy=payload.actual_quantity - payload.expected_quantity,
        notes=payload.notes,
        context_id=payload.context_id,
        created_by=access.user.id,
        timestamp=now,
    )
    db.add(audit)
    item.last_audit = now
    await db.commit()
    await db.refresh(audit)
    logger.info(f"Audit {audit.id} for item {item.id}: discrepancy {audit.discrepancy}")
    return AuditRead.model_validate(audit)


@router.get("", response_model=Page[AuditWithItem])
async def list_audits(
    event_id: Optional[UUID] = Query(None),
    item_id: Optional[UUID] = Query(None),
    context_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    scoped_event_id: UUID = Depends(audit_event_id),
    db: AsyncSession = Depends(get_async_session),
):
    conditions = [AuditLogModel.event_id == scoped_event_id]
    if item_id:
        conditions.append(AuditLogModel.item_id == item_id)
    if context_id:
        conditions.append(AuditLogModel.context_id == context_id)

    total = (await db.execute(select(func.count(AuditLogModel.id)).where(*conditions))).scalar_one()
    res = await db.execute(
        select(AuditLogModel)
        .options(selectinload(AuditLogModel.item))
        .where(*conditions)
        .order_by(AuditLogModel.timestamp.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return Page[AuditWithItem](
        data=[AuditWithItem.model_validate(a) for a in res.scalars().all()],
        pagination=Pagination.build(page, limit, int(total)),
    )


@router.get("/stats", response_model=AuditStats)
async def audit_stats(
    event_id: Optional[UUID] = Query(None),
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    since = utcnow() - STATS_WINDOW
    in_event = AuditLogModel.event_id == access.event_id

    total = (await db.execute(select(func.count(AuditLogModel.id)).where(in_event))).scalar_one()

    res = await db.execute(
        select(AuditLogModel.item_id, AuditLogModel.discrepancy).where(in_event, AuditLogModel.timestamp >= since)
    )
    recent_rows = res.all()
    discrepant_items = {row.item_id for row in recent_rows if row.discrepancy != 0}
    average = (
        round(sum(abs(row.discrepancy) for row in recent_rows) / len(recent_rows), 2) if recent_rows else 0.0
    )

    res = await db.execute(
        select(AuditLogModel)
        .options(selectinload(AuditLogModel.item))
        .where(in_event)
        .order_by(AuditLogModel.timestamp.desc())
        .limit(RECENT_AUDITS)
    )
    recent = [
        RecentAudit(
            id=a.id,
            item_id=a.item_id,
            item_name=a.item.name if a.item else None,
            item_category=a.item.category if a.item else None,
            discrepancy=a.discrepancy,
            timestamp=a.timestamp,
        )
        for a in res.scalars().all()
    ]

    return AuditStats(
        total_audits=int(total),
        audits_last_30_days=len(recent_rows),
        items_with_discrepancies=len(discrepant_items),
        average_discrepancy=average,
        recent_audits=recent,
    )
