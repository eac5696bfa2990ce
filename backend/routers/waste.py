import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.event_access import EventAccess, get_event_access, require_item_editor
from db.database import (
    get_async_session,
    Batch as BatchModel,
    Item as ItemModel,
    WasteLog as WasteLogModel,
)
from schemas.common import Page, Pagination, UtcDatetime, WasteReason
from schemas.waste import WasteCreate, WasteRead, WasteSummary, WasteWithItem
from services.fifo import apply_allocations, available_quantity, plan_fifo_consumption
from services.waste_summary import waste_summary_for_event

logger = logging.getLogger(__name__)

router = APIRouter()


def _cost_impact(unit_price, quantity: int) -> Optional[Decimal]:
    if unit_price is None:
        return None
    return (Decimal(str(unit_price)) * quantity).quantize(Decimal("0.01"))


@router.post("", response_model=WasteRead, status_code=status.HTTP_201_CREATED)
async def log_waste(
    payload: WasteCreate,
    access: EventAccess = Depends(require_item_editor),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.event_id != access.event_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only log waste in events you have access to",
        )

    res = await db.execute(select(ItemModel).where(ItemModel.id == payload.item_id).with_for_update())
    item = res.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    if item.event_id != access.event_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Item does not belong to this event")

    res = await db.execute(
        select(BatchModel)
        .where(BatchModel.item_id == item.id, BatchModel.is_open.is_(True))
        .with_for_update()
    )
    open_batches = res.scalars().all()

    batch = None
    if payload.batch_id:
        batch = next((b for b in open_batches if b.id == payload.batch_id), None)
        if batch is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found or already closed")
        if payload.quantity > batch.quantity:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Waste quantity ({payload.quantity}) exceeds available batch quantity ({batch.quantity})",
            )
    elif open_batches:
        available = available_quantity(open_batches)
        if payload.quantity > available:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Waste quantity ({payload.quantity}) exceeds available batch quantity ({available})",
            )
    elif payload.quantity > int(item.quantity or 0):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Waste quantity ({payload.quantity}) exceeds available item quantity ({item.quantity})",
        )

    log = WasteLogModel(
        item_id=item.id,
        batch_id=payload.batch_id,
        event_id=access.event_id,
        quantity=payload.quantity,
        reason=payload.reason,
        notes=payload.notes,
        cost_impact=_cost_impact(item.unit_price, payload.quantity),
        created_by=access.user.id,
    )
    db.add(log)
    item.quantity = max(0, int(item.quantity or 0) - payload.quantity)

    if batch is not None:
        batch.quantity -= payload.quantity
        if batch.quantity <= 0:
            batch.quantity = 0
            batch.is_open = False
    elif open_batches:
        apply_allocations(open_batches, plan_fifo_consumption(open_batches, payload.quantity))

    await db.commit()
    await db.refresh(log)
    logger.info(f"Waste {log.id}: {payload.quantity} x item {item.id} ({payload.reason})")
    return WasteRead.model_validate(log)


@router.get("", response_model=Page[WasteWithItem])
async def list_waste(
    event_id: Optional[UUID] = Query(None),
    item_id: Optional[UUID] = Query(None),
    batch_id: Optional[UUID] = Query(None),
    reason: Optional[WasteReason] = Query(None),
    start_date: Optional[UtcDatetime] = Query(None),
    end_date: Optional[UtcDatetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    conditions = [WasteLogModel.event_id == access.event_id]
    if item_id:
        conditions.append(WasteLogModel.item_id == item_id)
    if batch_id:
        conditions.append(WasteLogModel.batch_id == batch_id)
    if reason:
        conditions.append(WasteLogModel.reason == reason)
    if start_date:
        conditions.append(WasteLogModel.timestamp >= start_date)
    if end_date:
        conditions.append(WasteLogModel.timestamp <= end_date)

    total = (await db.execute(select(func.count(WasteLogModel.id)).where(*conditions))).scalar_one()
    res = await db.execute(
        select(WasteLogModel)
        .options(selectinload(WasteLogModel.item))
        .where(*conditions)
        .order_by(WasteLogModel.timestamp.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return Page[WasteWithItem](
        data=[WasteWithItem.model_validate(w) for w in res.scalars().all()],
        pagination=Pagination.build(page, limit, int(total)),
    )


@router.get("/summary", response_model=WasteSummary)
async def waste_summary(
    event_id: Optional[UUID] = Query(None),
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    return WasteSummary(**await waste_summary_for_event(db, access.event_id))
