import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import AuthUser, get_current_user
from core.event_access import check_event_role
from core.permissions import EventRole
from db.database import get_async_session, utcnow, Batch as BatchModel, Item as ItemModel
from schemas.batches import BatchCreate, BatchRead, ConsumeRequest, ConsumeResult, ConsumedBatch
from services.fifo import FifoError, apply_allocations, plan_fifo_consumption, sort_batches_fifo

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_item_for_update(db: AsyncSession, item_id: UUID) -> ItemModel:
    res = await db.execute(select(ItemModel).where(ItemModel.id == item_id).with_for_update())
    item = res.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


async def _check_item_event(db: AsyncSession, item: ItemModel, event_id: UUID, user: AuthUser, action: str) -> None:
    if item.event_id != event_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Item does not belong to the specified event")
    await check_event_role(
        db,
        event_id,
        user,
        EventRole.EDITOR,
        role_detail=f"Only EDITOR, ADMIN, or OWNER can {action} batches",
    )


@router.get("/{item_id}/batches", response_model=List[BatchRead])
async def list_batches(
    item_id: UUID,
    include_closed: bool = Query(False),
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    item = (await db.execute(select(ItemModel).where(ItemModel.id == item_id))).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    await check_event_role(db, item.event_id, user)

    stmt = select(BatchModel).where(BatchModel.item_id == item_id)
    if not include_closed:
        stmt = stmt.where(BatchModel.is_open.is_(True))
    res = await db.execute(stmt)
    return [BatchRead.model_validate(b) for b in sort_batches_fifo(res.scalars().all())]


@router.post("/{item_id}/batches", response_model=BatchRead, status_code=status.HTTP_201_CREATED)
async def create_batch(
    item_id: UUID,
    payload: BatchCreate,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    item = await _get_item_for_update(db, item_id)
    await _check_item_event(db, item, payload.event_id, user, "create")

    batch = BatchModel(
        item_id=item.id,
        event_id=item.event_id,
        lot_number=payload.lot_number,
        quantity=payload.quantity,
        initial_quantity=payload.quantity,
        expiration_date=payload.expiration_date,
        received_at=payload.received_at or utcnow(),
        manufactured_at=payload.manufactured_at,
        notes=payload.notes,
        is_open=True,
    )
    db.add(batch)
    item.quantity = int(item.quantity or 0) + payload.quantity
    await db.commit()
    await db.refresh(batch)
    logger.info(f"Batch {batch.id} (+{payload.quantity}) received for item {item.id} by {user.id}")
    return BatchRead.model_validate(batch)


@router.post("/{item_id}/consume", response_model=ConsumeResult)
async def consume_batches(
    item_id: UUID,
    payload: ConsumeRequest,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    item = await _get_item_for_update(db, item_id)
    await _check_item_event(db, item, payload.event_id, user, "consume")

    if int(item.quantity or 0) < payload.quantity:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Requested quantity ({payload.quantity}) exceeds available item quantity ({item.quantity})",
        )

    res = await db.execute(
        select(BatchModel)
        .where(BatchModel.item_id == item.id, BatchModel.is_open.is_(True))
        .with_for_update()
    )
    batches = res.scalars().all()
    try:
        plan = plan_fifo_consumption(batches, payload.quantity)
    except FifoError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    apply_allocations(batches, plan)
    item.quantity = int(item.quantity) - payload.quantity
    await db.commit()
    logger.info(f"Consumed {payload.quantity} of item {item.id} across {len(plan)} batch(es)")

    return ConsumeResult(
        item_id=item.id,
        total_consumed=sum(a.consumed for a in plan),
        batches=[
            ConsumedBatch(
                id=a.batch_id,
                consumed=a.consumed,
                remaining_quantity=a.remaining_quantity,
                is_open=a.is_open,
                expiration_date=a.expiration_date,
            )
            for a in plan
        ],
    )
