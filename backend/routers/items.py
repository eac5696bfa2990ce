import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import AuthUser, get_current_user
from core.event_access import EventAccess, check_event_role, get_event_access, require_item_editor
from core.permissions import EventRole
from db.database import (
    get_async_session,
    utcnow,
    AuditLog as AuditLogModel,
    Batch as BatchModel,
    Event as EventModel,
    Item as ItemModel,
    Supplier as SupplierModel,
)
from schemas.batches import BatchRead
from schemas.common import Category, ItemStatus, MessageResponse, Page, Pagination
from schemas.items import (
    ItemAuditRead,
    ItemComputed,
    ItemCreate,
    ItemDetail,
    ItemListRead,
    ItemRead,
    ItemUpdate,
    StockStatusRead,
    SupplierSummary,
    check_item_rules,
)
from services.export import export_filename, items_to_csv
from services.labels import format_allergens, storage_type_label
from services.stock import (
    computed_pricing,
    get_stock_status,
    inventory_value,
    needs_restocking,
    suggested_reorder_quantity,
)

logger = logging.getLogger(__name__)

router = APIRouter()

OPEN_BATCHES_IN_LIST = 10
AUDITS_IN_DETAIL = 10

# fields that may not be cleared through an update
_REQUIRED_FIELDS = {
    "name", "sku", "category", "quantity", "unit_of_measure", "status", "location",
    "is_perishable", "is_alcohol", "allergens",
}


def _as_bool_filter(value: Optional[str]) -> Optional[bool]:
    v = (value or "").strip().lower()
    if v == "true":
        return True
    if v == "false":
        return False
    return None


def _open_batches(item: ItemModel, limit: Optional[int] = None) -> list:
    batches = [b for b in (item.batches or []) if b.is_open]
    batches.sort(key=lambda b: (b.received_at, b.created_at))
    return batches[:limit] if limit else batches


def _serialize_item(item: ItemModel, batch_limit: Optional[int] = OPEN_BATCHES_IN_LIST) -> ItemListRead:
    base = ItemRead.model_validate(item)
    computed = computed_pricing(item)
    return ItemListRead(
        **base.model_dump(),
        supplier=SupplierSummary.model_validate(item.supplier) if item.supplier else None,
        batches=[BatchRead.model_validate(b) for b in _open_batches(item, batch_limit)],
        computed=ItemComputed(**computed) if computed else None,
    )


async def get_item_or_404(db: AsyncSession, item_id: UUID, with_relations: bool = False) -> ItemModel:
    stmt = select(ItemModel).where(ItemModel.id == item_id)
    if with_relations:
        stmt = stmt.options(selectinload(ItemModel.supplier), selectinload(ItemModel.batches))
    res = await db.execute(stmt)
    item = res.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


async def _ensure_supplier_exists(db: AsyncSession, supplier_id: Optional[UUID]) -> None:
    if supplier_id is None:
        return
    res = await db.execute(select(SupplierModel.id).where(SupplierModel.id == supplier_id))
    if res.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Supplier not found")


async def _ensure_sku_free(db: AsyncSession, event_id: UUID, sku: str, exclude_id: Optional[UUID] = None) -> None:
    stmt = select(ItemModel.id).where(ItemModel.event_id == event_id, ItemModel.sku == sku)
    if exclude_id:
        stmt = stmt.where(ItemModel.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An item with this SKU already exists in this event")


@router.get("", response_model=Page[ItemListRead])
async def list_items(
    event_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[Category] = Query(None),
    item_status: Optional[ItemStatus] = Query(None, alias="status"),
    supplier_id: Optional[UUID] = Query(None),
    location: Optional[str] = Query(None),
    perishable: Optional[str] = Query(None),
    alcohol: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    expiring_soon: Optional[int] = Query(None),
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    conditions = [ItemModel.event_id == access.event_id]
    if category:
        conditions.append(ItemModel.category == category)
    if item_status:
        conditions.append(ItemModel.status == item_status)
    if supplier_id:
        conditions.append(ItemModel.supplier_id == supplier_id)
    if location:
        conditions.append(ItemModel.location.ilike(f"%{location}%"))
    is_perishable = _as_bool_filter(perishable)
    if is_perishable is not None:
        conditions.append(ItemModel.is_perishable.is_(is_perishable))
    is_alcohol = _as_bool_filter(alcohol)
    if is_alcohol is not None:
        conditions.append(ItemModel.is_alcohol.is_(is_alcohol))
    if q:
        conditions.append(or_(ItemModel.name.ilike(f"%{q}%"), ItemModel.sku.ilike(f"%{q}%")))
    if expiring_soon is not None and expiring_soon > 0:
        cutoff = utcnow() + timedelta(days=expiring_soon)
        conditions.append(
            ItemModel.batches.any(
                (BatchModel.is_open.is_(True))
                & (BatchModel.expiration_date.is_not(None))
                & (BatchModel.expiration_date <= cutoff)
            )
        )

    total = (await db.execute(select(func.count(ItemModel.id)).where(*conditions))).scalar_one()

    res = await db.execute(
        select(ItemModel)
        .options(selectinload(ItemModel.supplier), selectinload(ItemModel.batches))
        .where(*conditions)
        .order_by(ItemModel.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = res.scalars().all()
    return Page[ItemListRead](
        data=[_serialize_item(i) for i in items],
        pagination=Pagination.build(page, limit, int(total)),
    )


@router.get("/export")
async def export_items(
    event_id: Optional[UUID] = Query(None),
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    event = (await db.execute(select(EventModel).where(EventModel.id == access.event_id))).scalar_one_or_none()
    res = await db.execute(
        select(ItemModel)
        .options(selectinload(ItemModel.supplier))
        .where(ItemModel.event_id == access.event_id)
        .order_by(func.lower(ItemModel.name).asc())
    )
    items = res.scalars().all()
    filename = export_filename(event.name if event else None)
    logger.info(f"Exporting {len(items)} items for event {access.event_id}")
    return Response(
        content=items_to_csv(items).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{item_id}", response_model=ItemDetail)
async def get_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    item = await get_item_or_404(db, item_id, with_relations=True)
    await check_event_role(db, item.event_id, user)

    audits = await db.execute(
        select(AuditLogModel)
        .where(AuditLogModel.item_id == item.id)
        .order_by(AuditLogModel.timestamp.desc())
        .limit(AUDITS_IN_DETAIL)
    )
    listed = _serialize_item(item, batch_limit=None)
    stock = get_stock_status(item.quantity, item.par_level, item.reorder_point)
    return ItemDetail(
        **listed.model_dump(),
        audit_logs=[ItemAuditRead.model_validate(a) for a in audits.scalars().all()],
        stock_status=StockStatusRead(status=stock.status, label=stock.label, percentage=stock.percentage),
        needs_restocking=needs_restocking(item.quantity, item.par_level),
        suggested_reorder_quantity=suggested_reorder_quantity(item.quantity, item.par_level),
        inventory_value=inventory_value(item.quantity, item.unit_price),
        storage_label=storage_type_label(item.storage_type) if item.storage_type else None,
        allergen_labels=format_allergens(item.allergens or []),
    )


@router.post("", response_model=ItemListRead, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: ItemCreate,
    access: EventAccess = Depends(require_item_editor),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.event_id != access.event_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only create items in events you have access to",
        )
    await _ensure_supplier_exists(db, payload.supplier_id)
    await _ensure_sku_free(db, access.event_id, payload.sku)

    item = ItemModel(**payload.model_dump())
    db.add(item)
    await db.commit()
    logger.info(f"Item {item.id} ({item.sku}) created in event {item.event_id} by {access.user.id}")
    item = await get_item_or_404(db, item.id, with_relations=True)
    return _serialize_item(item)


@router.put("/{item_id}", response_model=ItemListRead)
async def update_item(
    item_id: UUID,
    payload: ItemUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    item = await get_item_or_404(db, item_id)
    await check_event_role(
        db,
        item.event_id,
        user,
        EventRole.EDITOR,
        denied_detail="You can only update items in your events",
        role_detail="Only EDITOR, ADMIN, or OWNER can update items",
    )

    data = payload.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in data and data[field] is None:
            data.pop(field)

    merged = {
        f: data.get(f, getattr(item, f))
        for f in ("is_alcohol", "abv", "par_level", "reorder_point", "is_perishable", "storage_type")
    }
    try:
        check_item_rules(**merged)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if "supplier_id" in data:
        await _ensure_supplier_exists(db, data["supplier_id"])
    if "sku" in data and data["sku"] != item.sku:
        await _ensure_sku_free(db, item.event_id, data["sku"], exclude_id=item.id)

    for field, value in data.items():
        if isinstance(value, str) and field in ("name", "sku", "location"):
            value = value.strip()
        setattr(item, field, value)

    await db.commit()
    item = await get_item_or_404(db, item_id, with_relations=True)
    return _serialize_item(item)


@router.delete("/{item_id}", response_model=MessageResponse)
async def delete_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    item = await get_item_or_404(db, item_id)
    await check_event_role(
        db,
        item.event_id,
        user,
        EventRole.ADMIN,
        denied_detail="You can only delete items in your events",
        role_detail="Only ADMIN or OWNER can delete items",
    )
    await db.delete(item)
    await db.commit()
    logger.info(f"Item {item_id} deleted by {user.id}")
    return MessageResponse(message="Item deleted successfully")
