import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import AuthUser, get_current_user
from db.database import get_async_session, Item as ItemModel, Supplier as SupplierModel
from schemas.common import MessageResponse, Page, Pagination
from schemas.suppliers import (
    SupplierCreate,
    SupplierDetail,
    SupplierItemRead,
    SupplierListRead,
    SupplierRead,
    SupplierUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_supplier_or_404(db: AsyncSession, supplier_id: UUID, with_items: bool = False) -> SupplierModel:
    stmt = select(SupplierModel).where(SupplierModel.id == supplier_id)
    if with_items:
        stmt = stmt.options(selectinload(SupplierModel.items))
    res = await db.execute(stmt)
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Supplier not found")
    return m


async def _item_count(db: AsyncSession, supplier_id: UUID) -> int:
    res = await db.execute(select(func.count(ItemModel.id)).where(ItemModel.supplier_id == supplier_id))
    return int(res.scalar_one())


@router.get("", response_model=Page[SupplierListRead])
async def list_suppliers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = Query(None),
    q: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    conditions = []
    if is_active is not None:
        conditions.append(SupplierModel.is_active.is_(is_active))
    if q:
        conditions.append(SupplierModel.name.ilike(f"%{q.strip()}%"))

    total = (await db.execute(select(func.count(SupplierModel.id)).where(*conditions))).scalar_one()

    counts = (
        select(ItemModel.supplier_id, func.count(ItemModel.id).label("item_count"))
        .group_by(ItemModel.supplier_id)
        .subquery()
    )
    res = await db.execute(
        select(SupplierModel, func.coalesce(counts.c.item_count, 0))
        .outerjoin(counts, counts.c.supplier_id == SupplierModel.id)
        .where(*conditions)
        .order_by(func.lower(SupplierModel.name).asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    data = [
        SupplierListRead(**SupplierRead.model_validate(s).model_dump(), item_count=int(n))
        for s, n in res.all()
    ]
    return Page[SupplierListRead](data=data, pagination=Pagination.build(page, limit, int(total)))


@router.get("/{supplier_id}", response_model=SupplierDetail)
async def get_supplier(
    supplier_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    m = await _get_supplier_or_404(db, supplier_id, with_items=True)
    items = sorted(m.items, key=lambda i: (i.name or "").lower())
    return SupplierDetail(
        **SupplierRead.model_validate(m).model_dump(),
        items=[SupplierItemRead.model_validate(i) for i in items],
    )


@router.post("", response_model=SupplierRead, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    payload: SupplierCreate,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    data = payload.model_dump()
    if data.get("contact_email"):
        data["contact_email"] = str(data["contact_email"])
    m = SupplierModel(**data)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    logger.info(f"Supplier {m.id} ({m.name}) created by {user.id}")
    return SupplierRead.model_validate(m)


@router.put("/{supplier_id}", response_model=SupplierRead)
async def update_supplier(
    supplier_id: UUID,
    payload: SupplierUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    m = await _get_supplier_or_404(db, supplier_id)

    data = payload.model_dump(exclude_unset=True)
    if "name" in data:
        if data["name"] is None or not data["name"].strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")
        data["name"] = data["name"].strip()
    if "is_active" in data and data["is_active"] is None:
        data.pop("is_active")
    if data.get("contact_email"):
        data["contact_email"] = str(data["contact_email"])

    for field, value in data.items():
        setattr(m, field, value)

    await db.commit()
    await db.refresh(m)
    return SupplierRead.model_validate(m)


@router.delete("/{supplier_id}", response_model=MessageResponse)
async def delete_supplier(
    supplier_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    m = await _get_supplier_or_404(db, supplier_id)
    count = await _item_count(db, supplier_id)
    if count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete supplier with {count} associated item(s). Please remove or reassign items first.",
        )

    await db.delete(m)
    await db.commit()
    logger.info(f"Supplier {supplier_id} deleted by {user.id}")
    return MessageResponse(message="Supplier deleted successfully")
