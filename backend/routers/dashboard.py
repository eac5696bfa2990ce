from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.event_access import EventAccess, get_event_access
from db.database import get_async_session, utcnow, Item as ItemModel
from schemas.dashboard import DashboardRead, ExpiringRow, LowStockRow, SupplierPerformanceRow
from schemas.waste import WasteSummary
from services.dashboard import expiring_items, low_stock_items, supplier_performance
from services.waste_summary import waste_summary_for_event

router = APIRouter()


@router.get("/dashboard", response_model=DashboardRead)
async def get_dashboard(
    event_id: Optional[UUID] = Query(None),
    access: EventAccess = Depends(get_event_access),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(ItemModel)
        .options(selectinload(ItemModel.supplier), selectinload(ItemModel.batches))
        .where(ItemModel.event_id == access.event_id)
    )
    items = res.scalars().all()
    now = utcnow()

    return DashboardRead(
        event_id=access.event_id,
        low_stock=[LowStockRow(**r) for r in low_stock_items(items)],
        expiring_soon=[ExpiringRow(**r) for r in expiring_items(items, now)],
        supplier_performance=[SupplierPerformanceRow(**r) for r in supplier_performance(items)],
        waste_summary=WasteSummary(**await waste_summary_for_event(db, access.event_id)),
    )
