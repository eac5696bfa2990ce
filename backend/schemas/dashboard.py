from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from schemas.waste import WasteSummary


class LowStockRow(BaseModel):
    id: UUID
    name: str
    sku: str
    quantity: int
    reorder_point: int
    par_level: Optional[int] = None
    suggested_reorder_quantity: int = 0
    ratio: float


class ExpiringRow(BaseModel):
    id: UUID
    name: str
    batch_id: UUID
    lot_number: Optional[str] = None
    expiration_date: datetime
    days_until_expiry: int
    status: str
    label: str


class SupplierPerformanceRow(BaseModel):
    supplier_id: Optional[UUID] = None
    supplier_name: str
    item_count: int
    perishable_count: int
    total_quantity: int


class DashboardRead(BaseModel):
    event_id: UUID
    low_stock: List[LowStockRow]
    expiring_soon: List[ExpiringRow]
    supplier_performance: List[SupplierPerformanceRow]
    waste_summary: WasteSummary
