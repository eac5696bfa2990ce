from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import Category, WasteReason


class WasteCreate(BaseModel):
    item_id: UUID
    batch_id: Optional[UUID] = None
    quantity: int = Field(gt=0)
    reason: WasteReason
    notes: Optional[str] = None
    event_id: UUID


class WasteItemSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    sku: str
    category: Category


class WasteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_id: UUID
    batch_id: Optional[UUID] = None
    event_id: UUID
    quantity: int
    reason: WasteReason
    notes: Optional[str] = None
    cost_impact: Optional[float] = None
    created_by: Optional[str] = None
    timestamp: datetime


class WasteWithItem(WasteRead):
    item: Optional[WasteItemSummary] = None


class WasteByReason(BaseModel):
    reason: WasteReason
    label: str
    count: int
    total_quantity: int
    total_cost: str


class TopWastedItem(BaseModel):
    item_id: UUID
    item_name: str
    sku: Optional[str] = None
    total_quantity: int
    total_cost: str


class WasteSummary(BaseModel):
    total_waste_quantity: int
    total_cost_impact: str
    waste_by_reason: List[WasteByReason]
    top_wasted_items: List[TopWastedItem]
