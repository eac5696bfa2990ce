from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import Category


class AuditCreate(BaseModel):
    item_id: UUID
    event_id: UUID
    actual_quantity: int = Field(ge=0)
    expected_quantity: int = Field(ge=0)
    notes: Optional[str] = None
    context_id: Optional[str] = Field(default=None, max_length=255)


class AuditItemSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    category: Category
    location: str


class AuditRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_id: UUID
    event_id: UUID
    actual_quantity: int
    expected_quantity: int
    discrepancy: int
    notes: Optional[str] = None
    context_id: Optional[str] = None
    created_by: Optional[str] = None
    timestamp: datetime


class AuditWithItem(AuditRead):
    item: Optional[AuditItemSummary] = None


class RecentAudit(BaseModel):
    id: UUID
    item_id: UUID
    item_name: Optional[str] = None
    item_category: Optional[str] = None
    discrepancy: int
    timestamp: datetime


class AuditStats(BaseModel):
    total_audits: int
    audits_last_30_days: int
    items_with_discrepancies: int
    average_discrepancy: float
    recent_audits: List[RecentAudit]
