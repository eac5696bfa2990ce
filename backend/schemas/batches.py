from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import UtcDatetime


class BatchCreate(BaseModel):
    event_id: UUID
    quantity: int = Field(gt=0)
    lot_number: Optional[str] = Field(default=None, max_length=255)
    expiration_date: Optional[UtcDatetime] = None
    received_at: Optional[UtcDatetime] = None
    manufactured_at: Optional[UtcDatetime] = None
    notes: Optional[str] = None


class ConsumeRequest(BaseModel):
    event_id: UUID
    quantity: int = Field(gt=0)


class BatchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_id: UUID
    event_id: UUID
    lot_number: Optional[str] = None
    quantity: int
    initial_quantity: int
    expiration_date: Optional[datetime] = None
    received_at: datetime
    manufactured_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_open: bool
    created_at: datetime
    updated_at: datetime


class ConsumedBatch(BaseModel):
    id: UUID
    consumed: int
    remaining_quantity: int
    is_open: bool
    expiration_date: Optional[datetime] = None


class ConsumeResult(BaseModel):
    item_id: UUID
    total_consumed: int
    batches: List[ConsumedBatch]
