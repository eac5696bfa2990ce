from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Optional
from uuid import UUID

from schemas.common import Category


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class SupplierItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    sku: str
    category: Category
    quantity: int
    event_id: UUID


class SupplierRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    lead_time_days: Optional[int] = None
    notes: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class SupplierListRead(SupplierRead):
    item_count: int = 0


class SupplierDetail(SupplierRead):
    items: List[SupplierItemRead] = []


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    lead_time_days: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("contact_email", mode="before")
    @classmethod
    def _empty_email(cls, v):
        return _blank_to_none(v)


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    lead_time_days: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("contact_email", mode="before")
    @classmethod
    def _empty_email(cls, v):
        return _blank_to_none(v)
