from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from schemas.batches import BatchRead
from schemas.common import Category, ItemStatus, StorageType, UnitOfMeasure


def check_item_rules(is_alcohol, abv, par_level, reorder_point, is_perishable, storage_type) -> None:
    """Cross-field rules shared by create and merged updates; raises ValueError."""
    if is_alcohol and abv is None:
        raise ValueError("ABV is required when is_alcohol is true")
    if par_level is not None and reorder_point is not None and reorder_point >= par_level:
        raise ValueError("Reorder point must be less than par level")
    if is_perishable and not storage_type:
        raise ValueError("Storage type is required for perishable items")


def _optional_price(v):
    # 0 / "" / null all mean "no price"
    if v is None:
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    try:
        if float(v) == 0:
            return None
    except (TypeError, ValueError):
        return v
    return v


def normalize_allergens(values: List[str]) -> List[str]:
    seen: List[str] = []
    for a in values or []:
        code = (a or "").strip().upper()
        if code and code not in seen:
            seen.append(code)
    return seen


class ItemFields(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    sku: str = Field(min_length=1, max_length=255)
    category: Category
    quantity: int = Field(default=0, ge=0)
    unit_of_measure: UnitOfMeasure = "EACH"
    unit_price: Optional[float] = Field(default=None, gt=0)
    status: ItemStatus = "AVAILABLE"
    location: str = Field(min_length=1, max_length=255)
    bin: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None

    is_perishable: bool = False
    storage_type: Optional[StorageType] = None
    par_level: Optional[int] = Field(default=None, gt=0)
    reorder_point: Optional[int] = Field(default=None, gt=0)
    supplier_id: Optional[UUID] = None

    is_alcohol: bool = False
    abv: Optional[float] = Field(default=None, ge=0, le=100)
    allergens: List[str] = []
    bottles_per_crate: Optional[int] = Field(default=None, gt=0)
    bottle_volume_ml: Optional[int] = Field(default=None, gt=0)

    @field_validator("name", "sku", "location")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price(cls, v):
        return _optional_price(v)

    @field_validator("allergens")
    @classmethod
    def _allergens(cls, v: List[str]) -> List[str]:
        return normalize_allergens(v)


class ItemCreate(ItemFields):
    event_id: UUID

    @model_validator(mode="after")
    def _cross_field(self):
        check_item_rules(
            self.is_alcohol, self.abv, self.par_level, self.reorder_point, self.is_perishable, self.storage_type
        )
        return self


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sku: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[Category] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    unit_of_measure: Optional[UnitOfMeasure] = None
    unit_price: Optional[float] = Field(default=None, gt=0)
    status: Optional[ItemStatus] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    bin: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None

    is_perishable: Optional[bool] = None
    storage_type: Optional[StorageType] = None
    par_level: Optional[int] = Field(default=None, gt=0)
    reorder_point: Optional[int] = Field(default=None, gt=0)
    supplier_id: Optional[UUID] = None

    is_alcohol: Optional[bool] = None
    abv: Optional[float] = Field(default=None, ge=0, le=100)
    allergens: Optional[List[str]] = None
    bottles_per_crate: Optional[int] = Field(default=None, gt=0)
    bottle_volume_ml: Optional[int] = Field(default=None, gt=0)

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price(cls, v):
        return _optional_price(v)

    @field_validator("allergens")
    @classmethod
    def _allergens(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        return normalize_allergens(v)


class SupplierSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class ItemComputed(BaseModel):
    price_per_bottle: Optional[float] = None
    price_per_crate: Optional[float] = None
    total_bottles: Optional[int] = None


class StockStatusRead(BaseModel):
    status: str
    label: str
    percentage: int


class ItemAuditRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actual_quantity: int
    expected_quantity: int
    discrepancy: int
    notes: Optional[str] = None
    context_id: Optional[str] = None
    created_by: Optional[str] = None
    timestamp: datetime


class ItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    name: str
    sku: str
    category: Category
    quantity: int
    unit_of_measure: UnitOfMeasure
    unit_price: Optional[float] = None
    status: ItemStatus
    location: str
    bin: Optional[str] = None
    description: Optional[str] = None
    is_perishable: bool
    storage_type: Optional[StorageType] = None
    par_level: Optional[int] = None
    reorder_point: Optional[int] = None
    supplier_id: Optional[UUID] = None
    is_alcohol: bool
    abv: Optional[float] = None
    allergens: List[str] = []
    bottles_per_crate: Optional[int] = None
    bottle_volume_ml: Optional[int] = None
    last_audit: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ItemListRead(ItemRead):
    supplier: Optional[SupplierSummary] = None
    batches: List[BatchRead] = []
    computed: Optional[ItemComputed] = None


class ItemDetail(ItemListRead):
    audit_logs: List[ItemAuditRead] = []
    stock_status: StockStatusRead
    needs_restocking: bool = False
    suggested_reorder_quantity: int = 0
    inventory_value: float = 0.0
    storage_label: Optional[str] = None
    allergen_labels: str = "None"
