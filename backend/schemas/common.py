import math
from datetime import datetime, timezone
from typing import Annotated, Generic, List, Literal, TypeVar

from pydantic import AfterValidator, BaseModel


EventRole = Literal["OWNER", "ADMIN", "EDITOR", "VIEWER"]
InvitationStatus = Literal["PENDING", "ACCEPTED", "DECLINED", "EXPIRED"]
Category = Literal["FURNITURE", "AV_EQUIPMENT", "DECOR", "SUPPLIES", "FOOD_BEVERAGE", "OTHER"]
UnitOfMeasure = Literal[
    "EACH", "PAIR", "SET", "METER", "BOX", "PACK", "HOUR",
    "KILOGRAM", "GRAM", "LITER", "MILLILITER", "SERVING", "BOTTLE", "CRATE",
]
ItemStatus = Literal["AVAILABLE", "RESERVED", "OUT_OF_STOCK", "MAINTENANCE", "DAMAGED", "RETIRED"]
StorageType = Literal["DRY", "CHILL", "FREEZE"]
WasteReason = Literal["SPOILAGE", "OVERPRODUCTION", "DAMAGE", "CONTAMINATION", "OTHER"]


def to_naive_utc(value: datetime) -> datetime:
    """Columns store naive UTC; aware inputs are converted, naive inputs are taken as UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)


class Page(BaseModel, Generic[T]):
    data: List[T]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str
