import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from db.database import utcnow

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class StockStatus:
    status: str  # 'out_of_stock' | 'critical' | 'low' | 'adequate' | 'overstocked'
    label: str
    percentage: int


@dataclass(frozen=True)
class ExpiryStatus:
    status: str  # 'expired' | 'critical' | 'warning' | 'good'
    label: str
    days: int


def is_below_reorder_point(quantity: int, reorder_point: Optional[int]) -> bool:
    if reorder_point is None:
        return False
    return quantity <= reorder_point


def needs_restocking(quantity: int, par_level: Optional[int]) -> bool:
    if par_level is None:
        return False
    return quantity < par_level


def suggested_reorder_quantity(quantity: int, par_level: Optional[int]) -> int:
    if par_level is None:
        return 0
    return max(0, par_level - quantity)


def get_stock_status(quantity: int, par_level: Optional[int] = None, reorder_point: Optional[int] = None) -> StockStatus:
    percentage = round(quantity / par_level * 100) if par_level else 100

    if quantity <= 0:
        return StockStatus("out_of_stock", "Out of stock", 0)
    if reorder_point is not None and quantity <= reorder_point:
        return StockStatus("critical", "Below reorder point", percentage)
    if par_level:
        if quantity < par_level * 0.5:
            return StockStatus("low", "Low stock", percentage)
        if quantity >= par_level * 1.5:
            return StockStatus("overstocked", "Overstocked", percentage)
        return StockStatus("adequate", "Adequate stock", percentage)
    return StockStatus("adequate", "In stock", 100)


def days_until_expiry(expiration_date: datetime, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    return math.ceil((expiration_date - now).total_seconds() / 86400)


def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def get_expiry_status(expiration_date: datetime, now: Optional[datetime] = None) -> ExpiryStatus:
    days = days_until_expiry(expiration_date, now)
    if days < 0:
        return ExpiryStatus("expired", f"Expired {_plural_days(abs(days))} ago", days)
    if days == 0:
        return ExpiryStatus("critical", "Expires today", days)
    if days <= 3:
        return ExpiryStatus("critical", f"Expires in {_plural_days(days)}", days)
    if days <= 7:
        return ExpiryStatus("warning", f"Expires in {_plural_days(days)}", days)
    return ExpiryStatus("good", f"Expires in {_plural_days(days)}", days)


def is_expiring_soon(expiration_date: Optional[datetime], threshold_days: int = 7, now: Optional[datetime] = None) -> bool:
    if expiration_date is None:
        return False
    days = days_until_expiry(expiration_date, now)
    return 0 <= days <= threshold_days


def computed_pricing(item) -> Optional[dict]:
    """Per-bottle / per-crate prices for crate- or bottle-priced items; None when nothing applies."""
    price = item.unit_price
    bpc = item.bottles_per_crate
    out: dict = {}
    if price is not None and bpc:
        price = float(price)
        if item.unit_of_measure == "CRATE":
            out["price_per_crate"] = price
            out["price_per_bottle"] = round(price / bpc, 2)
        elif item.unit_of_measure == "BOTTLE":
            out["price_per_bottle"] = price
            out["price_per_crate"] = round(price * bpc, 2)
    if bpc and item.unit_of_measure == "CRATE":
        out["total_bottles"] = int(item.quantity or 0) * bpc
    return out or None


def inventory_value(quantity: int, unit_price: Optional[Number]) -> float:
    if unit_price is None:
        return 0.0
    return float(quantity or 0) * float(unit_price)
