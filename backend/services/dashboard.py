from collections import OrderedDict
from datetime import datetime
from typing import Iterable, List, Optional

from services.fifo import sort_batches_fifo
from services.stock import (
    days_until_expiry,
    get_expiry_status,
    is_below_reorder_point,
    is_expiring_soon,
    suggested_reorder_quantity,
)

WIDGET_LIMIT = 5
EXPIRY_WINDOW_DAYS = 7
UNASSIGNED_SUPPLIER = "Unassigned"


def low_stock_items(items: Iterable, limit: int = WIDGET_LIMIT) -> List[dict]:
    """Items at or under their reorder point, most depleted (qty / reorder point) first."""
    rows = []
    for item in items:
        rp = item.reorder_point
        if not rp or not is_below_reorder_point(item.quantity, rp):
            continue
        rows.append(
            {
                "id": item.id,
                "name": item.name,
                "sku": item.sku,
                "quantity": item.quantity,
                "reorder_point": rp,
                "par_level": item.par_level,
                "suggested_reorder_quantity": suggested_reorder_quantity(item.quantity, item.par_level),
                "ratio": round(item.quantity / rp, 4),
            }
        )
    rows.sort(key=lambda r: r["ratio"])
    return rows[:limit]


def expiring_items(items: Iterable, now: Optional[datetime] = None, limit: int = WIDGET_LIMIT,
                   window_days: int = EXPIRY_WINDOW_DAYS) -> List[dict]:
    """Items whose soonest-expiring open batch falls within the window."""
    rows = []
    for item in items:
        dated = [b for b in (item.batches or []) if b.is_open and b.expiration_date is not None]
        if not dated:
            continue
        soonest = sort_batches_fifo(dated)[0]
        if not is_expiring_soon(soonest.expiration_date, window_days, now):
            continue
        days = days_until_expiry(soonest.expiration_date, now)
        status = get_expiry_status(soonest.expiration_date, now)
        rows.append(
            {
                "id": item.id,
                "name": item.name,
                "batch_id": soonest.id,
                "lot_number": soonest.lot_number,
                "expiration_date": soonest.expiration_date,
                "days_until_expiry": days,
                "status": status.status,
                "label": status.label,
            }
        )
    rows.sort(key=lambda r: r["days_until_expiry"])
    return rows[:limit]


def supplier_performance(items: Iterable, limit: int = WIDGET_LIMIT) -> List[dict]:
    groups: "OrderedDict[str, dict]" = OrderedDict()
    for item in items:
        supplier = getattr(item, "supplier", None)
        key = str(supplier.id) if supplier else UNASSIGNED_SUPPLIER
        row = groups.get(key)
        if row is None:
            row = {
                "supplier_id": supplier.id if supplier else None,
                "supplier_name": supplier.name if supplier else UNASSIGNED_SUPPLIER,
                "item_count": 0,
                "perishable_count": 0,
                "total_quantity": 0,
            }
            groups[key] = row
        row["item_count"] += 1
        row["perishable_count"] += 1 if item.is_perishable else 0
        row["total_quantity"] += int(item.quantity or 0)
    rows = sorted(groups.values(), key=lambda r: r["item_count"], reverse=True)
    return rows[:limit]
