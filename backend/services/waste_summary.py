from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import Item as ItemModel, WasteLog as WasteLogModel
from services.labels import waste_reason_label

TOP_WASTED_LIMIT = 10


def _cost(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def summarize_waste(logs: Iterable, item_lookup: Optional[dict] = None) -> dict:
    """
    Aggregate waste logs into totals, per-reason and per-item breakdowns.

    `item_lookup` maps item_id -> object with name/sku; missing items are reported as "Unknown".
    """
    item_lookup = item_lookup or {}
    total_quantity = 0
    total_cost = Decimal("0")
    by_reason: dict = defaultdict(lambda: {"count": 0, "total_quantity": 0, "total_cost": Decimal("0")})
    by_item: dict = defaultdict(lambda: {"total_quantity": 0, "total_cost": Decimal("0")})

    for log in logs:
        qty = int(log.quantity or 0)
        cost = _cost(log.cost_impact)
        total_quantity += qty
        total_cost += cost

        r = by_reason[log.reason]
        r["count"] += 1
        r["total_quantity"] += qty
        r["total_cost"] += cost

        i = by_item[log.item_id]
        i["total_quantity"] += qty
        i["total_cost"] += cost

    waste_by_reason = [
        {
            "reason": reason,
            "label": waste_reason_label(reason),
            "count": v["count"],
            "total_quantity": v["total_quantity"],
            "total_cost": f"{v['total_cost']:.2f}",
        }
        for reason, v in by_reason.items()
    ]
    waste_by_reason.sort(key=lambda r: r["total_quantity"], reverse=True)

    ranked = sorted(by_item.items(), key=lambda kv: kv[1]["total_quantity"], reverse=True)[:TOP_WASTED_LIMIT]
    top_wasted_items = []
    for item_id, v in ranked:
        item = item_lookup.get(item_id)
        top_wasted_items.append(
            {
                "item_id": item_id,
                "item_name": getattr(item, "name", None) or "Unknown",
                "sku": getattr(item, "sku", None),
                "total_quantity": v["total_quantity"],
                "total_cost": f"{v['total_cost']:.2f}",
            }
        )

    return {
        "total_waste_quantity": total_quantity,
        "total_cost_impact": f"{total_cost:.2f}",
        "waste_by_reason": waste_by_reason,
        "top_wasted_items": top_wasted_items,
    }


async def waste_summary_for_event(db: AsyncSession, event_id: UUID) -> dict:
    res = await db.execute(select(WasteLogModel).where(WasteLogModel.event_id == event_id))
    logs = res.scalars().all()
    item_ids = {log.item_id for log in logs}
    lookup = {}
    if item_ids:
        items = await db.execute(select(ItemModel).where(ItemModel.id.in_(item_ids)))
        lookup = {i.id: i for i in items.scalars().all()}
    return summarize_waste(logs, lookup)
