"""CSV export of an event's inventory (UTF-8 with BOM so spreadsheet apps detect the encoding)."""

import csv
import io
import re
from datetime import date, datetime
from typing import Iterable, Optional

from services.stock import inventory_value

CSV_BOM = "\ufeff"

CSV_HEADERS = [
    "SKU",
    "Name",
    "Category",
    "Status",
    "Quantity",
    "Unit of Measure",
    "Unit Price (EUR)",
    "Total Value (EUR)",
    "Location",
    "Bin",
    "Description",
    "Is Perishable",
    "Storage Type",
    "Par Level",
    "Reorder Point",
    "Supplier",
    "Is Alcohol",
    "ABV (%)",
    "Allergens",
    "Last Audit",
    "Created At",
    "Updated At",
    "Event ID",
]


def _money(value) -> str:
    if value is None:
        return ""
    return f"{float(value):.2f}"


def _total_value(quantity, unit_price) -> str:
    if not unit_price:
        return ""
    return f"{inventory_value(quantity, unit_price):.2f}"


def _ts(value: Optional[datetime]) -> str:
    if not value:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _yes_no(flag) -> str:
    return "Yes" if flag else "No"


def _or_blank(value) -> str:
    return "" if value in (None, "") else str(value)


def item_row(item) -> list:
    supplier = getattr(item, "supplier", None)
    abv = item.abv
    return [
        item.sku,
        item.name,
        (item.category or "").replace("_", " "),
        item.status,
        item.quantity,
        item.unit_of_measure,
        _money(item.unit_price),
        _total_value(item.quantity, item.unit_price),
        item.location,
        _or_blank(item.bin),
        _or_blank(item.description),
        _yes_no(item.is_perishable),
        _or_blank(item.storage_type),
        _or_blank(item.par_level),
        _or_blank(item.reorder_point),
        supplier.name if supplier else "",
        _yes_no(item.is_alcohol),
        "" if abv is None else f"{float(abv):g}",
        "; ".join(item.allergens or []),
        _ts(item.last_audit),
        _ts(item.created_at),
        _ts(item.updated_at),
        str(item.event_id),
    ]


def items_to_csv(items: Iterable) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in items:
        writer.writerow(item_row(item))
    return CSV_BOM + buf.getvalue()


def export_filename(event_name: Optional[str], today: Optional[date] = None) -> str:
    today = today or date.today()
    slug = re.sub(r"[^a-z0-9]+", "-", (event_name or "").lower()).strip("-") or "event"
    return f"inventory-{slug}-{today.isoformat()}.csv"
