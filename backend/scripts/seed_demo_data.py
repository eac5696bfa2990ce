"""
Seed a demo event (owner membership, suppliers, items, batches) into the Postgres DB.

This script can be run from either:
- backend/: `python scripts/seed_demo_data.py --owner <user-id>`
- repo root: `python backend/scripts/seed_demo_data.py --owner <user-id>`

The owner is an identity-provider subject (the `sub` claim of their token).
Re-running is safe: rows are matched by name / SKU and only missing ones are added.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Optional

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select  # noqa: E402

from core.logging_config import configure_logging  # noqa: E402
from db.database import (  # noqa: E402
    async_session_maker,
    create_db_and_tables,
    utcnow,
    Batch,
    Event,
    EventMember,
    Item,
    Supplier,
)

logger = logging.getLogger("seed_demo_data")

DEMO_EVENT_NAME = "Summer Gala (demo)"


@dataclass(frozen=True)
class SeedSupplier:
    name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    lead_time_days: Optional[int] = None


@dataclass(frozen=True)
class SeedBatch:
    quantity: int
    lot_number: str
    expires_in_days: Optional[int] = None
    received_days_ago: int = 0


@dataclass(frozen=True)
class SeedItem:
    name: str
    sku: str
    category: str
    unit_of_measure: str
    location: str
    supplier: Optional[str] = None
    unit_price: Optional[Decimal] = None
    description: Optional[str] = None
    is_perishable: bool = False
    storage_type: Optional[str] = None
    is_alcohol: bool = False
    abv: Optional[Decimal] = None
    par_level: Optional[int] = None
    reorder_point: Optional[int] = None
    allergens: tuple = ()
    quantity: int = 0
    batches: tuple = field(default_factory=tuple)


SEED_SUPPLIERS = [
    SeedSupplier("Harbor Beverage Co.", "Dana Reyes", "orders@harborbev.example", 3),
    SeedSupplier("Fresh Fields Produce", "Sam Patel", "sam@freshfields.example", 1),
    SeedSupplier("StageRight AV Rentals", "Morgan Lee", None, 7),
]

SEED_ITEMS = [
    SeedItem(
        name="Sparkling Wine", sku="BEV-SPW-750", category="FOOD_BEVERAGE", unit_of_measure="BOTTLE",
        location="Bar Storage", supplier="Harbor Beverage Co.", unit_price=Decimal("14.50"),
        description="Dry sparkling wine for the welcome toast", is_alcohol=True, abv=Decimal("11.5"),
        par_level=120, reorder_point=40,
        batches=(SeedBatch(48, "SPW-2401", 180, 10), SeedBatch(24, "SPW-2402", 240, 2)),
    ),
    SeedItem(
        name="Fresh Strawberries", sku="FOOD-STRAW-1KG", category="FOOD_BEVERAGE", unit_of_measure="KILOGRAM",
        location="Walk-in Cooler", supplier="Fresh Fields Produce", unit_price=Decimal("6.80"),
        is_perishable=True, storage_type="CHILL", par_level=20, reorder_point=8,
        batches=(SeedBatch(6, "STR-0612", 2, 1), SeedBatch(5, "STR-0614", 5, 0)),
    ),
    SeedItem(
        name="Mixed Nuts", sku="FOOD-NUTS-500", category="FOOD_BEVERAGE", unit_of_measure="PACK",
        location="Dry Store", supplier="Harbor Beverage Co.", unit_price=Decimal("4.25"),
        is_perishable=True, storage_type="DRY", allergens=("NUTS", "PEANUTS"), par_level=30, reorder_point=10,
        batches=(SeedBatch(12, "NUT-7781", 60, 5),),
    ),
    SeedItem(
        name="Wireless Microphone", sku="AV-MIC-WL", category="AV_EQUIPMENT", unit_of_measure="EACH",
        location="AV Cage", supplier="StageRight AV Rentals", unit_price=Decimal("85.00"),
        description="Handheld UHF microphone with receiver", par_level=6, reorder_point=2, quantity=4,
    ),
    SeedItem(
        name="Banquet Chair", sku="FURN-CHAIR-BQ", category="FURNITURE", unit_of_measure="EACH",
        location="Ballroom", quantity=180, par_level=200, reorder_point=150,
    ),
    SeedItem(
        name="Table Linen (white)", sku="DECOR-LINEN-W", category="DECOR", unit_of_measure="EACH",
        location="Linen Room", quantity=24, par_level=30,
    ),
]


async def get_or_create_event(session, owner_id: str) -> Event:
    result = await session.execute(select(Event).where(Event.name == DEMO_EVENT_NAME))
    event = result.scalar_one_or_none()
    if event is None:
        start = utcnow() + timedelta(days=14)
        event = Event(
            name=DEMO_EVENT_NAME,
            description="Demo event created by seed_demo_data.py",
            location="Harborview Hotel",
            start_date=start,
            end_date=start + timedelta(days=1),
        )
        session.add(event)
        await session.flush()
        logger.info(f"Created event {event.id}")

    result = await session.execute(
        select(EventMember).where(EventMember.event_id == event.id, EventMember.user_id == owner_id)
    )
    if result.scalar_one_or_none() is None:
        session.add(EventMember(event_id=event.id, user_id=owner_id, role="OWNER"))
    return event


async def get_or_create_supplier(session, seed: SeedSupplier) -> Supplier:
    result = await session.execute(select(Supplier).where(func.lower(Supplier.name) == seed.name.lower()))
    supplier = result.scalar_one_or_none()
    if supplier:
        return supplier
    supplier = Supplier(
        name=seed.name,
        contact_name=seed.contact_name,
        contact_email=seed.contact_email,
        lead_time_days=seed.lead_time_days,
    )
    session.add(supplier)
    await session.flush()
    return supplier


async def seed_item(session, event: Event, seed: SeedItem, suppliers: dict) -> bool:
    result = await session.execute(select(Item).where(Item.event_id == event.id, Item.sku == seed.sku))
    if result.scalar_one_or_none():
        return False

    now = utcnow()
    batch_total = sum(b.quantity for b in seed.batches)
    item = Item(
        event_id=event.id,
        name=seed.name,
        sku=seed.sku,
        category=seed.category,
        unit_of_measure=seed.unit_of_measure,
        location=seed.location,
        supplier_id=suppliers[seed.supplier].id if seed.supplier else None,
        unit_price=seed.unit_price,
        description=seed.description,
        is_perishable=seed.is_perishable,
        storage_type=seed.storage_type,
        is_alcohol=seed.is_alcohol,
        abv=seed.abv,
        par_level=seed.par_level,
        reorder_point=seed.reorder_point,
        allergens=list(seed.allergens),
        quantity=seed.quantity + batch_total,
    )
    session.add(item)
    await session.flush()

    for b in seed.batches:
        session.add(
            Batch(
                item_id=item.id,
                event_id=event.id,
                lot_number=b.lot_number,
                quantity=b.quantity,
                initial_quantity=b.quantity,
                expiration_date=now + timedelta(days=b.expires_in_days) if b.expires_in_days is not None else None,
                received_at=now - timedelta(days=b.received_days_ago),
                is_open=True,
            )
        )
    return True


async def main(owner_id: str) -> None:
    await create_db_and_tables()
    async with async_session_maker() as session:
        event = await get_or_create_event(session, owner_id)
        suppliers = {s.name: await get_or_create_supplier(session, s) for s in SEED_SUPPLIERS}

        created = 0
        for seed in SEED_ITEMS:
            if await seed_item(session, event, seed, suppliers):
                created += 1

        await session.commit()
        logger.info(f"Seeded event {event.id}: {created} new item(s), {len(suppliers)} supplier(s)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--owner", required=True, help="identity-provider user id to make OWNER of the demo event")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(main(args.owner))
