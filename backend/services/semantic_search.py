import uuid
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import Item as ItemModel


async def search_similar_items(
    db: AsyncSession,
    embedding: Sequence[float],
    event_ids: Iterable[uuid.UUID],
    limit: int = 10,
    threshold: float = 0.7,
) -> List[tuple]:
    """
    Nearest items by cosine distance (served by the HNSW index on vector_desc).

    Returns (item, similarity) pairs, best first; similarity = 1 - cosine distance.
    """
    event_ids = list(event_ids)
    if not event_ids:
        return []

    distance = ItemModel.vector_desc.cosine_distance(list(embedding))
    stmt = (
        select(ItemModel, (1 - distance).label("similarity"))
        .where(ItemModel.vector_desc.is_not(None))
        .where(ItemModel.event_id.in_(event_ids))
        .where((1 - distance) >= threshold)
        .order_by(distance)
        .limit(limit)
    )
    res = await db.execute(stmt)
    return [(row[0], float(row[1])) for row in res.all()]


async def items_missing_embeddings(db: AsyncSession, event_id: Optional[uuid.UUID], limit: int) -> List[ItemModel]:
    stmt = select(ItemModel).where(ItemModel.vector_desc.is_(None))
    if event_id:
        stmt = stmt.where(ItemModel.event_id == event_id)
    stmt = stmt.order_by(ItemModel.created_at.asc()).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())
