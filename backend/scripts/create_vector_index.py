"""
Create the HNSW index used by semantic search on items.vector_desc.

Run locally:
  python backend/scripts/create_vector_index.py

Requires PostgreSQL with the pgvector extension; uses DATABASE_URL like the API.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import text  # noqa: E402

from core.logging_config import configure_logging  # noqa: E402
from db.database import engine  # noqa: E402

logger = logging.getLogger("create_vector_index")

INDEX_NAME = "items_vector_desc_idx"

CREATE_INDEX_SQL = f"""
CREATE INDEX IF NOT EXISTS {INDEX_NAME}
ON items
USING hnsw (vector_desc vector_cosine_ops)
WITH (m = 16, ef_construction = 64)
"""


async def main() -> None:
    async with engine.begin() as conn:
        if conn.dialect.name != "postgresql":
            logger.error(f"HNSW indexes need PostgreSQL + pgvector (got {conn.dialect.name})")
            return
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.execute(text(CREATE_INDEX_SQL))
        count = (await conn.execute(text("SELECT count(*) FROM items WHERE vector_desc IS NOT NULL"))).scalar_one()
    logger.info(f"Index {INDEX_NAME} ready ({count} item(s) with embeddings)")
    await engine.dispose()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
