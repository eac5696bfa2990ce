from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

DATABASE_URL = settings.database_url


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


engine = create_async_engine(DATABASE_URL, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables():
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


# Register models on Base.metadata and re-export them for routers.
from db.event import Event, EventMember, EventInvitation  # noqa: E402,F401
from db.supplier import Supplier  # noqa: E402,F401
from db.api_key import ApiKey  # noqa: E402,F401
from db.inventory.item import Item  # noqa: E402,F401
from db.inventory.batch import Batch  # noqa: E402,F401
from db.inventory.audit_log import AuditLog  # noqa: E402,F401
from db.inventory.waste_log import WasteLog  # noqa: E402,F401
