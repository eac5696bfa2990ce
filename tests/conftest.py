"""
Shared test fixtures.

Provides: in-memory SQLite database, ASGI client with dependency overrides,
bearer token factory, fake AI service and seed helpers for events/items/batches.
"""

import os

# Settings are read at import time; configure before importing the app.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTH_PROJECT_ID"] = "test-project"
os.environ["AUTH_JWT_SECRET"] = ""
os.environ["OPENAI_API_KEY"] = ""

import time  # noqa: E402
import uuid  # noqa: E402
from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event as sa_event  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.config import settings  # noqa: E402
from db.database import (  # noqa: E402
    Base,
    get_async_session,
    utcnow,
    Batch,
    Event,
    EventMember,
    Item,
    Supplier,
)
from main import app  # noqa: E402
from services.ai_service import get_ai_service  # noqa: E402
from services.auto_category import suggestion_cache  # noqa: E402

TOKEN_SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"

OWNER_ID = "user-owner"
OWNER_EMAIL = "owner@example.com"


def make_token(sub: str, email: str = None, name: str = None, project_id: str = "test-project",
               expires_in: int = 3600) -> str:
    payload = {"sub": sub, "project_id": project_id, "exp": int(time.time()) + expires_in}
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    return jwt.encode(payload, TOKEN_SIGNING_KEY, algorithm="HS256")


class FakeAIService:
    """Stands in for AIService; records calls and returns canned answers."""

    def __init__(self):
        self.embedding = [0.01] * settings.embedding_dimensions
        self.categorize_result = {"category": "FURNITURE", "confidence": 0.9, "reasoning": "Chairs are furniture"}
        self.categorize_error = None
        self.categorize_calls = 0
        self.parsed_query = {"search_term": "chairs", "category": "FURNITURE"}
        self.health = {"status": "ok", "message": "OpenAI API is working"}

    async def generate_embedding(self, text):
        return list(self.embedding)

    async def generate_item_embedding(self, item):
        return list(self.embedding)

    async def generate_batch_embeddings(self, items):
        return [list(self.embedding) for _ in items]

    async def categorize_item(self, name, description=None):
        self.categorize_calls += 1
        if self.categorize_error is not None:
            raise self.categorize_error
        return dict(self.categorize_result)

    async def parse_search_query(self, query):
        return dict(self.parsed_query)

    async def health_check(self):
        return dict(self.health)


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with foreign keys enforced (cascades rely on them)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @sa_event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
async def client(session_maker, fake_ai):
    async def _session_override():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session_override
    app.dependency_overrides[get_ai_service] = lambda: fake_ai
    suggestion_cache.clear()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    suggestion_cache.clear()


@pytest.fixture
def auth():
    """auth(user_id, email=None, **extra_headers) -> headers dict with a bearer token."""

    def _headers(user_id: str = OWNER_ID, email: str = None, **extra) -> dict:
        headers = {"Authorization": f"Bearer {make_token(user_id, email=email)}"}
        headers.update({k.replace("_", "-"): v for k, v in extra.items()})
        return headers

    return _headers


@pytest.fixture
def make_event(db):
    async def _make(name: str = "Test Event", owner_id: str = OWNER_ID) -> Event:
        ev = Event(name=name, location="Main Hall")
        db.add(ev)
        await db.flush()
        db.add(EventMember(event_id=ev.id, user_id=owner_id, role="OWNER"))
        await db.commit()
        return ev

    return _make


@pytest.fixture
async def event(make_event):
    return await make_event()


@pytest.fixture
def add_member(db):
    async def _add(event_id: uuid.UUID, user_id: str, role: str) -> EventMember:
        m = EventMember(event_id=event_id, user_id=user_id, role=role)
        db.add(m)
        await db.commit()
        return m

    return _add


@pytest.fixture
def make_supplier(db):
    async def _make(name: str = "Acme Supply", **fields) -> Supplier:
        s = Supplier(name=name, **fields)
        db.add(s)
        await db.commit()
        return s

    return _make


@pytest.fixture
def make_item(db):
    async def _make(event_id: uuid.UUID, **fields) -> Item:
        values = {
            "name": "Folding Chair",
            "sku": f"SKU-{uuid.uuid4().hex[:8]}",
            "category": "FURNITURE",
            "quantity": 10,
            "unit_of_measure": "EACH",
            "location": "Warehouse A",
            "allergens": [],
        }
        values.update(fields)
        if isinstance(values.get("unit_price"), (int, float)):
            values["unit_price"] = Decimal(str(values["unit_price"]))
        item = Item(event_id=event_id, **values)
        db.add(item)
        await db.commit()
        return item

    return _make


@pytest.fixture
def make_batch(db):
    async def _make(item: Item, quantity: int, expires_in_days: int = None, received_days_ago: int = 0,
                    **fields) -> Batch:
        now = utcnow()
        b = Batch(
            item_id=item.id,
            event_id=item.event_id,
            quantity=quantity,
            initial_quantity=quantity,
            expiration_date=now + timedelta(days=expires_in_days) if expires_in_days is not None else None,
            received_at=now - timedelta(days=received_days_ago),
            is_open=True,
            **fields,
        )
        db.add(b)
        await db.commit()
        return b

    return _make
