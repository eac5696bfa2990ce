"""Events CRUD, bearer authentication and event access resolution."""

import time
import uuid

import jwt

from conftest import OWNER_ID, TOKEN_SIGNING_KEY, make_token

API = "/api/v1"


async def test_health(client):
    response = await client.get(f"{API}/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["version"]
    assert body["timestamp"]


class TestBearerAuth:
    async def test_missing_header(self, client):
        response = await client.get(f"{API}/events")
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing or invalid authorization header"

    async def test_garbage_token(self, client):
        response = await client.get(f"{API}/events", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token format"

    async def test_expired_token(self, client):
        token = make_token("someone", expires_in=-60)
        response = await client.get(f"{API}/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    async def test_wrong_project(self, client):
        token = make_token("someone", project_id="other-project")
        response = await client.get(f"{API}/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token project"

    async def test_non_numeric_expiry(self, client):
        token = jwt.encode(
            {"sub": "u1", "project_id": "test-project", "exp": "soon"}, TOKEN_SIGNING_KEY, algorithm="HS256"
        )
        response = await client.get(f"{API}/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token format"

    async def test_expiry_checked_before_subject(self, client):
        token = jwt.encode(
            {"project_id": "test-project", "exp": int(time.time()) - 60}, TOKEN_SIGNING_KEY, algorithm="HS256"
        )
        response = await client.get(f"{API}/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    async def test_missing_subject(self, client):
        token = jwt.encode({"project_id": "test-project"}, TOKEN_SIGNING_KEY, algorithm="HS256")
        response = await client.get(f"{API}/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token format"


async def test_create_event_makes_creator_owner(client, auth):
    response = await client.post(
        f"{API}/events",
        json={"name": "  Launch Party ", "location": "Rooftop"},
        headers=auth("creator"),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Launch Party"
    assert body["role"] == "OWNER"
    assert body["member_count"] == 1

    listed = await client.get(f"{API}/events", headers=auth("creator"))
    assert [e["id"] for e in listed.json()] == [body["id"]]


async def test_create_event_rejects_inverted_dates(client, auth):
    response = await client.post(
        f"{API}/events",
        json={"name": "Bad", "start_date": "2025-06-02T10:00:00Z", "end_date": "2025-06-01T10:00:00Z"},
        headers=auth(),
    )
    assert response.status_code == 422


async def test_list_only_shows_memberships(client, auth, make_event):
    mine = await make_event("Mine")
    await make_event("Theirs", owner_id="someone-else")

    response = await client.get(f"{API}/events", headers=auth())

    assert [e["id"] for e in response.json()] == [str(mine.id)]


async def test_get_event_detail_counts(client, auth, event, add_member, make_item):
    await add_member(event.id, "viewer-1", "VIEWER")
    await make_item(event.id)

    response = await client.get(f"{API}/events/{event.id}", headers=auth("viewer-1"))

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "VIEWER"
    assert body["member_count"] == 2
    assert body["item_count"] == 1


async def test_non_member_is_forbidden(client, auth, event):
    response = await client.get(f"{API}/events/{event.id}", headers=auth("stranger"))
    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have access to this event"


async def test_update_requires_owner(client, auth, event, add_member):
    await add_member(event.id, "admin-1", "ADMIN")

    denied = await client.put(f"{API}/events/{event.id}", json={"name": "X"}, headers=auth("admin-1"))
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Only event owners can perform this action"

    ok = await client.put(f"{API}/events/{event.id}", json={"description": "Updated"}, headers=auth())
    assert ok.status_code == 200
    assert ok.json()["description"] == "Updated"
    assert ok.json()["name"] == "Test Event"


async def test_delete_cascades(client, auth, event, make_item, make_batch, db):
    from sqlalchemy import func, select

    from db.database import Batch, EventMember, Item

    item = await make_item(event.id)
    await make_batch(item, 5)

    response = await client.delete(f"{API}/events/{event.id}", headers=auth())

    assert response.status_code == 200
    assert response.json() == {"message": "Event deleted successfully"}
    for model in (EventMember, Item, Batch):
        count = (await db.execute(select(func.count()).select_from(model))).scalar_one()
        assert count == 0


class TestEventIdResolution:
    async def test_missing_event_id(self, client, auth):
        response = await client.get(f"{API}/items", headers=auth())
        assert response.status_code == 400
        assert response.json()["detail"] == (
            "Event ID is required (provide in URL, x-event-id header, query param, or body)"
        )

    async def test_malformed_event_id(self, client, auth):
        response = await client.get(f"{API}/items", headers=auth(x_event_id="nope"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid event ID"

    async def test_header_wins_over_query(self, client, auth, event):
        response = await client.get(
            f"{API}/items",
            params={"event_id": str(uuid.uuid4())},
            headers=auth(OWNER_ID, x_event_id=str(event.id)),
        )
        assert response.status_code == 200
