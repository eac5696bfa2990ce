"""Suppliers, API keys, AI routes, the MCP endpoint and the dashboard."""

import json
import uuid

import httpx
import openai
import pytest

from db.database import Item
from services.mcp import McpSession

API = "/api/v1"


def rate_limit_error(retry_after: str) -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, headers={"retry-after": retry_after}, request=request)
    return openai.RateLimitError("rate limited", response=response, body=None)


class TestSuppliers:
    async def test_crud(self, client, auth):
        created = await client.post(
            f"{API}/suppliers",
            json={"name": " Fresh Farms ", "contact_email": "", "lead_time_days": 3},
            headers=auth(),
        )
        assert created.status_code == 201
        supplier = created.json()
        assert supplier["name"] == "Fresh Farms"
        assert supplier["contact_email"] is None

        updated = await client.put(
            f"{API}/suppliers/{supplier['id']}",
            json={"contact_email": "orders@farms.example", "is_active": False},
            headers=auth(),
        )
        assert updated.json()["contact_email"] == "orders@farms.example"
        assert updated.json()["is_active"] is False

        blank = await client.put(f"{API}/suppliers/{supplier['id']}", json={"name": "   "}, headers=auth())
        assert blank.status_code == 400

        deleted = await client.delete(f"{API}/suppliers/{supplier['id']}", headers=auth())
        assert deleted.json() == {"message": "Supplier deleted successfully"}

    async def test_list_counts_items_and_sorts_by_name(self, client, auth, event, make_supplier, make_item):
        zed = await make_supplier("zed linens")
        await make_supplier("Acme", is_active=False)
        await make_item(event.id, supplier_id=zed.id)
        await make_item(event.id, supplier_id=zed.id)

        listed = await client.get(f"{API}/suppliers", headers=auth())
        assert [(s["name"], s["item_count"]) for s in listed.json()["data"]] == [("Acme", 0), ("zed linens", 2)]

        active = await client.get(f"{API}/suppliers", params={"is_active": True}, headers=auth())
        assert [s["name"] for s in active.json()["data"]] == ["zed linens"]

    async def test_detail_lists_items(self, client, auth, event, make_supplier, make_item):
        supplier = await make_supplier()
        await make_item(event.id, name="Napkins", supplier_id=supplier.id)
        await make_item(event.id, name="cups", supplier_id=supplier.id)

        response = await client.get(f"{API}/suppliers/{supplier.id}", headers=auth())

        assert [i["name"] for i in response.json()["items"]] == ["cups", "Napkins"]

    async def test_delete_blocked_by_items(self, client, auth, event, make_supplier, make_item):
        supplier = await make_supplier()
        await make_item(event.id, supplier_id=supplier.id)

        response = await client.delete(f"{API}/suppliers/{supplier.id}", headers=auth())

        assert response.status_code == 400
        assert response.json()["detail"] == (
            "Cannot delete supplier with 1 associated item(s). Please remove or reassign items first."
        )

    async def test_missing(self, client, auth):
        response = await client.get(f"{API}/suppliers/{uuid.uuid4()}", headers=auth())
        assert response.status_code == 404


class TestApiKeys:
    async def test_create_list_revoke(self, client, auth):
        created = await client.post(f"{API}/api-keys", json={"name": "Claude", "expires_in_days": 30},
                                    headers=auth())
        assert created.status_code == 201
        body = created.json()
        assert body["key"]
        assert body["expires_at"] is not None
        assert body["message"] == "Save this API key securely. It will not be shown again!"

        listed = await client.get(f"{API}/api-keys", headers=auth())
        assert [k["name"] for k in listed.json()] == ["Claude"]
        assert "key" not in listed.json()[0]
        assert "key_hash" not in listed.json()[0]

        other_user = await client.delete(f"{API}/api-keys/{body['id']}", headers=auth("someone-else"))
        assert other_user.status_code == 404
        assert other_user.json()["detail"] == "API key not found"

        revoked = await client.delete(f"{API}/api-keys/{body['id']}", headers=auth())
        assert revoked.status_code == 200
        listed = await client.get(f"{API}/api-keys", headers=auth())
        assert listed.json()[0]["is_active"] is False


class TestAIRoutes:
    async def test_health_ok_and_down(self, client, auth, fake_ai):
        ok = await client.get(f"{API}/ai/health", headers=auth())
        assert ok.status_code == 200

        fake_ai.health = {"status": "error", "message": "OpenAI API key not configured"}
        down = await client.get(f"{API}/ai/health", headers=auth())
        assert down.status_code == 503
        assert down.json()["message"] == "OpenAI API key not configured"

    async def test_semantic_search_scopes_to_memberships(self, client, auth, event, make_event, make_item,
                                                         monkeypatch):
        second = await make_event("Second")
        await make_event("Not Mine", owner_id="someone-else")
        item = await make_item(event.id, name="Wireless Mic")
        seen = {}

        async def fake_search(db, embedding, event_ids, limit, threshold):
            seen["event_ids"] = set(event_ids)
            seen["limit"], seen["threshold"] = limit, threshold
            return [(item, 0.912345)]

        monkeypatch.setattr("routers.semantic.search_similar_items", fake_search)

        response = await client.post(f"{API}/items/semantic-search", json={"query": "microphone", "limit": 5},
                                     headers=auth())

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["results"][0]["name"] == "Wireless Mic"
        assert body["results"][0]["similarity"] == 0.9123
        assert seen == {"event_ids": {event.id, second.id}, "limit": 5, "threshold": 0.7}

    async def test_semantic_search_foreign_event(self, client, auth, make_event):
        theirs = await make_event("Theirs", owner_id="someone-else")

        response = await client.post(
            f"{API}/items/semantic-search", json={"query": "mic", "event_id": str(theirs.id)}, headers=auth()
        )

        assert response.status_code == 403

    async def test_semantic_search_requires_auth(self, client):
        response = await client.post(f"{API}/items/semantic-search", json={"query": "mic"})
        assert response.status_code == 401

    async def test_batch_generate_embeddings(self, client, auth, event, make_item, db):
        first = await make_item(event.id, name="Tent")
        await make_item(event.id, name="Lantern")

        response = await client.post(f"{API}/items/batch-generate-embeddings", json={"event_id": str(event.id)},
                                     headers=auth())

        assert response.json() == {"success": True, "processed": 2, "message": "Generated embeddings for 2 items"}
        await db.refresh(first)
        assert first.vector_desc is not None

        again = await client.post(f"{API}/items/batch-generate-embeddings", json={"event_id": str(event.id)},
                                  headers=auth())
        assert again.json()["processed"] == 0
        assert again.json()["message"] == "No items need embeddings"

    async def test_generate_single_embedding_requires_editor(self, client, auth, event, make_item, add_member):
        item = await make_item(event.id)
        await add_member(event.id, "viewer-1", "VIEWER")

        denied = await client.post(f"{API}/items/{item.id}/generate-embedding", headers=auth("viewer-1"))
        assert denied.status_code == 403

        ok = await client.post(f"{API}/items/{item.id}/generate-embedding", headers=auth())
        assert ok.status_code == 200
        assert ok.json()["item_id"] == str(item.id)

    async def test_auto_categorize_and_cache(self, client, auth, fake_ai):
        payload = {"name": "Folding Chair", "description": "Metal"}

        first = await client.post(f"{API}/items/auto-categorize", json=payload, headers=auth())
        second = await client.post(f"{API}/items/auto-categorize", json=payload, headers=auth())

        assert first.json() == {"category": "FURNITURE", "confidence": 0.9, "reasoning": "Chairs are furniture"}
        assert second.json() == first.json()
        assert fake_ai.categorize_calls == 1

    async def test_auto_categorize_short_input(self, client, auth, fake_ai):
        response = await client.post(f"{API}/items/auto-categorize", json={"name": "ab"}, headers=auth())

        assert response.json()["category"] is None
        assert response.json()["confidence"] == 0.0
        assert fake_ai.categorize_calls == 0

    @pytest.mark.parametrize(
        "retry_after, detail",
        [
            ("125", "AI suggestions are cooling down. Try again in about 3 minutes."),
            ("20", "AI suggestions are cooling down. Try again in about a minute."),
        ],
    )
    async def test_auto_categorize_rate_limited(self, client, auth, fake_ai, retry_after, detail):
        fake_ai.categorize_error = rate_limit_error(retry_after)

        response = await client.post(f"{API}/items/auto-categorize", json={"name": "Banquet Table"},
                                     headers=auth())

        assert response.status_code == 429
        assert response.json()["detail"] == detail

    async def test_parse_query_tokens(self, client, auth, fake_ai):
        fake_ai.parsed_query = {"search_term": "chairs", "category": "FURNITURE", "is_alcohol": "yes"}

        response = await client.post(f"{API}/items/parse-query", json={"query": "all the chairs"}, headers=auth())

        body = response.json()
        assert body["is_alcohol"] is None
        assert body["tokens"] == [
            {"type": "category", "value": "FURNITURE", "label": "Furniture"},
            {"type": "keyword", "value": "chairs", "label": "chairs"},
        ]


class TestMcp:
    @pytest.fixture
    async def api_key(self, client, auth):
        response = await client.post(f"{API}/api-keys", json={"name": "assistant"}, headers=auth())
        return response.json()["key"]

    async def rpc(self, client, key, method, params=None, **headers):
        body = {"jsonrpc": "2.0", "id": 7, "method": method}
        if params is not None:
            body["params"] = params
        headers = {k.replace("_", "-"): v for k, v in headers.items()}
        if key:
            headers["x-api-key"] = key
        response = await client.post("/mcp", json=body, headers=headers)
        assert response.status_code == 200
        assert response.json()["jsonrpc"] == "2.0"
        assert response.json()["id"] == 7
        return response.json()

    async def test_invalid_key(self, client):
        reply = await self.rpc(client, "wrong", "tools/list")
        assert reply["error"] == {"code": -32603, "message": "Invalid API key"}

    async def test_missing_key(self, client):
        reply = await self.rpc(client, None, "tools/list")
        assert reply["error"]["message"] == "Missing x-api-key header"

    async def test_tools_list(self, client, api_key):
        reply = await self.rpc(client, api_key, "tools/list")
        names = [t["name"] for t in reply["result"]["tools"]]
        assert names == [
            "list_inventory_items",
            "get_item_details",
            "create_audit_log",
            "get_inventory_stats",
            "search_items_by_name",
        ]

    async def test_unknown_method_and_tool(self, client, api_key):
        reply = await self.rpc(client, api_key, "prompts/list")
        assert reply["error"]["code"] == -32601

        reply = await self.rpc(client, api_key, "tools/call", {"name": "drop_tables"})
        assert reply["error"] == {"code": -32602, "message": "Unknown tool: drop_tables"}

    async def test_arguments_must_be_an_object(self, client, api_key, event):
        reply = await self.rpc(
            client, api_key, "tools/call",
            {"name": "get_inventory_stats", "arguments": ["x"]},
            x_event_id=str(event.id),
        )
        assert reply["error"] == {"code": -32602, "message": "arguments must be an object"}

    async def test_unexpected_failure_is_a_jsonrpc_error(self, client, api_key, event, monkeypatch):
        async def broken(self, event_id, args):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(McpSession, "get_inventory_stats", broken)

        reply = await self.rpc(
            client, api_key, "tools/call", {"name": "get_inventory_stats"}, x_event_id=str(event.id)
        )

        assert reply["error"] == {"code": -32603, "message": "Internal error"}
        assert "result" not in reply

    async def test_tool_needs_event_context(self, client, api_key):
        reply = await self.rpc(client, api_key, "tools/call", {"name": "list_inventory_items"})
        assert reply["error"]["code"] == -32602
        assert reply["error"]["message"].startswith("No event context available")

    async def test_list_items_with_header_context(self, client, api_key, event, make_item):
        await make_item(event.id, name="Stage Light", category="AV_EQUIPMENT")
        await make_item(event.id, name="Chair")

        reply = await self.rpc(
            client, api_key, "tools/call",
            {"name": "list_inventory_items", "arguments": {"category": "AV_EQUIPMENT", "contextId": "run-1"}},
            x_event_id=str(event.id),
        )

        result = reply["result"]
        assert result["count"] == 1
        assert result["items"][0]["name"] == "Stage Light"
        assert result["context_id"] == "run-1"

    async def test_foreign_event_is_denied(self, client, api_key, make_event):
        theirs = await make_event("Theirs", owner_id="someone-else")

        reply = await self.rpc(
            client, api_key, "tools/call",
            {"name": "get_inventory_stats", "arguments": {"eventId": str(theirs.id)}},
        )

        assert reply["error"]["code"] == -32603
        assert reply["error"]["message"] == "Access denied to the specified event"

    async def test_create_audit_log(self, client, api_key, event, make_item, db):
        item = await make_item(event.id, quantity=10)

        reply = await self.rpc(
            client, api_key, "tools/call",
            {"name": "create_audit_log", "arguments": {
                "eventId": str(event.id), "itemId": str(item.id), "actualQuantity": 7, "expectedQuantity": 10,
            }},
        )

        result = reply["result"]
        assert result["message"] == "Audit completed: discrepancy of 3 missing items"
        assert result["audit"]["discrepancy"] == -3
        assert result["event_name"] == "Test Event"
        await db.refresh(item)
        assert item.last_audit is not None

    async def test_get_item_details_checks_context(self, client, api_key, event, make_event, make_item):
        other = await make_event("Other")
        item = await make_item(other.id)

        reply = await self.rpc(
            client, api_key, "tools/call",
            {"name": "get_item_details", "arguments": {"itemId": str(item.id)}},
            x_event_id=str(event.id),
        )
        assert reply["error"]["message"] == "Item not found in current event context"

        reply = await self.rpc(
            client, api_key, "tools/call", {"name": "get_item_details", "arguments": {"itemId": str(item.id)}}
        )
        assert reply["result"]["item"]["id"] == str(item.id)
        assert reply["result"]["event_name"] == "Other"

    async def test_search_and_stats(self, client, api_key, event, make_item):
        await make_item(event.id, name="Red Napkin", quantity=4, category="DECOR")
        await make_item(event.id, name="Blue Napkin", quantity=6, category="DECOR")
        await make_item(event.id, name="Speaker", quantity=1, category="AV_EQUIPMENT")
        ctx = {"x_event_id": str(event.id)}

        found = await self.rpc(client, api_key, "tools/call",
                               {"name": "search_items_by_name", "arguments": {"query": "napkin"}}, **ctx)
        assert [i["name"] for i in found["result"]["items"]] == ["Blue Napkin", "Red Napkin"]

        stats = await self.rpc(client, api_key, "tools/call", {"name": "get_inventory_stats"}, **ctx)
        assert stats["result"]["total_items"] == 3
        assert stats["result"]["total_quantity"] == 11
        assert stats["result"]["items_by_category"] == [
            {"category": "AV_EQUIPMENT", "count": 1, "quantity": 1},
            {"category": "DECOR", "count": 2, "quantity": 10},
        ]

    async def test_resources(self, client, api_key, event, make_item):
        await make_item(event.id, name="Banner")

        listed = await self.rpc(client, api_key, "resources/list")
        assert listed["result"]["resources"][0]["uri"] == "inventory://events/list/items"

        uri = f"inventory://events/{event.id}/items"
        read = await self.rpc(client, api_key, "resources/read", {"uri": uri})
        content = read["result"]["contents"][0]
        assert content["uri"] == uri
        assert content["mimeType"] == "application/json"
        assert json.loads(content["text"])["count"] == 1

        bad = await self.rpc(client, api_key, "resources/read", {"uri": "file:///etc/passwd"})
        assert bad["error"]["code"] == -32602

    async def test_revoked_key_is_rejected(self, client, auth, api_key):
        keys = await client.get(f"{API}/api-keys", headers=auth())
        await client.delete(f"{API}/api-keys/{keys.json()[0]['id']}", headers=auth())

        reply = await self.rpc(client, api_key, "tools/list")

        assert reply["error"]["message"] == "Invalid API key"


async def test_dashboard(client, auth, event, make_item, make_batch, make_supplier):
    supplier = await make_supplier()
    low = await make_item(event.id, name="Ice", quantity=2, reorder_point=5, supplier_id=supplier.id)
    await make_batch(low, 2, expires_in_days=2, lot_number="ICE-1")
    await make_item(event.id, name="Tables", quantity=40, reorder_point=5)

    response = await client.get(f"{API}/dashboard", headers=auth(x_event_id=str(event.id)))

    assert response.status_code == 200
    body = response.json()
    assert body["event_id"] == str(event.id)
    assert [r["name"] for r in body["low_stock"]] == ["Ice"]
    assert body["expiring_soon"][0]["lot_number"] == "ICE-1"
    assert {r["supplier_name"] for r in body["supplier_performance"]} == {"Acme Supply", "Unassigned"}
    assert body["waste_summary"]["total_waste_quantity"] == 0


async def test_dashboard_requires_membership(client, auth, event):
    response = await client.get(f"{API}/dashboard", headers=auth("stranger", x_event_id=str(event.id)))
    assert response.status_code == 403


async def test_item_embedding_column_survives_update(client, auth, event, make_item, db):
    item = await make_item(event.id)
    await client.post(f"{API}/items/{item.id}/generate-embedding", headers=auth())

    await client.put(f"{API}/items/{item.id}", json={"quantity": 3}, headers=auth())

    refreshed = await db.get(Item, item.id, populate_existing=True)
    assert refreshed.vector_desc is not None
