"""
JSON-RPC 2.0 handlers for AI assistants (Model Context Protocol).

Methods: tools/list, tools/call, resources/list, resources/read.
Every failure is an McpError carrying a JSON-RPC error code; the router turns
it into an error object on an HTTP 200 response.
"""

import json
import logging
import re
import uuid
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.event_access import get_member_role
from db.database import (
    utcnow,
    AuditLog as AuditLogModel,
    Event as EventModel,
    Item as ItemModel,
)
from schemas.audits import AuditRead
from schemas.items import ItemRead

logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

NO_EVENT_CONTEXT = "No event context available. Please specify an eventId or set x-event-id header."
RESOURCE_ROW_LIMIT = 100

_URI_RE = re.compile(r"^inventory://events/([^/]+)/(.+)$")

_EVENT_ID_PROP = {
    "type": "string",
    "description": "Event ID (optional, uses current event context if not provided)",
}

TOOLS = [
    {
        "name": "list_inventory_items",
        "description": "Get a list of inventory items with optional filters (filtered by current event)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "eventId": _EVENT_ID_PROP,
                "category": {
                    "type": "string",
                    "enum": ["FURNITURE", "AV_EQUIPMENT", "DECOR", "SUPPLIES", "FOOD_BEVERAGE", "OTHER"],
                    "description": "Filter by category",
                },
                "location": {"type": "string", "description": "Filter by location (partial match)"},
                "search": {"type": "string", "description": "Search in item names"},
                "limit": {
                    "type": "number",
                    "description": "Maximum number of items to return (default: 20, max: 100)",
                    "default": 20,
                },
            },
        },
    },
    {
        "name": "get_item_details",
        "description": "Get detailed information about a specific inventory item (verifies event access)",
        "inputSchema": {
            "type": "object",
            "required": ["itemId"],
            "properties": {
                "itemId": {"type": "string", "description": "The UUID of the item"},
                "eventId": _EVENT_ID_PROP,
            },
        },
    },
    {
        "name": "create_audit_log",
        "description": "Create an audit log entry for an inventory item (verifies event access)",
        "inputSchema": {
            "type": "object",
            "required": ["itemId", "actualQuantity", "expectedQuantity"],
            "properties": {
                "itemId": {"type": "string", "description": "The UUID of the item being audited"},
                "eventId": _EVENT_ID_PROP,
                "actualQuantity": {"type": "number", "description": "The actual counted quantity"},
                "expectedQuantity": {"type": "number", "description": "The expected quantity from records"},
                "notes": {"type": "string", "description": "Optional notes about the audit"},
                "contextId": {"type": "string", "description": "Optional context ID for tracking MCP sessions"},
            },
        },
    },
    {
        "name": "get_inventory_stats",
        "description": "Get inventory and audit statistics for dashboard (filtered by current event)",
        "inputSchema": {"type": "object", "properties": {"eventId": _EVENT_ID_PROP}},
    },
    {
        "name": "search_items_by_name",
        "description": "Search for items by name (fuzzy match, filtered by current event)",
        "inputSchema": {
            "type": "object",
            "required": ["query"],
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "eventId": _EVENT_ID_PROP,
                "limit": {"type": "number", "description": "Maximum results (default: 10)", "default": 10},
            },
        },
    },
]


class McpError(Exception):
    def __init__(self, code: int, message: str, data: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        err = {"code": self.code, "message": self.message}
        if self.data is not None:
            err["data"] = self.data
        return err


def _item_json(item: ItemModel) -> dict:
    return ItemRead.model_validate(item).model_dump(mode="json")


def _as_uuid(raw: Any, message: str, code: int = INVALID_PARAMS) -> uuid.UUID:
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        raise McpError(code, message, {"value": str(raw)})


def _limit(raw: Any, default: int, maximum: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(value or default, maximum))


def _quantity(args: dict, key: str) -> int:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise McpError(INVALID_PARAMS, f"{key} must be a number")
    return int(value)


class McpSession:
    """One authenticated JSON-RPC request: the key owner plus an optional event context."""

    def __init__(self, db: AsyncSession, user_id: str, event_id: Optional[uuid.UUID] = None):
        self.db = db
        self.user_id = user_id
        self.event_id = event_id

    async def check_event(self, raw_event_id: Any) -> uuid.UUID:
        event_id = _as_uuid(raw_event_id, "Access denied to the specified event", INTERNAL_ERROR)
        if not await get_member_role(self.db, event_id, self.user_id):
            raise McpError(INTERNAL_ERROR, "Access denied to the specified event", {"eventId": str(raw_event_id)})
        return event_id

    async def dispatch(self, method: str, params: Optional[dict]) -> dict:
        params = params or {}
        if method == "tools/list":
            return {"tools": TOOLS}
        if method == "tools/call":
            return await self.call_tool(params.get("name"), params.get("arguments") or {})
        if method == "resources/list":
            return await self.list_resources()
        if method == "resources/read":
            return await self.read_resource(params.get("uri"))
        raise McpError(METHOD_NOT_FOUND, f"Method not found: {method}")

    # tools

    async def call_tool(self, name: Optional[str], args: dict) -> dict:
        if not isinstance(args, dict):
            raise McpError(INVALID_PARAMS, "arguments must be an object")
        handlers = {
            "list_inventory_items": self.list_inventory_items,
            "get_item_details": self.get_item_details,
            "create_audit_log": self.create_audit_log,
            "get_inventory_stats": self.get_inventory_stats,
            "search_items_by_name": self.search_items_by_name,
        }
        handler = handlers.get(name or "")
        if handler is None:
            raise McpError(INVALID_PARAMS, f"Unknown tool: {name}")

        event_id = self.event_id
        if args.get("eventId"):
            event_id = await self.check_event(args["eventId"])
        logger.info(f"MCP tool {name} called by {self.user_id} (event {event_id})")
        return await handler(event_id, args)

    def _require_event(self, event_id: Optional[uuid.UUID]) -> uuid.UUID:
        if event_id is None:
            raise McpError(INVALID_PARAMS, NO_EVENT_CONTEXT)
        return event_id

    async def _event_name(self, event_id: uuid.UUID) -> str:
        res = await self.db.execute(select(EventModel.name).where(EventModel.id == event_id))
        return res.scalar_one_or_none() or "Unknown Event"

    async def list_inventory_items(self, event_id: Optional[uuid.UUID], args: dict) -> dict:
        event_id = self._require_event(event_id)
        stmt = select(ItemModel).where(ItemModel.event_id == event_id)
        if args.get("category"):
            stmt = stmt.where(ItemModel.category == args["category"])
        if args.get("location"):
            stmt = stmt.where(ItemModel.location.ilike(f"%{args['location']}%"))
        if args.get("search"):
            stmt = stmt.where(ItemModel.name.ilike(f"%{args['search']}%"))
        stmt = stmt.order_by(ItemModel.name.asc()).limit(_limit(args.get("limit"), 20, 100))

        items = (await self.db.execute(stmt)).scalars().all()
        return {
            "items": [_item_json(i) for i in items],
            "count": len(items),
            "event_id": str(event_id),
            "context_id": args.get("contextId"),
        }

    async def get_item_details(self, event_id: Optional[uuid.UUID], args: dict) -> dict:
        item_id = _as_uuid(args.get("itemId"), "Item not found")
        res = await self.db.execute(
            select(ItemModel).options(selectinload(ItemModel.event)).where(ItemModel.id == item_id)
        )
        item = res.scalar_one_or_none()
        if not item:
            raise McpError(INVALID_PARAMS, "Item not found", {"itemId": str(item_id)})

        if event_id is not None and item.event_id != event_id:
            raise McpError(INVALID_PARAMS, "Item not found in current event context", {"itemId": str(item_id)})
        if event_id is None and not await get_member_role(self.db, item.event_id, self.user_id):
            raise McpError(INVALID_PARAMS, "Access denied to this item", {"itemId": str(item_id)})

        audits = await self.db.execute(
            select(AuditLogModel)
            .where(AuditLogModel.item_id == item.id)
            .order_by(AuditLogModel.timestamp.desc())
            .limit(10)
        )
        data = _item_json(item)
        data["audit_logs"] = [AuditRead.model_validate(a).model_dump(mode="json") for a in audits.scalars().all()]
        return {
            "item": data,
            "event_name": item.event.name if item.event else None,
            "context_id": args.get("contextId"),
        }

    async def create_audit_log(self, event_id: Optional[uuid.UUID], args: dict) -> dict:
        event_id = self._require_event(event_id)
        item_id = _as_uuid(args.get("itemId"), "Item not found")
        actual = _quantity(args, "actualQuantity")
        expected = _quantity(args, "expectedQuantity")

        res = await self.db.execute(
            select(ItemModel).options(selectinload(ItemModel.event)).where(ItemModel.id == item_id)
        )
        item = res.scalar_one_or_none()
        if not item:
            raise McpError(INVALID_PARAMS, "Item not found", {"itemId": str(item_id)})
        if item.event_id != event_id:
            raise McpError(
                INVALID_PARAMS,
                "Item does not belong to the current event",
                {"itemId": str(item_id), "eventId": str(item.event_id)},
            )

        now = utcnow()
        discrepancy = actual - expected
        audit = AuditLogModel(
            item_id=item.id,
            event_id=event_id,
            actual_quantity=actual,
            expected_quantity=expected,
            discrepancy=discrepancy,
            notes=args.get("notes"),
            context_id=args.get("contextId"),
            created_by=self.user_id,
            timestamp=now,
        )
        self.db.add(audit)
        item.last_audit = now
        await self.db.commit()
        await self.db.refresh(audit)

        if discrepancy == 0:
            message = "Audit completed: quantities match"
        else:
            direction = "extra" if discrepancy > 0 else "missing"
            message = f"Audit completed: discrepancy of {abs(discrepancy)} {direction} items"
        return {
            "audit": AuditRead.model_validate(audit).model_dump(mode="json"),
            "event_name": item.event.name if item.event else None,
            "message": message,
            "context_id": args.get("contextId"),
        }

    async def get_inventory_stats(self, event_id: Optional[uuid.UUID], args: dict) -> dict:
        event_id = self._require_event(event_id)
        since = utcnow() - timedelta(days=30)

        res = await self.db.execute(
            select(func.count(ItemModel.id), func.coalesce(func.sum(ItemModel.quantity), 0)).where(
                ItemModel.event_id == event_id
            )
        )
        total_items, total_quantity = res.one()

        total_audits = (
            await self.db.execute(select(func.count(AuditLogModel.id)).where(AuditLogModel.event_id == event_id))
        ).scalar_one()
        recent_discrepancies = (
            await self.db.execute(
                select(func.count(AuditLogModel.id)).where(
                    AuditLogModel.event_id == event_id,
                    AuditLogModel.discrepancy != 0,
                    AuditLogModel.timestamp >= since,
                )
            )
        ).scalar_one()

        res = await self.db.execute(
            select(ItemModel.category, func.count(ItemModel.id), func.coalesce(func.sum(ItemModel.quantity), 0))
            .where(ItemModel.event_id == event_id)
            .group_by(ItemModel.category)
            .order_by(ItemModel.category)
        )
        by_category = [
            {"category": category, "count": int(count), "quantity": int(quantity)}
            for category, count, quantity in res.all()
        ]

        return {
            "event_id": str(event_id),
            "event_name": await self._event_name(event_id),
            "total_items": int(total_items),
            "total_quantity": int(total_quantity),
            "total_audits": int(total_audits),
            "recent_discrepancies": int(recent_discrepancies),
            "items_by_category": by_category,
        }

    async def search_items_by_name(self, event_id: Optional[uuid.UUID], args: dict) -> dict:
        event_id = self._require_event(event_id)
        query = str(args.get("query") or "").strip()
        if not query:
            raise McpError(INVALID_PARAMS, "query is required")

        res = await self.db.execute(
            select(ItemModel)
            .where(ItemModel.event_id == event_id, ItemModel.name.ilike(f"%{query}%"))
            .order_by(ItemModel.name.asc())
            .limit(_limit(args.get("limit"), 10, 50))
        )
        items = res.scalars().all()
        return {
            "items": [_item_json(i) for i in items],
            "count": len(items),
            "event_id": str(event_id),
            "event_name": await self._event_name(event_id),
            "query": query,
        }

    # resources

    async def list_resources(self) -> dict:
        if self.event_id:
            event_name = await self._event_name(self.event_id)
            scope = str(self.event_id)
            suffix = f" for {event_name}"
        else:
            event_name = "Available Events"
            scope = "list"
            suffix = ""

        def resource(kind: str, title: str, description: str) -> dict:
            return {
                "uri": f"inventory://events/{scope}/{kind}",
                "name": f"{title} - {event_name}",
                "mimeType": "application/json",
                "description": f"{description}{suffix}",
            }

        return {
            "resources": [
                resource("items", "Inventory Items", "Complete list of inventory items"),
                resource("audits", "Audit Logs", "Audit log entries"),
                resource("stats", "Statistics", "Inventory and audit statistics"),
            ]
        }

    async def read_resource(self, uri: Optional[str]) -> dict:
        match = _URI_RE.match(uri or "")
        if not match:
            raise McpError(
                INVALID_PARAMS,
                f"Invalid URI format: {uri}. Expected: inventory://events/{{eventId}}/resource",
            )
        scope, kind = match.groups()
        if scope == "list":
            event_id = self.event_id
        else:
            event_id = await self.check_event(scope)
        if event_id is None:
            raise McpError(INVALID_PARAMS, "No event context available for resource access")

        if kind == "items":
            res = await self.db.execute(
                select(ItemModel)
                .where(ItemModel.event_id == event_id)
                .order_by(ItemModel.name.asc())
                .limit(RESOURCE_ROW_LIMIT)
            )
            rows = [_item_json(i) for i in res.scalars().all()]
            payload = {"event_id": str(event_id), "items": rows, "count": len(rows)}
        elif kind == "audits":
            res = await self.db.execute(
                select(AuditLogModel)
                .where(AuditLogModel.event_id == event_id)
                .order_by(AuditLogModel.timestamp.desc())
                .limit(RESOURCE_ROW_LIMIT)
            )
            rows = [AuditRead.model_validate(a).model_dump(mode="json") for a in res.scalars().all()]
            payload = {"event_id": str(event_id), "audits": rows, "count": len(rows)}
        elif kind == "stats":
            payload = await self.get_inventory_stats(event_id, {})
        else:
            raise McpError(INVALID_PARAMS, f"Unknown resource: {kind}")

        return {"contents": [{"uri": uri, "mimeType": "application/json", "text": json.dumps(payload, indent=2)}]}
