import logging
from typing import Any, Dict, Literal, Optional, Union

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import ApiKeyError, resolve_api_key
from db.database import get_async_session
from services.mcp import INTERNAL_ERROR, McpError, McpSession

logger = logging.getLogger(__name__)

router = APIRouter()


class McpRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    id: Optional[Union[int, str]] = None
    method: str
    params: Optional[Dict[str, Any]] = None


@router.post("")
async def mcp_endpoint(
    payload: McpRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
):
    """JSON-RPC 2.0 entry point for AI assistants; authenticated with x-api-key."""
    try:
        try:
            key = await resolve_api_key(db, request.headers.get("x-api-key"))
        except ApiKeyError as e:
            raise McpError(INTERNAL_ERROR, str(e))

        session = McpSession(db, key.user_id)
        header_event = request.headers.get("x-event-id")
        if header_event:
            session.event_id = await session.check_event(header_event)

        result = await session.dispatch(payload.method, payload.params)
    except McpError as e:
        logger.info(f"MCP {payload.method} failed: {e.code} {e.message}")
        return {"jsonrpc": "2.0", "id": payload.id, "error": e.to_dict()}
    except Exception:
        logger.exception(f"MCP {payload.method} crashed")
        return {"jsonrpc": "2.0", "id": payload.id, "error": {"code": INTERNAL_ERROR, "message": "Internal error"}}

    return {"jsonrpc": "2.0", "id": payload.id, "result": result}
