import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from core.config import settings
from core.logging_config import configure_logging
from core.rate_limit import limiter
from db.database import create_db_and_tables
from routers.api_keys import router as api_keys_router
from routers.audits import router as audits_router
from routers.batches import router as batches_router
from routers.dashboard import router as dashboard_router
from routers.events import router as events_router
from routers.health import router as health_router
from routers.invitations import router as invitations_router
from routers.items import router as items_router
from routers.mcp import router as mcp_router
from routers.members import router as members_router
from routers.semantic import router as semantic_router
from routers.suppliers import router as suppliers_router
from routers.waste import router as waste_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting EventForge API")
    await create_db_and_tables()
    yield
    logger.info("Shutting down EventForge API")


app = FastAPI(
    title="EventForge API",
    description="Multi-tenant event inventory: items, FIFO batches, audits, waste and AI search",
    version=settings.api_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-api-key", "x-event-id"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


api = settings.api_prefix

app.include_router(health_router, prefix=api, tags=["health"])

# Events and membership
app.include_router(events_router, prefix=f"{api}/events", tags=["events"])
app.include_router(members_router, prefix=f"{api}/events/{{event_id}}/members", tags=["members"])
app.include_router(invitations_router, prefix=api, tags=["invitations"])

# AI routes share the /items prefix; registered first so fixed paths win over /items/{item_id}
app.include_router(semantic_router, prefix=api, tags=["ai"])
app.include_router(items_router, prefix=f"{api}/items", tags=["items"])
app.include_router(batches_router, prefix=f"{api}/items", tags=["batches"])

app.include_router(audits_router, prefix=f"{api}/audits", tags=["audits"])
app.include_router(waste_router, prefix=f"{api}/waste", tags=["waste"])
app.include_router(suppliers_router, prefix=f"{api}/suppliers", tags=["suppliers"])
app.include_router(api_keys_router, prefix=f"{api}/api-keys", tags=["api-keys"])
app.include_router(dashboard_router, prefix=api, tags=["dashboard"])

# JSON-RPC for AI assistants, outside the versioned REST prefix
app.include_router(mcp_router, prefix="/mcp", tags=["mcp"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
