from datetime import datetime, timezone

from fastapi import APIRouter

from core.config import settings

router = APIRouter()


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.api_version,
    }
