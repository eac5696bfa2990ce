import logging
import secrets
from datetime import timedelta
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from core.auth import AuthUser, get_current_user, hash_api_key
from db.database import get_async_session, utcnow, ApiKey as ApiKeyModel
from schemas.api_keys import ApiKeyCreate, ApiKeyCreated, ApiKeyRead
from schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[ApiKeyRead])
async def list_api_keys(
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    res = await db.execute(
        select(ApiKeyModel).where(ApiKeyModel.user_id == user.id).order_by(ApiKeyModel.created_at.desc())
    )
    return [ApiKeyRead.model_validate(k) for k in res.scalars().all()]


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    payload: ApiKeyCreate,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    raw_key = secrets.token_urlsafe(32)
    expires_at = utcnow() + timedelta(days=payload.expires_in_days) if payload.expires_in_days else None

    key = ApiKeyModel(
        user_id=user.id,
        name=payload.name.strip(),
        key_hash=await run_in_threadpool(hash_api_key, raw_key),
        expires_at=expires_at,
        is_active=True,
    )
    db.add(key)
    await db.commit()
    await db.refresh(key)
    logger.info(f"API key {key.id} created for {user.id}")
    return ApiKeyCreated(
        id=key.id,
        name=key.name,
        key=raw_key,
        expires_at=key.expires_at,
        message="Save this API key securely. It will not be shown again!",
    )


@router.delete("/{key_id}", response_model=MessageResponse)
async def revoke_api_key(
    key_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
):
    res = await db.execute(
        select(ApiKeyModel).where(ApiKeyModel.id == key_id, ApiKeyModel.user_id == user.id)
    )
    key = res.scalar_one_or_none()
    if not key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")

    key.is_active = False
    await db.commit()
    logger.info(f"API key {key_id} revoked by {user.id}")
    return MessageResponse(message="API key revoked successfully")
