"""
Authentication for the API.

Two credentials are accepted:
- Bearer JWTs issued by the hosted identity provider (users of the web app).
  Claims used: sub, email, name, project_id, exp.
- x-api-key headers for AI assistants (MCP); keys are bcrypt-hashed at rest.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import bcrypt
import jwt
from fastapi import HTTPException, Request, status
from jwt.exceptions import InvalidSignatureError, PyJWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from core.config import settings
from db.database import ApiKey as ApiKeyModel, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class TokenError(Exception):
    pass


class ApiKeyError(Exception):
    pass


def decode_token(token: str) -> dict:
    """Decode a provider token. Signature is verified only when AUTH_JWT_SECRET is configured."""
    try:
        if settings.auth_jwt_secret:
            return jwt.decode(
                token,
                settings.auth_jwt_secret,
                algorithms=settings.auth_jwt_algorithms,
                options={"verify_exp": False, "verify_aud": False},
            )
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
        )
    except InvalidSignatureError as e:
        raise TokenError("Invalid token signature") from e
    except PyJWTError as e:
        raise TokenError("Invalid token format") from e


def user_from_token(token: str) -> AuthUser:
    payload = decode_token(token)
    if not isinstance(payload, dict):
        raise TokenError("Invalid token format")

    exp = payload.get("exp")
    if exp is not None:
        try:
            expired = float(exp) < time.time()
        except (TypeError, ValueError):
            raise TokenError("Invalid token format")
        if expired:
            raise TokenError("Token expired")

    if payload.get("project_id") != settings.auth_project_id:
        raise TokenError("Invalid token project")

    if not payload.get("sub"):
        raise TokenError("Invalid token format")

    return AuthUser(
        id=str(payload["sub"]),
        email=payload.get("email") or None,
        display_name=payload.get("name") or None,
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None


async def get_current_user(request: Request) -> AuthUser:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        user = user_from_token(token)
    except TokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(request: Request) -> Optional[AuthUser]:
    token = _bearer_token(request)
    if not token:
        return None
    try:
        return user_from_token(token)
    except TokenError as e:
        logger.debug(f"Optional auth ignored token: {e}")
        return None


def hash_api_key(raw_key: str) -> str:
    return bcrypt.hashpw(raw_key.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def _key_matches(raw_key: str, key_hash: str) -> bool:
    try:
        return bcrypt.checkpw(raw_key.encode("utf-8"), key_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


async def resolve_api_key(db: AsyncSession, raw_key: Optional[str]) -> ApiKeyModel:
    """Match a raw x-api-key against active keys and stamp last_used; raises ApiKeyError."""
    if not raw_key:
        raise ApiKeyError("Missing x-api-key header")

    res = await db.execute(select(ApiKeyModel).where(ApiKeyModel.is_active.is_(True)))
    matched = None
    for key in res.scalars().all():
        if await run_in_threadpool(_key_matches, raw_key, key.key_hash):
            matched = key
            break

    if not matched:
        raise ApiKeyError("Invalid API key")

    if matched.expires_at and matched.expires_at < utcnow():
        raise ApiKeyError("API key has expired")

    matched.last_used = utcnow()
    await db.commit()
    return matched
