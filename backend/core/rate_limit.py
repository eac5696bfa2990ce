"""Shared rate limiter instance for use across route files."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from core.auth import TokenError, user_from_token
from core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)


def get_user_or_ip(request: Request) -> str:
    """Rate limit by user ID if authenticated, else by IP."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        try:
            user = user_from_token(auth.split(" ", 1)[1])
        except TokenError:
            return get_remote_address(request)
        return f"user:{user.id}"
    return get_remote_address(request)
