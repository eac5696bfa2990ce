import jwt
from starlette.requests import Request

from conftest import TOKEN_SIGNING_KEY, make_token
from core.rate_limit import get_user_or_ip


def request_with(authorization: str = None) -> Request:
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": ("10.0.0.9", 5000)})


def test_keys_by_user_when_token_is_valid():
    assert get_user_or_ip(request_with(f"Bearer {make_token('u1')}")) == "user:u1"


def test_falls_back_to_ip_without_token():
    assert get_user_or_ip(request_with()) == "10.0.0.9"


def test_falls_back_to_ip_on_malformed_expiry():
    token = jwt.encode({"sub": "u1", "project_id": "test-project", "exp": "soon"}, TOKEN_SIGNING_KEY, algorithm="HS256")
    assert get_user_or_ip(request_with(f"Bearer {token}")) == "10.0.0.9"
