"""Unit tests for JWT decoding and the caller-identity dependency."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi import HTTPException, Request
from jose import jwt

from config.settings import settings
from src.shop_access.auth.dependencies import CallerIdentity, get_current_identity
from src.shop_access.auth.jwt_handler import create_access_token, decode_access_token
from src.shop_common.errors import InvalidCredentialsError


def test_access_token_contains_correct_claims() -> None:
    payload = jwt.get_unverified_claims(create_access_token("user-123"))
    assert payload["sub"] == "user-123"
    assert payload["type"] == "access"


def test_decode_valid_access_token() -> None:
    payload = decode_access_token(create_access_token("user-abc"))
    assert payload["sub"] == "user-abc"


def test_expired_token_rejected() -> None:
    with patch("src.shop_access.auth.jwt_handler._ACCESS_EXPIRE", timedelta(seconds=-1)):
        token = create_access_token("user-abc")
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)


def test_wrong_secret_rejected() -> None:
    token = jwt.encode({"sub": "user-abc", "type": "access"}, "not-the-secret", algorithm="HS256")
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)


def test_refresh_token_rejected() -> None:
    token = jwt.encode(
        {"sub": "user-abc", "type": "refresh"}, settings.JWT_SECRET, algorithm="HS256"
    )
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)


def test_missing_subject_rejected() -> None:
    token = jwt.encode({"type": "access"}, settings.JWT_SECRET, algorithm="HS256")
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)


def _request() -> Request:
    return Request({"type": "http", "headers": []})


async def test_identity_dependency() -> None:
    request = _request()
    identity = await get_current_identity(request, create_access_token("user-42"))
    assert identity == CallerIdentity(id="user-42")
    assert request.state.caller_id == "user-42"


async def test_identity_dependency_rejects_garbage() -> None:
    request = _request()
    with pytest.raises(HTTPException) as exc_info:
        await get_current_identity(request, "garbage")
    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}
    assert not hasattr(request.state, "caller_id")
