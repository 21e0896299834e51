"""Shared test fixtures.

Settings are read at import time and the payment secrets have no defaults,
so test values are injected before anything under src/ is imported.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("PAYMENT_KEY_ID", "rzp_test_key")
os.environ.setdefault("PAYMENT_KEY_SECRET", "test-key-secret")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")

from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Redis stand-in for the rate limiter: every INCR reports the first hit."""
    redis = AsyncMock()
    redis.incr.return_value = 1
    monkeypatch.setattr("src.shop_common.redis_client._redis_pool", redis)
    return redis


@pytest.fixture
async def client(fake_redis: AsyncMock) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
