"""Tests for the startup checks and pool lifecycle of PostgreSQL and Redis."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.shop_common import redis_client
from src.shop_common.database import ping_database


async def test_ping_database_runs_select_one() -> None:
    conn = AsyncMock()
    db_engine = MagicMock()
    db_engine.connect.return_value.__aenter__.return_value = conn

    await ping_database(db_engine)

    conn.execute.assert_awaited_once()
    assert str(conn.execute.await_args.args[0]) == "SELECT 1"


async def test_ping_database_propagates_connection_error() -> None:
    db_engine = MagicMock()
    db_engine.connect.return_value.__aenter__.side_effect = OSError("connection refused")

    with pytest.raises(OSError):
        await ping_database(db_engine)


async def test_ping_redis_round_trips(fake_redis: AsyncMock) -> None:
    await redis_client.ping_redis()
    fake_redis.ping.assert_awaited_once()


async def test_close_redis_resets_pool(fake_redis: AsyncMock) -> None:
    await redis_client.close_redis()

    fake_redis.aclose.assert_awaited_once()
    assert redis_client._redis_pool is None
    await redis_client.close_redis()
    fake_redis.aclose.assert_awaited_once()
