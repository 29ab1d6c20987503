"""Test shared Redis client pooling, retries and health checks."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis import asyncio as aioredis

from linear_toon import redis_client
from linear_toon.config import Config


@pytest.fixture(autouse=True)
def _reset_shared_client(monkeypatch):
    monkeypatch.setattr(redis_client, "_redis_client", None)
    monkeypatch.setattr(redis_client, "_redis_pool", None)


def _fake_pool():
    pool = MagicMock()
    pool.disconnect = AsyncMock()
    pool.max_connections = Config.REDIS_MAX_CONNECTIONS
    return pool


def _fake_client(ping_side_effect=None):
    client = MagicMock()
    client.ping = AsyncMock(return_value=True, side_effect=ping_side_effect)
    client.aclose = AsyncMock()
    return client


# ============================================================================
# POOLING TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_shared_client_reused():
    """Repeated calls return the same client built from one pool."""
    pool, client = _fake_pool(), _fake_client()

    with patch.object(aioredis.ConnectionPool, "from_url", return_value=pool) as from_url, \
            patch.object(redis_client.aioredis, "Redis", return_value=client):
        first = await redis_client.get_redis_client()
        second = await redis_client.get_redis_client()

    assert first is second is client
    from_url.assert_called_once()
    assert from_url.call_args.kwargs["max_connections"] == Config.REDIS_MAX_CONNECTIONS
    assert from_url.call_args.kwargs["decode_responses"] is True


@pytest.mark.asyncio
async def test_connection_retried_with_backoff():
    """A failed ping closes the client and retries after a delay."""
    client = _fake_client(ping_side_effect=[aioredis.ConnectionError("refused"), True])

    with patch.object(aioredis.ConnectionPool, "from_url", side_effect=[_fake_pool(), _fake_pool()]), \
            patch.object(redis_client.aioredis, "Redis", return_value=client), \
            patch.object(redis_client.asyncio, "sleep", new=AsyncMock()) as sleep:
        result = await redis_client.get_redis_client()

    assert result is client
    sleep.assert_awaited_once_with(Config.REDIS_CONNECT_RETRY_DELAY)
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_retries_exhausted_raises(monkeypatch):
    """Every attempt failing propagates the error and leaves no client behind."""
    monkeypatch.setattr(Config, "REDIS_CONNECT_RETRIES", 2)
    client = _fake_client(ping_side_effect=aioredis.TimeoutError("timeout"))

    with patch.object(aioredis.ConnectionPool, "from_url", side_effect=lambda *a, **k: _fake_pool()), \
            patch.object(redis_client.aioredis, "Redis", return_value=client), \
            patch.object(redis_client.asyncio, "sleep", new=AsyncMock()):
        with pytest.raises(aioredis.TimeoutError):
            await redis_client.get_redis_client()

    assert client.ping.await_count == 2
    assert redis_client._redis_client is None
    assert redis_client._redis_pool is None


@pytest.mark.asyncio
async def test_close_releases_pool():
    pool, client = _fake_pool(), _fake_client()
    redis_client._redis_pool = pool
    redis_client._redis_client = client

    await redis_client.close_redis_client()

    client.aclose.assert_awaited_once()
    pool.disconnect.assert_awaited_once()
    assert redis_client._redis_client is None


# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_health_check_ok():
    client = _fake_client()
    with patch.object(redis_client, "get_redis_client", new=AsyncMock(return_value=client)):
        healthy, message = await redis_client.check_redis_health()
    assert healthy is True
    assert message == "Redis ping succeeded"


@pytest.mark.asyncio
async def test_health_check_redis_down():
    """Connection errors are reported, never raised."""
    with patch.object(
        redis_client,
        "get_redis_client",
        new=AsyncMock(side_effect=aioredis.ConnectionError("Redis unavailable")),
    ):
        healthy, message = await redis_client.check_redis_health()
    assert healthy is False
    assert "Redis connection failed" in message


@pytest.mark.asyncio
async def test_health_check_unexpected_response():
    client = _fake_client()
    client.ping.return_value = "NOPE"
    with patch.object(redis_client, "get_redis_client", new=AsyncMock(return_value=client)):
        healthy, message = await redis_client.check_redis_health()
    assert healthy is False
    assert "NOPE" in message
