"""
Shared async Redis connection behind SnapshotCache.

Only workspace snapshots live in Redis. With ENABLE_SNAPSHOT_CACHE off,
nothing in this module is ever called.
"""

import asyncio
from typing import Optional, Tuple

from loguru import logger
from redis import asyncio as aioredis

from .config import Config

REDIS_ERRORS = (aioredis.ConnectionError, aioredis.TimeoutError)

_redis_client: Optional[aioredis.Redis] = None
_redis_pool: Optional[aioredis.ConnectionPool] = None


def _create_pool() -> aioredis.ConnectionPool:
    return aioredis.ConnectionPool.from_url(
        Config.REDIS_URL,
        decode_responses=True,
        max_connections=Config.REDIS_MAX_CONNECTIONS,
        socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
        socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
    )


def _retry_delay(attempt: int) -> float:
    """Exponential backoff starting at REDIS_CONNECT_RETRY_DELAY, capped."""
    delay = Config.REDIS_CONNECT_RETRY_DELAY * 2 ** (attempt - 1)
    return min(delay, Config.REDIS_CONNECT_RETRY_MAX_DELAY)


def pool_usage() -> str:
    """Human-readable pool usage for log lines."""
    if _redis_pool is None:
        return "no pool"
    in_use = len(getattr(_redis_pool, "_in_use_connections", None) or ())
    idle = len(getattr(_redis_pool, "_available_connections", None) or ())
    return f"in_use={in_use}, idle={idle}, max={_redis_pool.max_connections}"


async def get_redis_client() -> aioredis.Redis:
    """
    Return the process-wide Redis client, connecting on first use.

    Every snapshot cache shares this client and its connection pool. A
    failed ping tears the pool down and retries up to REDIS_CONNECT_RETRIES
    times.

    Raises:
        redis.ConnectionError: If Redis stays unreachable
        redis.TimeoutError: If every attempt times out
    """
    global _redis_client, _redis_pool

    if _redis_client is not None:
        return _redis_client

    attempts = max(Config.REDIS_CONNECT_RETRIES, 1)
    for attempt in range(1, attempts + 1):
        if _redis_pool is None:
            _redis_pool = _create_pool()
        _redis_client = aioredis.Redis(connection_pool=_redis_pool)
        try:
            await _redis_client.ping()
        except REDIS_ERRORS as exc:
            await close_redis_client()
            if attempt == attempts:
                logger.error(f"Redis unreachable at {Config.REDIS_URL} after {attempt} attempt(s): {exc}")
                raise
            delay = _retry_delay(attempt)
            logger.warning(f"Redis connect attempt {attempt}/{attempts} failed ({exc}), retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
        else:
            logger.debug(f"Snapshot store connected ({pool_usage()})")
            break
    return _redis_client


async def close_redis_client() -> None:
    """Drop the shared client and disconnect its pool."""
    global _redis_client, _redis_pool

    client, pool = _redis_client, _redis_pool
    _redis_client = _redis_pool = None
    if client is not None:
        await client.aclose()
    if pool is not None:
        await pool.disconnect()


async def check_redis_health() -> Tuple[bool, str]:
    """
    Ping the snapshot store.

    Returns:
        (healthy, message); errors are reported, never raised
    """
    try:
        client = await get_redis_client()
        reply = await client.ping()
    except REDIS_ERRORS as exc:
        return False, f"Redis connection failed: {exc}"
    except Exception as exc:
        return False, f"Redis health check error: {exc}"

    if reply is True or reply == "PONG":
        return True, "Redis ping succeeded"
    return False, f"Unexpected Redis ping response: {reply}"
