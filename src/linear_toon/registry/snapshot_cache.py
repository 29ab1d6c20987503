"""Redis-backed cache of workspace snapshots keyed by session."""

import json
from typing import Optional

from loguru import logger
from redis import asyncio as aioredis

from ..config import Config
from ..redis_client import REDIS_ERRORS, get_redis_client
from .models import RegistryBuildData

SNAPSHOT_PREFIX = "toon:snapshot:"


class SnapshotCache:
    """
    Persists RegistryBuildData so a restarted process rebuilds the same keys.

    Features:
    - Lazy Redis client initialization (shared pool)
    - Snapshots stored as JSON with a mandatory TTL
    - Fail-open: every Redis error is logged and reported as a miss, so the
      caller refetches from the workspace API
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self._redis_client: Optional[aioredis.Redis] = None
        self.ttl_seconds = ttl_seconds or Config.SNAPSHOT_CACHE_TTL_SECONDS

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis_client is None:
            self._redis_client = await get_redis_client()
        return self._redis_client

    @staticmethod
    def _snapshot_key(session_id: str) -> str:
        return f"{SNAPSHOT_PREFIX}{session_id}"

    async def load(self, session_id: str) -> Optional[RegistryBuildData]:
        """
        Load a cached snapshot.

        Returns:
            RegistryBuildData, or None on miss, corrupt payload or Redis error
        """
        try:
            redis = await self._get_redis()
            raw = await redis.get(self._snapshot_key(session_id))
        except REDIS_ERRORS as e:
            logger.error(f"Redis connection failed loading snapshot for {session_id}: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error loading snapshot for {session_id}: {e}")
            return None

        if raw is None:
            logger.debug(f"No cached snapshot for session {session_id}")
            return None

        try:
            data = RegistryBuildData.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Discarding corrupt snapshot for session {session_id}: {e}")
            await self.delete(session_id)
            return None

        logger.debug(f"Loaded cached snapshot for session {session_id}")
        return data

    async def save(self, session_id: str, data: RegistryBuildData) -> bool:
        """
        Store a snapshot with the configured TTL.

        Returns:
            True if stored, False on error
        """
        try:
            redis = await self._get_redis()
            await redis.setex(
                self._snapshot_key(session_id), self.ttl_seconds, json.dumps(data.to_dict())
            )
            logger.debug(f"Cached snapshot for session {session_id} (TTL={self.ttl_seconds}s)")
            return True
        except REDIS_ERRORS as e:
            logger.error(f"Redis connection failed saving snapshot for {session_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error saving snapshot for {session_id}: {e}")
            return False

    async def delete(self, session_id: str) -> bool:
        """Remove a cached snapshot; returns False on error."""
        try:
            redis = await self._get_redis()
            await redis.delete(self._snapshot_key(session_id))
            return True
        except Exception as e:
            logger.error(f"Failed to delete snapshot for {session_id}: {e}")
            return False
