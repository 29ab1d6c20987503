"""Session-scoped registry store with single-flight initialization."""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Union

from loguru import logger

from ..config import Config
from ..toon.errors import RegistryErrorCode, registry_error
from .models import RegistryBuildData, TransportType
from .registry import ShortKeyRegistry
from .snapshot_cache import SnapshotCache

FetchWorkspaceData = Callable[[], Union[RegistryBuildData, Awaitable[RegistryBuildData]]]


class RegistryStore:
    """
    Holds one ShortKeyRegistry per session.

    Features:
    - Lazy build on first use, rebuild when stale or forced
    - Single-flight: concurrent callers for a session share one build task
    - Optional SnapshotCache so cold sessions reuse the last snapshot
    - Registries are swapped in a single assignment, never mutated

    Example:
        store = RegistryStore(transport="http")
        registry = await store.get_or_build(session_id, fetch_workspace)
    """

    def __init__(
        self,
        transport: Optional[Union[TransportType, str]] = None,
        ttl_seconds: Optional[float] = None,
        snapshot_cache: Optional[SnapshotCache] = None,
    ):
        self.transport = TransportType(transport or Config.TRANSPORT)
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else Config.REGISTRY_HTTP_TTL_SECONDS
        )
        self.snapshot_cache = snapshot_cache
        self._registries: dict[str, ShortKeyRegistry] = {}
        self._builds: dict[str, asyncio.Task] = {}
        self._bypass_cache: set[str] = set()
        # Bumped by invalidate/clear; a build only installs if unchanged
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def get(self, session_id: str) -> Optional[ShortKeyRegistry]:
        return self._registries.get(session_id)

    def put(self, session_id: str, registry: ShortKeyRegistry) -> None:
        self._registries[session_id] = registry

    def invalidate(self, session_id: str) -> None:
        """
        Drop a session's registry; the next get_or_build() refetches.

        The cached snapshot is bypassed on that rebuild and then overwritten.
        A build already in flight still answers its callers but its result
        is not stored.
        """
        self._registries.pop(session_id, None)
        self._builds.pop(session_id, None)
        self._generations[session_id] = self._generations.get(session_id, 0) + 1
        if self.snapshot_cache is not None:
            self._bypass_cache.add(session_id)
        logger.info(f"Invalidated short key registry for session {session_id}")

    def clear(self) -> None:
        self._registries.clear()
        self._builds.clear()
        self._bypass_cache.clear()
        self._generations.clear()
        self._epoch += 1

    def _generation(self, session_id: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(session_id, 0)

    def is_stale(self, registry: ShortKeyRegistry) -> bool:
        return registry.is_stale(self.transport, self.ttl_seconds)

    def require(self, session_id: str) -> ShortKeyRegistry:
        """
        Return the session's registry without building.

        Raises:
            ToonError: SESSION_NOT_FOUND if nothing is stored,
                REGISTRY_STALE if the stored registry has expired
        """
        registry = self._registries.get(session_id)
        if registry is None:
            raise registry_error(
                RegistryErrorCode.SESSION_NOT_FOUND,
                f"No short key registry for session '{session_id}'",
                session_id=session_id,
                hint="Call workspace_metadata first to initialize the registry",
            )
        if self.is_stale(registry):
            raise registry_error(
                RegistryErrorCode.REGISTRY_STALE,
                f"Short key registry for session '{session_id}' is stale "
                f"({registry.age_seconds():.0f}s old)",
                session_id=session_id,
                hint="Call workspace_metadata({ forceRefresh: true }) to refresh",
            )
        return registry

    async def get_or_build(
        self,
        session_id: str,
        fetch: FetchWorkspaceData,
        force_refresh: bool = False,
    ) -> ShortKeyRegistry:
        """
        Return the session's registry, building it if missing, stale or forced.

        Args:
            session_id: Session identifier
            fetch: Sync or async callable returning RegistryBuildData
            force_refresh: Rebuild even if the stored registry is fresh

        Returns:
            Current registry for the session

        Raises:
            ToonError: REGISTRY_INIT_FAILED if the fetch or the build fails
        """
        existing = self._registries.get(session_id)
        if existing is not None and not force_refresh and not self.is_stale(existing):
            logger.debug(f"Registry cache hit for session {session_id}")
            return existing

        in_flight = self._builds.get(session_id)
        if in_flight is not None:
            if not force_refresh:
                logger.debug(f"Joining in-flight registry build for session {session_id}")
                return await asyncio.shield(in_flight)
            # Let the running build finish (or fail) before starting fresh
            await asyncio.wait({in_flight})

        use_snapshot = (
            self.snapshot_cache is not None
            and not force_refresh
            and existing is None
            and session_id not in self._bypass_cache
        )
        generation = self._generation(session_id)
        task = asyncio.ensure_future(self._build(session_id, fetch, use_snapshot, generation))
        self._builds[session_id] = task
        return await asyncio.shield(task)

    async def _build(
        self,
        session_id: str,
        fetch: FetchWorkspaceData,
        use_snapshot: bool,
        generation: tuple[int, int],
    ) -> ShortKeyRegistry:
        try:
            data = None
            if use_snapshot:
                data = await self.snapshot_cache.load(session_id)

            if data is None:
                data = await self._fetch(session_id, fetch)
                if self.snapshot_cache is not None and self._generation(session_id) == generation:
                    await self.snapshot_cache.save(session_id, data)
                    if self._generation(session_id) == generation:
                        self._bypass_cache.discard(session_id)

            try:
                registry = ShortKeyRegistry.build(data, transport=self.transport)
            except Exception as e:
                logger.error(f"Registry build failed for session {session_id}: {e}")
                raise registry_error(
                    RegistryErrorCode.REGISTRY_INIT_FAILED,
                    "Failed to initialize short key registry",
                    session_id=session_id,
                    cause=str(e),
                    hint="Workspace snapshot is malformed; check entity ids and timestamps",
                ) from e

            if self._generation(session_id) == generation:
                self._registries[session_id] = registry
            else:
                logger.info(
                    f"Discarding registry for session {session_id}: invalidated during build"
                )
            return registry
        finally:
            if self._builds.get(session_id) is asyncio.current_task():
                del self._builds[session_id]

    @staticmethod
    async def _fetch(session_id: str, fetch: FetchWorkspaceData) -> RegistryBuildData:
        try:
            result = fetch()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            logger.error(f"Workspace fetch failed for session {session_id}: {e}")
            raise registry_error(
                RegistryErrorCode.REGISTRY_INIT_FAILED,
                "Failed to initialize short key registry",
                session_id=session_id,
                cause=str(e),
                hint="Check workspace API connectivity and authentication",
            ) from e
