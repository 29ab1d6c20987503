"""Short key registry: session-scoped u0/s0/pr0 keys for workspace entities."""

from .lookups import build_project_lookup, build_state_lookup, build_user_lookup
from .models import EntityKind, RegistryBuildData, TransportType
from .registry import ShortKeyRegistry
from .store import RegistryStore

__all__ = [
    "EntityKind",
    "RegistryBuildData",
    "RegistryStore",
    "ShortKeyRegistry",
    "TransportType",
    "build_project_lookup",
    "build_state_lookup",
    "build_user_lookup",
]
