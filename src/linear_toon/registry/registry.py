"""
Short key registry.

Maps canonical entity ids to compact session-scoped keys:

    users     u0, u1, ...        (active users only)
    states    s0, s1, ...        (default team)  sqm:s0, sqm:s1, ... (others)
    projects  pr0, pr1, ...

Keys are assigned by creation time ascending with the canonical id as
tie-break, so the same snapshot always yields the same keys. A registry is
never mutated after build(); refreshing workspace data replaces it.
"""

import re
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from loguru import logger

from ..config import Config
from ..toon.errors import (
    entity_not_found_error,
    invalid_key_format_error,
    unknown_short_key_error,
)
from .models import (
    EntityKind,
    ProjectMetadata,
    RegistryBuildData,
    RegistryProject,
    RegistryState,
    RegistryUser,
    StateMetadata,
    TransportType,
    UserMetadata,
    parse_timestamp,
)

KindLike = Union[EntityKind, str]

_SHORT_KEY = re.compile(r"^(u|s|pr)(\d+)$")
_HEX_SUFFIX = re.compile(r"^[a-f0-9]+$")
_KIND_BY_PREFIX = {kind.prefix: kind for kind in EntityKind}

ENTITY_NOT_FOUND_SAMPLE = 5


def parse_short_key(key: str) -> Optional[tuple[Optional[str], EntityKind, int]]:
    """
    Split a short key into (team prefix, kind, index).

    parse_short_key("sqm:s0") -> ("sqm", EntityKind.STATE, 0)
    parse_short_key("pr10")   -> (None, EntityKind.PROJECT, 10)

    Returns:
        None if the key does not match `[team:](u|s|pr)N`
    """
    team_prefix = None
    body = key
    colon = key.find(":")
    if colon > 0:
        team_prefix = key[:colon].lower()
        body = key[colon + 1 :]
    match = _SHORT_KEY.match(body)
    if not match:
        return None
    return team_prefix, _KIND_BY_PREFIX[match.group(1)], int(match.group(2))


def _sorted_by_creation(entities: Iterable[Any]) -> list[Any]:
    return sorted(entities, key=lambda e: (parse_timestamp(e.created_at), e.id))


def _hash_suffix(slug_id: str) -> Optional[str]:
    """Hex suffix of a project slug ("launch-878d2a8b5972" -> "878d2a8b5972")."""
    hyphen = slug_id.rfind("-")
    if hyphen <= 0:
        return None
    suffix = slug_id[hyphen + 1 :]
    return suffix if _HEX_SUFFIX.match(suffix) else None


def _user_metadata(user: RegistryUser) -> UserMetadata:
    return UserMetadata(
        name=user.name,
        display_name=user.display_name,
        email=user.email,
        active=user.active,
        role=user.role,
        skills=list(user.skills),
        focus_area=user.focus_area,
        teams=list(user.teams),
    )


def _state_metadata(state: RegistryState) -> StateMetadata:
    return StateMetadata(name=state.name, type=state.type, team_id=state.team_id or "")


def _project_metadata(project: RegistryProject) -> ProjectMetadata:
    return ProjectMetadata(
        name=project.name,
        state=project.state,
        icon=project.icon,
        priority=project.priority,
        progress=project.progress,
        lead_id=project.lead_id,
        target_date=project.target_date,
        team_keys=list(project.team_keys),
        slug_id=project.slug_id,
    )


class ShortKeyRegistry:
    """
    Immutable bidirectional short key <-> canonical id mapping.

    Build with ShortKeyRegistry.build(); all lookups are O(1).

    Attributes:
        url_key: Workspace URL key used for issue links (may be None)
        team_key_set: Uppercased team keys used for issue identifiers
        workspace_id: Workspace the snapshot came from
        default_team_id: Team whose states get unprefixed keys
        transport: Transport the registry was built for (drives TTL)
        generated_at: Build time (UTC)
    """

    def __init__(
        self,
        keys: Mapping[EntityKind, dict[str, str]],
        metadata: Mapping[EntityKind, dict[str, Any]],
        team_keys: dict[str, str],
        slug_map: dict[str, str],
        workspace_id: str = "",
        default_team_id: Optional[str] = None,
        url_key: Optional[str] = None,
        transport: Optional[TransportType] = None,
        generated_at: Optional[datetime] = None,
    ):
        self._by_key = {kind: dict(keys.get(kind, {})) for kind in EntityKind}
        self._by_id = {
            kind: {canonical_id: key for key, canonical_id in self._by_key[kind].items()}
            for kind in EntityKind
        }
        self._metadata = {kind: dict(metadata.get(kind, {})) for kind in EntityKind}
        self._team_keys = dict(team_keys)
        self._slug_map = dict(slug_map)

        self.workspace_id = workspace_id
        self.default_team_id = default_team_id
        self.url_key = url_key
        self.transport = TransportType(transport) if transport else None
        self.generated_at = generated_at or datetime.now(timezone.utc)
        self.team_key_set = frozenset(key.upper() for key in self._team_keys.values())

    # ========================================================================
    # Construction
    # ========================================================================

    @classmethod
    def build(
        cls,
        data: RegistryBuildData,
        transport: Optional[Union[TransportType, str]] = None,
        generated_at: Optional[datetime] = None,
    ) -> "ShortKeyRegistry":
        """
        Build a registry from a workspace snapshot.

        Args:
            data: Workspace snapshot
            transport: Transport type (stdio never expires, http uses a TTL)
            generated_at: Build time override (defaults to now)

        Returns:
            New ShortKeyRegistry
        """
        team_keys = {team.id: team.key.lower() for team in data.teams}

        states = data.states
        if data.team_id:
            states = [s for s in states if s.team_id == data.team_id]

        active_users = [u for u in data.users if u.active is not False]
        user_keys = cls._sequential_keys(active_users, EntityKind.USER.prefix)
        project_keys = cls._sequential_keys(data.projects, EntityKind.PROJECT.prefix)

        if data.default_team_id and data.teams:
            state_keys = cls._team_scoped_keys(states, data.default_team_id, team_keys)
        else:
            state_keys = cls._sequential_keys(states, EntityKind.STATE.prefix)

        metadata = {
            EntityKind.USER: {u.id: _user_metadata(u) for u in data.users},
            EntityKind.STATE: {s.id: _state_metadata(s) for s in states},
            EntityKind.PROJECT: {p.id: _project_metadata(p) for p in data.projects},
        }

        registry = cls(
            keys={
                EntityKind.USER: user_keys,
                EntityKind.STATE: state_keys,
                EntityKind.PROJECT: project_keys,
            },
            metadata=metadata,
            team_keys=team_keys,
            slug_map=cls._build_slug_map(project_keys, metadata[EntityKind.PROJECT]),
            workspace_id=data.workspace_id,
            default_team_id=data.default_team_id,
            url_key=data.url_key,
            transport=transport,
            generated_at=generated_at,
        )
        logger.info(
            f"Built short key registry for workspace '{data.workspace_id}': "
            f"{len(user_keys)} users, {len(state_keys)} states, {len(project_keys)} projects"
        )
        return registry

    @staticmethod
    def _sequential_keys(entities: Iterable[Any], prefix: str) -> dict[str, str]:
        return {
            f"{prefix}{index}": entity.id
            for index, entity in enumerate(_sorted_by_creation(entities))
        }

    @staticmethod
    def _team_scoped_keys(
        states: Iterable[RegistryState], default_team_id: str, team_keys: Mapping[str, str]
    ) -> dict[str, str]:
        """Per-team numbering; non-default teams get a `teamkey:` prefix."""
        counters: dict[str, int] = {}
        keys = {}
        for state in _sorted_by_creation(states):
            team_id = state.team_id or ""
            index = counters.get(team_id, 0)
            counters[team_id] = index + 1

            team_prefix = ""
            if team_id != default_team_id and team_id in team_keys:
                team_prefix = f"{team_keys[team_id]}:"
            keys[f"{team_prefix}{EntityKind.STATE.prefix}{index}"] = state.id
        return keys

    @staticmethod
    def _build_slug_map(
        project_keys: Mapping[str, str], project_metadata: Mapping[str, ProjectMetadata]
    ) -> dict[str, str]:
        """
        Map project slug ids, slug hash suffixes and lowercase names to keys.

        Names shared by two projects are left out.
        """
        key_by_id = {canonical_id: key for key, canonical_id in project_keys.items()}
        slug_map: dict[str, str] = {}

        for project_id, meta in project_metadata.items():
            key = key_by_id.get(project_id)
            if key is None or not meta.slug_id:
                continue
            slug_map[meta.slug_id] = key
            suffix = _hash_suffix(meta.slug_id)
            if suffix:
                slug_map[suffix] = key

        ambiguous = set()
        for project_id, meta in project_metadata.items():
            key = key_by_id.get(project_id)
            if key is None or not meta.name:
                continue
            name = meta.name.lower()
            if name in ambiguous:
                continue
            existing = slug_map.get(name)
            if existing is None:
                slug_map[name] = key
            elif existing != key:
                del slug_map[name]
                ambiguous.add(name)
        return slug_map

    def with_new_project(
        self, project_id: str, metadata: ProjectMetadata
    ) -> tuple["ShortKeyRegistry", str]:
        """
        Return a copy with a newly created project registered.

        The key is max existing index + 1 (gaps are never reused). This
        registry is left untouched.

        Returns:
            Tuple of (new registry, assigned short key)
        """
        project_keys = self._by_key[EntityKind.PROJECT]
        indices = [parsed[2] for parsed in map(parse_short_key, project_keys) if parsed]
        key = f"{EntityKind.PROJECT.prefix}{max(indices, default=-1) + 1}"

        keys = dict(self._by_key)
        keys[EntityKind.PROJECT] = {**project_keys, key: project_id}
        metadata_maps = dict(self._metadata)
        metadata_maps[EntityKind.PROJECT] = {**self._metadata[EntityKind.PROJECT], project_id: metadata}

        slug_map = dict(self._slug_map)
        if metadata.slug_id:
            slug_map[metadata.slug_id] = key
            suffix = _hash_suffix(metadata.slug_id)
            if suffix:
                slug_map[suffix] = key
        if metadata.name:
            slug_map.setdefault(metadata.name.lower(), key)

        registry = ShortKeyRegistry(
            keys=keys,
            metadata=metadata_maps,
            team_keys=self._team_keys,
            slug_map=slug_map,
            workspace_id=self.workspace_id,
            default_team_id=self.default_team_id,
            url_key=self.url_key,
            transport=self.transport,
            generated_at=self.generated_at,
        )
        logger.info(f"Registered new project {project_id} as {key}")
        return registry, key

    # ========================================================================
    # Resolution
    # ========================================================================

    @property
    def default_team_key(self) -> Optional[str]:
        """Lowercase key of the default team, if any."""
        if not self.default_team_id:
            return None
        return self._team_keys.get(self.default_team_id)

    def _normalize(self, kind: EntityKind, short_key: str) -> str:
        """
        Normalize flexible input before lookup.

        - a prefix naming the default team is dropped (sqt:s0 -> s0)
        - any team prefix on a user or project key is dropped (eng:u5 -> u5)
        - other state prefixes are kept, lowercased (SQM:s0 -> sqm:s0)
        """
        parsed = parse_short_key(short_key)
        if parsed is None:
            return short_key
        team_prefix, parsed_kind, index = parsed
        if team_prefix is None:
            return short_key
        clean = f"{parsed_kind.prefix}{index}"
        if team_prefix == self.default_team_key or kind is not EntityKind.STATE:
            return clean
        return f"{team_prefix}:{clean}"

    def resolve(self, kind: KindLike, short_key: str) -> str:
        """
        Resolve a short key to its canonical id.

        Args:
            kind: Entity kind (user, state, project)
            short_key: Key such as "u1", "s0", "sqm:s0" or "pr2"

        Returns:
            Canonical id

        Raises:
            ToonError: INVALID_KEY_FORMAT for malformed keys,
                UNKNOWN_SHORT_KEY for well-formed keys that are not assigned
        """
        kind = EntityKind(kind)
        keys = self._by_key[kind]
        parsed = parse_short_key(short_key)
        if parsed is None or parsed[1] is not kind:
            raise invalid_key_format_error(kind.value, short_key, self.list_short_keys(kind))

        canonical_id = keys.get(self._normalize(kind, short_key))
        if canonical_id is None:
            raise unknown_short_key_error(kind.value, short_key, self.list_short_keys(kind))
        return canonical_id

    def try_resolve(self, kind: KindLike, short_key: Optional[str]) -> Optional[str]:
        """Like resolve(), but returns None instead of raising."""
        if not short_key:
            return None
        kind = EntityKind(kind)
        return self._by_key[kind].get(self._normalize(kind, short_key))

    def to_short_key(self, kind: KindLike, canonical_id: Optional[str]) -> Optional[str]:
        """Short key for a canonical id, or None when it has none."""
        if not canonical_id:
            return None
        return self._by_id[EntityKind(kind)].get(canonical_id)

    def require_short_key(self, kind: KindLike, canonical_id: str) -> str:
        """
        Short key for a canonical id.

        Raises:
            ToonError: ENTITY_NOT_FOUND if the id has no key
        """
        kind = EntityKind(kind)
        key = self.to_short_key(kind, canonical_id)
        if key is None:
            ids = list(self._by_id[kind])
            raise entity_not_found_error(
                kind.value, canonical_id, ids[:ENTITY_NOT_FOUND_SAMPLE], len(ids)
            )
        return key

    def list_short_keys(self, kind: KindLike) -> list[str]:
        """All keys of a kind in numeric order (u0, u1, ..., u10)."""

        def index(key: str) -> int:
            digits = re.sub(r"\D", "", key)
            return int(digits) if digits else -1

        return sorted(self._by_key[EntityKind(kind)], key=lambda key: (index(key), key))

    def has_short_key(self, kind: KindLike, short_key: str) -> bool:
        return short_key in self._by_key[EntityKind(kind)]

    def has_id(self, kind: KindLike, canonical_id: str) -> bool:
        return canonical_id in self._by_id[EntityKind(kind)]

    # ========================================================================
    # Metadata
    # ========================================================================

    def user_metadata(self, canonical_id: str) -> Optional[UserMetadata]:
        return self._metadata[EntityKind.USER].get(canonical_id)

    def state_metadata(self, canonical_id: str) -> Optional[StateMetadata]:
        return self._metadata[EntityKind.STATE].get(canonical_id)

    def project_metadata(self, canonical_id: str) -> Optional[ProjectMetadata]:
        return self._metadata[EntityKind.PROJECT].get(canonical_id)

    def team_key(self, team_id: str) -> Optional[str]:
        """Uppercased team key for a team id."""
        key = self._team_keys.get(team_id)
        return key.upper() if key else None

    def user_status_label(self, canonical_id: str) -> str:
        """
        Label for a user id that has no short key.

        Returns:
            "(deactivated)" if the user is known and inactive, else "(departed)"
        """
        meta = self.user_metadata(canonical_id)
        if meta is not None and meta.active is False:
            return "(deactivated)"
        return "(departed)"

    def project_slug_map(self) -> Mapping[str, str]:
        """Read-only slug/name -> project key map for URL stripping."""
        return MappingProxyType(self._slug_map)

    # ========================================================================
    # TTL
    # ========================================================================

    def age_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.generated_at).total_seconds()

    def _ttl(self, ttl: Optional[float]) -> float:
        return Config.REGISTRY_HTTP_TTL_SECONDS if ttl is None else ttl

    def is_stale(
        self,
        transport: Optional[Union[TransportType, str]] = None,
        ttl: Optional[float] = None,
    ) -> bool:
        """
        Whether the registry should be rebuilt.

        stdio registries never expire; http registries expire after the TTL.
        A registry built without a transport never expires.
        """
        effective = TransportType(transport) if transport else self.transport
        if effective is TransportType.HTTP:
            return self.age_seconds() > self._ttl(ttl)
        return False

    def remaining_ttl(self, ttl: Optional[float] = None) -> float:
        """Seconds until expiry; infinity unless the transport is http."""
        if self.transport is not TransportType.HTTP:
            return float("inf")
        return max(0.0, self._ttl(ttl) - self.age_seconds())

    def stats(self) -> dict[str, Any]:
        return {
            "user_count": len(self._by_key[EntityKind.USER]),
            "state_count": len(self._by_key[EntityKind.STATE]),
            "project_count": len(self._by_key[EntityKind.PROJECT]),
            "age_seconds": self.age_seconds(),
            "is_stale": self.is_stale(),
            "transport": self.transport.value if self.transport else None,
        }

    def __repr__(self) -> str:
        return (
            f"ShortKeyRegistry(workspace_id={self.workspace_id!r}, "
            f"users={len(self._by_key[EntityKind.USER])}, "
            f"states={len(self._by_key[EntityKind.STATE])}, "
            f"projects={len(self._by_key[EntityKind.PROJECT])})"
        )
