"""
Registry data models.

RegistryBuildData is the raw workspace snapshot a fetcher hands to
ShortKeyRegistry.build(). Entity ids must be unique within a kind.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from ..config import Config

Timestamp = Union[datetime, str]


class EntityKind(str, Enum):
    """Entity kinds that carry short keys."""

    USER = "user"
    STATE = "state"
    PROJECT = "project"

    @property
    def prefix(self) -> str:
        return KEY_PREFIXES[self]


KEY_PREFIXES = {
    EntityKind.USER: "u",
    EntityKind.STATE: "s",
    EntityKind.PROJECT: "pr",
}


class TransportType(str, Enum):
    """
    Transport type drives registry TTL.

    - stdio: long-lived desktop session, never auto-expires
    - http: shared stateless server, expires after REGISTRY_HTTP_TTL_SECONDS
    """

    STDIO = "stdio"
    HTTP = "http"


def parse_timestamp(value: Timestamp) -> datetime:
    """
    Normalize a creation timestamp to an aware UTC datetime.

    Naive datetimes and strings without an offset are treated as UTC.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class RegistryUser:
    id: str
    created_at: Timestamp
    name: str = ""
    display_name: str = ""
    email: str = ""
    active: bool = True
    role: Optional[str] = None  # from user profiles config
    skills: list[str] = field(default_factory=list)
    focus_area: Optional[str] = None
    teams: list[str] = field(default_factory=list)  # team keys


@dataclass
class RegistryState:
    id: str
    created_at: Timestamp
    name: str = ""
    type: str = ""  # triage, backlog, unstarted, started, completed, canceled
    team_id: Optional[str] = None


@dataclass
class RegistryProject:
    id: str
    created_at: Timestamp
    name: str = ""
    state: str = ""
    icon: Optional[str] = None
    priority: Optional[int] = None  # 0 = none, 1 = urgent ... 4 = low
    progress: Optional[float] = None  # 0..1
    lead_id: Optional[str] = None
    target_date: Optional[str] = None  # YYYY-MM-DD
    team_keys: list[str] = field(default_factory=list)
    slug_id: Optional[str] = None


@dataclass
class RegistryTeam:
    id: str
    key: str


@dataclass
class UserMetadata:
    name: str
    display_name: str
    email: str
    active: bool
    role: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    focus_area: Optional[str] = None
    teams: list[str] = field(default_factory=list)


@dataclass
class StateMetadata:
    name: str
    type: str
    team_id: str = ""


@dataclass
class ProjectMetadata:
    name: str
    state: str = ""
    icon: Optional[str] = None
    priority: Optional[int] = None
    progress: Optional[float] = None
    lead_id: Optional[str] = None
    target_date: Optional[str] = None
    team_keys: list[str] = field(default_factory=list)
    slug_id: Optional[str] = None


def _from_known_fields(cls, raw: dict[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in names})


def _timestamp_to_json(value: Timestamp) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


@dataclass
class RegistryBuildData:
    """
    Workspace snapshot used to build a registry.

    Invariants:
    - every entity has an id and a creation timestamp
    - ids are unique within users, states and projects
    - team_id (legacy single-team mode) restricts states to that team
    - states of default_team_id get clean keys (s0), other teams get
      prefixed keys (sqm:s0)
    """

    users: list[RegistryUser] = field(default_factory=list)
    states: list[RegistryState] = field(default_factory=list)
    projects: list[RegistryProject] = field(default_factory=list)
    teams: list[RegistryTeam] = field(default_factory=list)
    workspace_id: str = ""
    default_team_id: Optional[str] = None
    url_key: Optional[str] = None
    team_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dict (timestamps as ISO strings)."""
        payload = asdict(self)
        for kind in ("users", "states", "projects"):
            for entity in payload[kind]:
                entity["created_at"] = _timestamp_to_json(entity["created_at"])
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RegistryBuildData":
        """Inverse of to_dict(); unknown keys are ignored."""
        return cls(
            users=[_from_known_fields(RegistryUser, u) for u in raw.get("users", [])],
            states=[_from_known_fields(RegistryState, s) for s in raw.get("states", [])],
            projects=[_from_known_fields(RegistryProject, p) for p in raw.get("projects", [])],
            teams=[_from_known_fields(RegistryTeam, t) for t in raw.get("teams", [])],
            workspace_id=raw.get("workspace_id", ""),
            default_team_id=raw.get("default_team_id"),
            url_key=raw.get("url_key"),
            team_id=raw.get("team_id"),
        )


def find_default_team_id(teams: list[RegistryTeam], team_key: Optional[str] = None) -> Optional[str]:
    """
    Id of the team whose key matches team_key (case-insensitive).

    Falls back to Config.DEFAULT_TEAM; returns None when neither matches.
    """
    wanted = (team_key or Config.DEFAULT_TEAM or "").strip().lower()
    if not wanted:
        return None
    for team in teams:
        if team.key.lower() == wanted:
            return team.id
    return None
