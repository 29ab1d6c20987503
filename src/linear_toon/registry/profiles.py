"""
User profile enrichment.

Profiles add role, skills and focus area to workspace users so assignment
suggestions can take them into account. They are loaded from YAML and
matched by email address (case-insensitive):

    version: 1
    profiles:
      dev@example.com:
        role: Senior Developer
        skills: [Python, Redis]
        focus_area: API development
    defaults:
      role: Contributor
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger

from ..config import Config
from .models import RegistryBuildData


@dataclass
class UserProfile:
    role: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    focus_area: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "UserProfile":
        skills = raw.get("skills") or []
        if isinstance(skills, str):
            skills = [skills]
        return cls(
            role=raw.get("role") or None,
            skills=[str(s) for s in skills],
            focus_area=raw.get("focus_area") or raw.get("focusArea") or None,
        )


@dataclass
class UserProfilesConfig:
    version: int = 1
    profiles: dict[str, UserProfile] = field(default_factory=dict)
    defaults: UserProfile = field(default_factory=UserProfile)

    def lookup(self, email: Optional[str]) -> UserProfile:
        """Profile for an email address, or the defaults."""
        if not email:
            return self.defaults
        return self.profiles.get(email.lower(), self.defaults)


_cache: dict[str, UserProfilesConfig] = {}


def parse_user_profiles(data: Any) -> UserProfilesConfig:
    """
    Build a profiles config from parsed YAML.

    Raises:
        ValueError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"Invalid profiles structure: expected dict, got {type(data).__name__}")

    profiles = data.get("profiles")
    if not isinstance(profiles, dict):
        raise ValueError("'profiles' must be a mapping of email -> profile")

    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ValueError("'defaults' must be a mapping")

    return UserProfilesConfig(
        version=int(data.get("version", 1)),
        profiles={
            str(email).lower(): UserProfile.from_dict(profile or {})
            for email, profile in profiles.items()
        },
        defaults=UserProfile.from_dict(defaults),
    )


def load_user_profiles(path: Optional[str] = None) -> UserProfilesConfig:
    """
    Load user profiles from YAML, caching the result per path.

    A missing file yields an empty config; an unreadable or malformed file
    is logged and also yields an empty config.

    Args:
        path: YAML file path (defaults to Config.USER_PROFILES_PATH)

    Returns:
        UserProfilesConfig
    """
    path = path or Config.USER_PROFILES_PATH
    if path in _cache:
        return _cache[path]

    profiles_file = Path(path)
    if not profiles_file.exists():
        logger.debug(f"No user profiles file at {path}")
        config = UserProfilesConfig()
    else:
        try:
            with open(profiles_file) as f:
                config = parse_user_profiles(yaml.safe_load(f))
            logger.info(f"Loaded {len(config.profiles)} user profiles from {path}")
        except (OSError, yaml.YAMLError, ValueError) as e:
            logger.warning(f"Failed to load user profiles from {path}: {e}")
            config = UserProfilesConfig()

    _cache[path] = config
    return config


def clear_profiles_cache() -> None:
    _cache.clear()


def format_profile(profile: UserProfile) -> str:
    """
    Compact role text for the user lookup table.

    format_profile(UserProfile(role="Tech Lead", focus_area="Backend"))
    -> "Tech Lead (Backend)"
    """
    parts = []
    if profile.role:
        parts.append(profile.role)
    if profile.focus_area:
        parts.append(f"({profile.focus_area})")
    return " ".join(parts)


def apply_profiles(data: RegistryBuildData, config: UserProfilesConfig) -> RegistryBuildData:
    """
    Return a copy of data with profile fields filled in on every user.

    Values already present on a user win over the profile.
    """
    users = []
    for user in data.users:
        profile = config.lookup(user.email)
        users.append(
            replace(
                user,
                role=user.role or profile.role,
                skills=list(user.skills or profile.skills),
                focus_area=user.focus_area or profile.focus_area,
            )
        )
    return replace(data, users=users)
