"""
Lookup sections built from a registry.

Only entities referenced by the data sections are listed, in key order,
so every short key in the output can be resolved by the reader.
"""

from typing import Iterable

from ..toon.schemas import PROJECT_LOOKUP_SCHEMA, STATE_LOOKUP_SCHEMA, USER_LOOKUP_SCHEMA
from ..toon.types import ToonSection
from .models import EntityKind
from .profiles import UserProfile, format_profile
from .registry import ShortKeyRegistry


def _referenced_keys(
    registry: ShortKeyRegistry, kind: EntityKind, canonical_ids: Iterable[str]
) -> list[tuple[str, str]]:
    wanted = {i for i in canonical_ids if i}
    pairs = [(key, registry.try_resolve(kind, key)) for key in registry.list_short_keys(kind)]
    return [(key, canonical_id) for key, canonical_id in pairs if canonical_id in wanted]


def build_user_lookup(registry: ShortKeyRegistry, user_ids: Iterable[str]) -> ToonSection:
    items = []
    for key, user_id in _referenced_keys(registry, EntityKind.USER, user_ids):
        meta = registry.user_metadata(user_id)
        role = ""
        if meta is not None:
            role = format_profile(
                UserProfile(role=meta.role, skills=meta.skills, focus_area=meta.focus_area)
            )
        items.append(
            {
                "key": key,
                "name": meta.name if meta else "",
                "displayName": meta.display_name if meta else "",
                "email": meta.email if meta else "",
                "role": role,
            }
        )
    return ToonSection(USER_LOOKUP_SCHEMA, items)


def build_state_lookup(registry: ShortKeyRegistry, state_ids: Iterable[str]) -> ToonSection:
    items = []
    for key, state_id in _referenced_keys(registry, EntityKind.STATE, state_ids):
        meta = registry.state_metadata(state_id)
        items.append(
            {"key": key, "name": meta.name if meta else "", "type": meta.type if meta else ""}
        )
    return ToonSection(STATE_LOOKUP_SCHEMA, items)


def build_project_lookup(registry: ShortKeyRegistry, project_ids: Iterable[str]) -> ToonSection:
    items = []
    for key, project_id in _referenced_keys(registry, EntityKind.PROJECT, project_ids):
        meta = registry.project_metadata(project_id)
        items.append(
            {"key": key, "name": meta.name if meta else "", "state": meta.state if meta else ""}
        )
    return ToonSection(PROJECT_LOOKUP_SCHEMA, items)
