"""Pytest fixtures and test utilities for the linear-toon test suite."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from linear_toon.registry.models import (
    RegistryBuildData,
    RegistryProject,
    RegistryState,
    RegistryTeam,
    RegistryUser,
)
from linear_toon.registry.profiles import clear_profiles_cache
from linear_toon.registry.registry import ShortKeyRegistry
from linear_toon.toon.types import ToonEncodingOptions, TruncationLimits

# Fixed build time so TTL assertions are deterministic
BUILT_AT = datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# WORKSPACE DATA FIXTURES
# ============================================================================


def make_build_data() -> RegistryBuildData:
    """
    Two-team workspace snapshot.

    Expected keys:
        users:    u0 Alice, u1 Bob (Carol is inactive and gets no key)
        states:   s0 Todo, s1 Done (SQT, default team), sqm:s0 Backlog (SQM)
        projects: pr0 Infra, pr1 Q1 Launch
    """
    return RegistryBuildData(
        users=[
            RegistryUser(
                id="user-bob",
                created_at="2024-02-01T00:00:00Z",
                name="Bob Brown",
                display_name="bob",
                email="bob@example.com",
            ),
            RegistryUser(
                id="user-alice",
                created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                name="Alice Anders",
                display_name="alice",
                email="Alice@Example.com",
                role="Tech Lead",
                focus_area="Backend",
            ),
            RegistryUser(
                id="user-carol",
                created_at="2023-12-01T00:00:00Z",
                name="Carol Chen",
                display_name="carol",
                email="carol@example.com",
                active=False,
            ),
        ],
        states=[
            RegistryState(
                id="state-done",
                created_at="2024-01-02T00:00:00Z",
                name="Done",
                type="completed",
                team_id="team-sqt",
            ),
            RegistryState(
                id="state-todo",
                created_at="2024-01-01T00:00:00Z",
                name="Todo",
                type="unstarted",
                team_id="team-sqt",
            ),
            RegistryState(
                id="state-sqm-backlog",
                created_at="2024-01-01T00:00:00Z",
                name="Backlog",
                type="backlog",
                team_id="team-sqm",
            ),
        ],
        projects=[
            RegistryProject(
                id="proj-launch",
                created_at="2024-03-01T00:00:00Z",
                name="Q1 Launch",
                state="started",
                slug_id="q1-launch-878d2a8b5972",
            ),
            RegistryProject(
                id="proj-infra",
                created_at="2024-01-15T00:00:00Z",
                name="Infra",
                state="planned",
                slug_id="infra-abc123",
            ),
        ],
        teams=[RegistryTeam(id="team-sqt", key="SQT"), RegistryTeam(id="team-sqm", key="SQM")],
        workspace_id="ws-1",
        default_team_id="team-sqt",
        url_key="acme",
    )


@pytest.fixture
def build_data() -> RegistryBuildData:
    """Fresh two-team workspace snapshot."""
    return make_build_data()


@pytest.fixture
def registry(build_data) -> ShortKeyRegistry:
    """Registry built from build_data with a fixed build time (stdio)."""
    return ShortKeyRegistry.build(build_data, transport="stdio", generated_at=BUILT_AT)


# ============================================================================
# ENCODING FIXTURES
# ============================================================================


@pytest.fixture
def options() -> ToonEncodingOptions:
    """Encoding options independent of environment configuration."""
    return ToonEncodingOptions(
        indent="  ",
        include_empty_sections=False,
        truncation=TruncationLimits(title=500, desc=3000, default=None),
        truncation_indicator="... [truncated]",
    )


# ============================================================================
# REDIS FIXTURES
# ============================================================================


@pytest.fixture
def mock_redis():
    """
    AsyncMock standing in for a redis.asyncio client.

    get() returns None (cache miss) unless a test overrides it.
    """
    redis = AsyncMock()
    redis.get.return_value = None
    redis.setex.return_value = True
    redis.delete.return_value = 1
    return redis


@pytest.fixture(autouse=True)
def _reset_profiles_cache():
    """Profile loading is cached per path; isolate tests."""
    clear_profiles_cache()
    yield
    clear_profiles_cache()
