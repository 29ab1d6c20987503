"""
End-to-end tests: workspace snapshot -> registry -> TOON response -> parsed rows.
"""

import pytest

from conftest import make_build_data
from linear_toon.registry.lookups import (
    build_project_lookup,
    build_state_lookup,
    build_user_lookup,
)
from linear_toon.registry.models import EntityKind, RegistryBuildData, RegistryUser
from linear_toon.registry.registry import ShortKeyRegistry
from linear_toon.toon.decoder import parse_toon
from linear_toon.toon.encoder import encode_response, encode_toon
from linear_toon.toon.formatting import parse_cycle, parse_estimate, parse_priority
from linear_toon.toon.types import ToonMeta, ToonResponse, ToonSchema, ToonSection

ROW_SCHEMA = ToonSchema(
    "issues", ("identifier", "title", "assignee", "priority", "estimate", "cycle")
)


@pytest.fixture
def three_user_registry():
    data = RegistryBuildData(
        users=[
            RegistryUser(id="id-carol", created_at="2024-03-01T00:00:00Z", name="Carol"),
            RegistryUser(id="id-alice", created_at="2024-01-01T00:00:00Z", name="Alice"),
            RegistryUser(id="id-bob", created_at="2024-02-01T00:00:00Z", name="Bob"),
        ]
    )
    return ShortKeyRegistry.build(data)


class TestIssueRow:
    def test_keys_follow_creation_order(self, three_user_registry):
        registry = three_user_registry
        assert registry.resolve(EntityKind.USER, "u0") == "id-alice"
        assert registry.resolve(EntityKind.USER, "u1") == "id-bob"
        assert registry.resolve(EntityKind.USER, "u2") == "id-carol"

    def test_issue_row(self, three_user_registry, options):
        """Assignee Bob, priority 3, no estimate, cycle 5."""
        registry = three_user_registry
        issue = {
            "identifier": "SQT-10",
            "title": "Title",
            "assignee": registry.to_short_key(EntityKind.USER, "id-bob"),
            "priority": 3,
            "estimate": None,
            "cycle": 5,
        }
        output = encode_toon(ToonResponse(data=[ToonSection(ROW_SCHEMA, [issue])]), options)
        assert output.splitlines()[1] == "  SQT-10,Title,u1,p3,,c5"

    def test_row_parses_back(self, three_user_registry, options):
        issue = {
            "identifier": "SQT-10",
            "title": "Title",
            "assignee": "u1",
            "priority": 0,
            "estimate": 2.5,
            "cycle": None,
        }
        output = encode_toon(ToonResponse(data=[ToonSection(ROW_SCHEMA, [issue])]), options)
        row = parse_toon(output).sections["issues"].rows[0]

        assert parse_priority(row["priority"]) == 0
        assert parse_estimate(row["estimate"]) == 2.5
        assert parse_cycle(row["cycle"]) is None
        assert three_user_registry.resolve(EntityKind.USER, row["assignee"]) == "id-bob"


class TestLookups:
    """Lookup tables list only referenced entities, in key order."""

    def test_user_lookup(self, registry):
        section = build_user_lookup(registry, ["user-bob", "user-alice", "user-unknown"])
        assert [item["key"] for item in section.items] == ["u0", "u1"]
        alice = section.items[0]
        assert alice["name"] == "Alice Anders"
        assert alice["role"] == "Tech Lead (Backend)"
        assert section.items[1]["role"] == ""

    def test_state_lookup_uses_team_prefix(self, registry):
        section = build_state_lookup(registry, ["state-sqm-backlog", "state-todo"])
        assert section.items == [
            {"key": "s0", "name": "Todo", "type": "unstarted"},
            {"key": "sqm:s0", "name": "Backlog", "type": "backlog"},
        ]

    def test_project_lookup(self, registry):
        section = build_project_lookup(registry, ["proj-launch", None])
        assert section.items == [{"key": "pr1", "name": "Q1 Launch", "state": "started"}]

    def test_full_response(self, registry, options):
        issues = [
            {
                "identifier": "SQT-1",
                "title": "Ship it",
                "state": registry.to_short_key(EntityKind.STATE, "state-todo"),
                "assignee": registry.to_short_key(EntityKind.USER, "user-alice"),
                "project": registry.to_short_key(EntityKind.PROJECT, "proj-launch"),
            }
        ]
        response = ToonResponse(
            meta=ToonMeta(["tool", "count"], {"tool": "list_issues", "count": 1}),
            lookups=[
                build_user_lookup(registry, ["user-alice"]),
                build_state_lookup(registry, ["state-todo"]),
                build_project_lookup(registry, []),
            ],
            data=[
                ToonSection(
                    ToonSchema("issues", ("identifier", "title", "state", "assignee", "project")),
                    issues,
                )
            ],
        )

        output = encode_response(issues, response, options)
        parsed = parse_toon(output)

        assert list(parsed.sections) == ["_meta", "_users", "_states", "issues"]
        assert parsed.sections["issues"].rows[0] == {
            "identifier": "SQT-1",
            "title": "Ship it",
            "state": "s0",
            "assignee": "u0",
            "project": "pr1",
        }
        assert "_projects" not in output

    def test_registry_snapshot_round_trip(self, build_data):
        """Registry rebuilt from serialized build data assigns the same keys."""
        first = ShortKeyRegistry.build(build_data)
        second = ShortKeyRegistry.build(RegistryBuildData.from_dict(make_build_data().to_dict()))

        for kind in EntityKind:
            assert first.list_short_keys(kind) == second.list_short_keys(kind)
            for key in first.list_short_keys(kind):
                assert first.resolve(kind, key) == second.resolve(kind, key)
