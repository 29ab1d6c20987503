"""
TOON schema catalog for workspace entities.

Lookup tables (prefixed with `_`) define short keys for entities referenced
many times; data tables hold the main output rows. Canonical ids never
appear in output: users, states and projects are referenced by short key
(u0, s0, pr0), everything else by its natural key (SQT-123, SQT, 5, label
name).
"""

from .types import ToonSchema

# ============================================================================
# Lookup tables
# ============================================================================

USER_LOOKUP_SCHEMA = ToonSchema("_users", ("key", "name", "displayName", "email", "role"))
STATE_LOOKUP_SCHEMA = ToonSchema("_states", ("key", "name", "type"))
PROJECT_LOOKUP_SCHEMA = ToonSchema("_projects", ("key", "name", "state"))
TEAM_LOOKUP_SCHEMA = ToonSchema(
    "_teams", ("key", "name", "cyclesEnabled", "cycleDuration", "estimationType")
)
# num is the natural cycle number, rendered without the c prefix
CYCLE_LOOKUP_SCHEMA = ToonSchema("_cycles", ("num", "name", "start", "end", "active", "progress"))
LABEL_LOOKUP_SCHEMA = ToonSchema("_labels", ("name", "color"))

# ============================================================================
# Data tables
# ============================================================================

ISSUE_SCHEMA = ToonSchema(
    "issues",
    (
        "identifier",
        "title",
        "state",
        "assignee",
        "priority",
        "estimate",
        "project",
        "cycle",
        "dueDate",
        "labels",
        "parent",
        "team",
        "url",
        "desc",
        "createdAt",
        "creator",
    ),
)
COMMENT_SCHEMA = ToonSchema("comments", ("issue", "user", "body", "createdAt"))
RELATION_SCHEMA = ToonSchema("relations", ("from", "type", "to"))
ATTACHMENT_SCHEMA = ToonSchema("attachments", ("issue", "title", "subtitle", "url", "sourceType"))
TEAM_SCHEMA = ToonSchema(
    "teams",
    ("key", "name", "description", "cyclesEnabled", "cycleDuration", "estimationType", "activeCycle"),
)
USER_SCHEMA = ToonSchema("users", ("key", "name", "displayName", "email", "active"))
CYCLE_SCHEMA = ToonSchema("cycles", ("num", "name", "start", "end", "active", "progress"))
PROJECT_SCHEMA = ToonSchema(
    "projects",
    (
        "key",
        "name",
        "description",
        "state",
        "priority",
        "progress",
        "lead",
        "teams",
        "startDate",
        "targetDate",
        "health",
    ),
)
PAGINATION_SCHEMA = ToonSchema("_pagination", ("hasMore", "cursor", "fetched", "total"))

# ============================================================================
# Write results
# ============================================================================

WRITE_RESULT_META_FIELDS = ["action", "succeeded", "failed", "total"]
WRITE_RESULT_SCHEMA = ToonSchema("results", ("index", "status", "identifier", "error"))
CHANGES_SCHEMA = ToonSchema("changes", ("identifier", "field", "before", "after"))

LOOKUP_SCHEMAS = {
    "user": USER_LOOKUP_SCHEMA,
    "state": STATE_LOOKUP_SCHEMA,
    "project": PROJECT_LOOKUP_SCHEMA,
    "team": TEAM_LOOKUP_SCHEMA,
    "cycle": CYCLE_LOOKUP_SCHEMA,
    "label": LABEL_LOOKUP_SCHEMA,
}

DATA_SCHEMAS = {
    "issue": ISSUE_SCHEMA,
    "comment": COMMENT_SCHEMA,
    "relation": RELATION_SCHEMA,
    "attachment": ATTACHMENT_SCHEMA,
    "team": TEAM_SCHEMA,
    "user": USER_SCHEMA,
    "cycle": CYCLE_SCHEMA,
    "project": PROJECT_SCHEMA,
    "pagination": PAGINATION_SCHEMA,
    "write_result": WRITE_RESULT_SCHEMA,
    "changes": CHANGES_SCHEMA,
}
