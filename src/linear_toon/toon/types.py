"""
Data models for TOON encoding.

A response is rendered as:

    _meta{version,team}:
      1,SQT
    _users[2]{key,name,email}:
      u0,Alice,alice@x.com
      u1,Bob,bob@x.com

    issues[1]{identifier,title,assignee,priority}:
      SQT-1,Fix bug,u0,p2
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ..config import Config


class FieldClass(str, Enum):
    """Formatting class of a schema field."""

    TEXT = "text"
    TITLE = "title"
    DESCRIPTION = "description"
    PRIORITY = "priority"
    ESTIMATE = "estimate"
    CYCLE = "cycle"
    DATE = "date"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    PROGRESS = "progress"


@dataclass(frozen=True)
class ToonSchema:
    """
    Schema for a TOON section.

    Invariants:
    - name is not empty and contains no whitespace or header delimiters
    - fields is non-empty and has no duplicates
    - rows are rendered in exactly this field order

    field_classes overrides the class inferred from a field name
    (e.g. a "num" field that should render as a cycle).
    """

    name: str
    fields: tuple[str, ...]
    field_classes: Mapping[str, FieldClass] = field(default_factory=dict)

    def __post_init__(self):
        # Accept lists for convenience, store an immutable tuple
        object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def is_lookup(self) -> bool:
        return self.name.startswith("_")

    def header(self, count: Optional[int] = None) -> str:
        size = f"[{count}]" if count is not None else ""
        return f"{self.name}{size}{{{','.join(self.fields)}}}:"


@dataclass
class ToonSection:
    """Schema plus rows; each row maps every schema field to a value."""

    schema: ToonSchema
    items: list[Mapping[str, Any]] = field(default_factory=list)


@dataclass
class ToonMeta:
    """Metadata section; always rendered first."""

    fields: list[str]
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToonResponse:
    """Complete response: metadata, lookup tables, then data sections."""

    meta: Optional[ToonMeta] = None
    lookups: list[ToonSection] = field(default_factory=list)
    data: list[ToonSection] = field(default_factory=list)

    def sections(self) -> list[ToonSection]:
        return [*self.lookups, *self.data]


@dataclass
class TruncationLimits:
    """Max characters per text field class (None means no limit)."""

    title: Optional[int] = None
    desc: Optional[int] = None
    default: Optional[int] = None

    @classmethod
    def from_config(cls) -> "TruncationLimits":
        return cls(
            title=Config.TOON_TITLE_MAX,
            desc=Config.TOON_DESC_MAX,
            default=Config.TOON_DEFAULT_MAX,
        )


@dataclass
class ToonEncodingOptions:
    """
    Encoding options.

    project_slug_map comes from ShortKeyRegistry.project_slug_map(); when
    None, project URLs in description fields are left as-is.
    """

    indent: str = field(default_factory=lambda: Config.TOON_INDENT)
    include_empty_sections: bool = field(
        default_factory=lambda: Config.TOON_INCLUDE_EMPTY_SECTIONS
    )
    truncation: TruncationLimits = field(default_factory=TruncationLimits.from_config)
    truncation_indicator: str = field(default_factory=lambda: Config.TOON_TRUNCATION_INDICATOR)
    project_slug_map: Optional[Mapping[str, str]] = None


@dataclass
class EncodingResult:
    """Outcome of safe_encode(); never raised past the encoder."""

    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class FallbackResponse:
    """Lossless JSON fallback used when TOON encoding fails."""

    reason: str
    data: Any
    fallback: str = "json"

    def to_dict(self) -> dict[str, Any]:
        return {"_fallback": self.fallback, "_reason": self.reason, "data": self.data}
