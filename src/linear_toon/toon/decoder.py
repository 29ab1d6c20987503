"""
TOON text parser, the inverse of the encoder.

Values come back as strings; use formatting.parse_priority() and friends to
recover numbers from prefixed fields.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

_HEADER = re.compile(r"^(\S+?)(?:\[(\d+)\])?\{([^}]+)\}:\s*$")


@dataclass
class ParsedSection:
    """A parsed section: header metadata plus rows keyed by field name."""

    name: str
    count: Optional[int]
    fields: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)


@dataclass
class ParsedToon:
    """Parsed TOON text; meta is the flattened `_meta` row."""

    meta: dict[str, str] = field(default_factory=dict)
    sections: dict[str, ParsedSection] = field(default_factory=dict)


def split_values(line: str) -> list[str]:
    """
    Split a data row into values.

    Handles quoted values containing commas and the escapes \\" \\\\ \\n.
    """
    values = []
    current = []
    quoted = False
    escape = False

    for char in line:
        if escape:
            current.append("\n" if char == "n" else char)
            escape = False
        elif quoted:
            if char == "\\":
                escape = True
            elif char == '"':
                quoted = False
            else:
                current.append(char)
        elif char == ",":
            values.append("".join(current))
            current = []
        elif char == '"' and not current:
            quoted = True
        else:
            current.append(char)

    values.append("".join(current))
    return values


def parse_header(line: str) -> Optional[tuple[str, Optional[int], list[str]]]:
    match = _HEADER.match(line)
    if not match:
        return None
    count = int(match.group(2)) if match.group(2) is not None else None
    return match.group(1), count, match.group(3).split(",")


def parse_toon(text: str, indent: str = "  ") -> ParsedToon:
    """
    Parse a TOON document.

    Raises:
        ValueError: If the text is a JSON fallback document
    """
    stripped = text.strip()
    if stripped.startswith("{"):
        raise ValueError("Received JSON fallback instead of TOON output")

    parsed = ParsedToon()
    section: Optional[ParsedSection] = None

    for raw in text.strip("\n").split("\n"):
        if raw.startswith(indent):
            # Indented lines are always rows; a bare indent is one empty value
            line = raw[len(indent) :]
        else:
            if not raw.strip():
                continue
            header = parse_header(raw.strip())
            if header is not None:
                name, count, fields = header
                section = ParsedSection(name=name, count=count, fields=fields)
                parsed.sections[name] = section
                continue
            line = raw.strip()

        if section is None:
            continue
        values = split_values(line)
        section.rows.append(
            {f: values[i] if i < len(values) else "" for i, f in enumerate(section.fields)}
        )

    meta = parsed.sections.get("_meta")
    if meta is not None and meta.rows:
        parsed.meta = dict(meta.rows[0])
    return parsed
