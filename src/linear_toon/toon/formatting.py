"""
Value formatting for TOON rows.

Field classes decide how a value is rendered:

    priority   2                 -> p2
    estimate   5                 -> e5
    cycle      5                 -> c5
    date       2026-01-26T10:00Z -> 2026-01-26
    timestamp  datetime          -> 2026-01-27T12:00:00.000Z
    progress   0.2734            -> 0.27
    any        True              -> true
    any        None              -> (empty)

Only text classes (title, description, text) are truncated.
"""

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from .errors import EncodingErrorCode, encoding_error
from .types import FieldClass, TruncationLimits

Number = Union[int, float, Decimal]

_QUOTE_TRIGGERS = re.compile(r'[,"\n\r\\]')
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

_FIELD_CLASSES_BY_NAME: dict[str, FieldClass] = {
    "title": FieldClass.TITLE,
    "desc": FieldClass.DESCRIPTION,
    "description": FieldClass.DESCRIPTION,
    "body": FieldClass.DESCRIPTION,
    "priority": FieldClass.PRIORITY,
    "estimate": FieldClass.ESTIMATE,
    "cycle": FieldClass.CYCLE,
    "due": FieldClass.DATE,
    "dueDate": FieldClass.DATE,
    "targetDate": FieldClass.DATE,
    "startDate": FieldClass.DATE,
    "start": FieldClass.DATE,
    "end": FieldClass.DATE,
    "startsAt": FieldClass.DATE,
    "endsAt": FieldClass.DATE,
    "createdAt": FieldClass.TIMESTAMP,
    "updatedAt": FieldClass.TIMESTAMP,
    "completedAt": FieldClass.TIMESTAMP,
    "archivedAt": FieldClass.TIMESTAMP,
    "generated": FieldClass.TIMESTAMP,
    "active": FieldClass.BOOLEAN,
    "cyclesEnabled": FieldClass.BOOLEAN,
    "hasMore": FieldClass.BOOLEAN,
    "progress": FieldClass.PROGRESS,
}

_NUMERIC_PREFIXES = {
    FieldClass.PRIORITY: "p",
    FieldClass.ESTIMATE: "e",
    FieldClass.CYCLE: "c",
}

_TEXT_CLASSES = (FieldClass.TEXT, FieldClass.TITLE, FieldClass.DESCRIPTION)

PROGRESS_PRECISION = 2


def classify_field(name: str, overrides: Optional[Mapping[str, FieldClass]] = None) -> FieldClass:
    """Field class for a schema field, honoring per-schema overrides."""
    if overrides and name in overrides:
        return overrides[name]
    return _FIELD_CLASSES_BY_NAME.get(name, FieldClass.TEXT)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def format_number(value: Number) -> str:
    """Render a number; NaN and infinities render empty."""
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return ""
        return format(value.normalize(), "f")
    return str(value)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: Union[datetime, date]) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    value = _to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def format_date(value: Any) -> str:
    """Calendar date (YYYY-MM-DD) for datetimes, dates and ISO strings."""
    if isinstance(value, datetime):
        return _to_utc(value).date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str) and _ISO_DATE_PREFIX.match(value):
        if len(value) == 10:
            return value
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value[:10]
        return _to_utc(parsed).date().isoformat() if parsed.tzinfo else parsed.date().isoformat()
    return value


def format_progress(value: Number) -> str:
    """Completion ratio rounded to PROGRESS_PRECISION decimals."""
    return format_number(round(float(value), PROGRESS_PRECISION))


def format_priority(priority: Optional[Number]) -> Optional[str]:
    """format_priority(1) -> "p1"; None stays None (renders empty)."""
    return None if priority is None else f"p{format_number(priority)}"


def format_estimate(estimate: Optional[Number]) -> Optional[str]:
    """format_estimate(5) -> "e5"."""
    return None if estimate is None else f"e{format_number(estimate)}"


def format_cycle(cycle_number: Optional[Number]) -> Optional[str]:
    """format_cycle(5) -> "c5"."""
    return None if cycle_number is None else f"c{format_number(cycle_number)}"


def _parse_prefixed(value: Optional[str], prefix: str) -> Optional[Number]:
    if value is None or value == "":
        return None
    if not value.startswith(prefix):
        raise ValueError(f"Expected '{prefix}' prefixed value, got '{value}'")
    body = value[len(prefix) :]
    try:
        return int(body)
    except ValueError:
        pass
    try:
        return float(body)
    except ValueError:
        raise ValueError(f"Invalid numeric value after '{prefix}': '{value}'") from None


def parse_priority(value: Optional[str]) -> Optional[Number]:
    """Inverse of format_priority: "p2" -> 2, "" -> None."""
    return _parse_prefixed(value, "p")


def parse_estimate(value: Optional[str]) -> Optional[Number]:
    """Inverse of format_estimate: "e5" -> 5, "" -> None."""
    return _parse_prefixed(value, "e")


def parse_cycle(value: Optional[str]) -> Optional[Number]:
    """Inverse of format_cycle: "c5" -> 5, "" -> None."""
    return _parse_prefixed(value, "c")


def truncate_text(value: str, limit: Optional[int], indicator: str) -> str:
    """
    Cut value so that value + indicator fits within limit.

    A value that already ends with the indicator never receives a second one,
    so truncating an already-truncated value at the same limit is a no-op.
    """
    if limit is None or len(value) <= limit:
        return value
    body = value[: -len(indicator)] if indicator and value.endswith(indicator) else value
    cut = limit - len(indicator)
    if cut <= 0:
        return indicator
    return body[:cut] + indicator


def truncation_limit(field_class: FieldClass, limits: TruncationLimits) -> Optional[int]:
    if field_class is FieldClass.TITLE:
        return limits.title
    if field_class is FieldClass.DESCRIPTION:
        return limits.desc
    if field_class is FieldClass.TEXT:
        return limits.default
    return None


def escape_text(value: str) -> str:
    """
    Quote a string when it holds a delimiter.

    Escaping rules:
    1. Backslashes -> \\\\ (first, before other escapes)
    2. Double quotes -> \\"
    3. CRLF / CR / LF -> \\n literal
    4. Wrap in double quotes
    """
    if not value or not _QUOTE_TRIGGERS.search(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("\r\n", "\\n").replace("\r", "\\n").replace("\n", "\\n")
    return f'"{escaped}"'


def _unsupported(value: Any, field_name: Optional[str]):
    return encoding_error(
        EncodingErrorCode.UNSUPPORTED_TYPE,
        f"Unsupported value type '{type(value).__name__}'"
        + (f" for field '{field_name}'" if field_name else ""),
        field_name=field_name,
        hint="Supported types: str, int, float, Decimal, bool, date, datetime, None, and lists of these",
    )


def _scalar_text(value: Any, field_name: Optional[str]) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return format_number(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value
    raise _unsupported(value, field_name)


def encode_list(values: Union[list, tuple], field_name: Optional[str] = None) -> str:
    """Join non-null items with commas, quoting the result when needed."""
    items = []
    for item in values:
        if item is None:
            continue
        if isinstance(item, (list, tuple)):
            raise _unsupported(item, field_name)
        text = _scalar_text(item, field_name)
        if isinstance(item, str):
            text = text.replace("\\", "\\\\").replace('"', '\\"')
            text = text.replace("\r\n", "\\n").replace("\r", "\\n").replace("\n", "\\n")
        items.append(text)
    joined = ",".join(items)
    if _QUOTE_TRIGGERS.search(joined):
        return f'"{joined}"'
    return joined


def encode_value(value: Any, field_name: Optional[str] = None) -> str:
    """
    Encode a single value with no field-class formatting.

    Raises:
        ToonError: UNSUPPORTED_TYPE for dicts, sets, bytes and other objects
    """
    if isinstance(value, (list, tuple)):
        return encode_list(value, field_name)
    return escape_text(_scalar_text(value, field_name))


def format_field(
    value: Any,
    field_class: FieldClass,
    limits: Optional[TruncationLimits] = None,
    indicator: str = "",
    field_name: Optional[str] = None,
) -> str:
    """
    Format, truncate and escape one value according to its field class.

    Args:
        value: Raw row value
        field_class: Class from classify_field()
        limits: Truncation limits (None disables truncation)
        indicator: Truncation indicator
        field_name: Used in error reporting only

    Returns:
        Encoded value ready to join into a row
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"

    prefix = _NUMERIC_PREFIXES.get(field_class)
    if prefix is not None and _is_number(value):
        return f"{prefix}{format_number(value)}"
    if field_class is FieldClass.PROGRESS and _is_number(value):
        return format_progress(value)
    if field_class is FieldClass.DATE and isinstance(value, (date, str)):
        return escape_text(format_date(value))
    if field_class is FieldClass.TIMESTAMP and isinstance(value, date):
        return format_timestamp(value)

    if isinstance(value, str) and limits is not None and field_class in _TEXT_CLASSES:
        value = truncate_text(value, truncation_limit(field_class, limits), indicator)

    return encode_value(value, field_name)
