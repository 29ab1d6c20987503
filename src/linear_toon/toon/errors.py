"""
Structured errors for short key resolution, registry lifecycle and encoding.

Every failure is a ToonError carrying a machine-readable code, a message,
an actionable hint and a suggestion. The kind-specific payload lives in
exactly one of three detail records:

- ResolutionDetails: entity_type, short_key, available_keys
- RegistryDetails: session_id
- EncodingDetails: schema_name, field_name, row_index

error_to_dict() is the single JSON projection for all kinds.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

MAX_HINT_KEYS = 10


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    RESOLUTION = "ToonResolutionError"
    REGISTRY = "ToonRegistryError"
    ENCODING = "ToonEncodingError"


class ResolutionErrorCode(str, Enum):
    UNKNOWN_SHORT_KEY = "UNKNOWN_SHORT_KEY"
    INVALID_KEY_FORMAT = "INVALID_KEY_FORMAT"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    AMBIGUOUS_KEY = "AMBIGUOUS_KEY"


class RegistryErrorCode(str, Enum):
    REGISTRY_INIT_FAILED = "REGISTRY_INIT_FAILED"
    REGISTRY_STALE = "REGISTRY_STALE"
    REGISTRY_CORRUPT = "REGISTRY_CORRUPT"
    WORKSPACE_FETCH_FAILED = "WORKSPACE_FETCH_FAILED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"


class EncodingErrorCode(str, Enum):
    ENCODING_FAILED = "ENCODING_FAILED"
    INVALID_SCHEMA = "INVALID_SCHEMA"
    INVALID_DATA = "INVALID_DATA"
    FIELD_MISMATCH = "FIELD_MISMATCH"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"


@dataclass(frozen=True)
class ResolutionDetails:
    code: ResolutionErrorCode
    entity_type: Optional[str] = None
    short_key: Optional[str] = None
    available_keys: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RegistryDetails:
    code: RegistryErrorCode
    session_id: Optional[str] = None


@dataclass(frozen=True)
class EncodingDetails:
    code: EncodingErrorCode
    schema_name: Optional[str] = None
    field_name: Optional[str] = None
    row_index: Optional[int] = None


ErrorDetails = Union[ResolutionDetails, RegistryDetails, EncodingDetails]

_KIND_BY_DETAILS = {
    ResolutionDetails: ErrorKind.RESOLUTION,
    RegistryDetails: ErrorKind.REGISTRY,
    EncodingDetails: ErrorKind.ENCODING,
}


class ToonError(Exception):
    """
    Actionable error raised by the registry, the store and the encoder.

    Attributes:
        message: Human-readable description
        details: Kind-specific payload (also holds the error code)
        hint: What the caller can look at to fix the problem
        suggestion: Concrete next action
        cause: Underlying error message, if any
    """

    def __init__(
        self,
        message: str,
        details: ErrorDetails,
        hint: Optional[str] = None,
        suggestion: Optional[str] = None,
        cause: Optional[str] = None,
    ):
        if type(details) not in _KIND_BY_DETAILS:
            raise TypeError(f"Unsupported error details: {type(details).__name__}")
        super().__init__(message)
        self.message = message
        self.details = details
        self.hint = hint
        self.suggestion = suggestion
        self.cause = cause

    @property
    def kind(self) -> ErrorKind:
        return _KIND_BY_DETAILS[type(self.details)]

    @property
    def code(self) -> str:
        return self.details.code.value

    def to_dict(self) -> dict[str, Any]:
        return error_to_dict(self)

    def __repr__(self) -> str:
        return f"ToonError(kind={self.kind.value}, code={self.code}, message={self.message!r})"


def error_to_dict(error: ToonError) -> dict[str, Any]:
    """
    Project a ToonError into its structured JSON shape.

    Returns:
        Dict with error, code, message, hint, suggestion, cause plus the
        kind-specific fields in camelCase.
    """
    payload: dict[str, Any] = {
        "error": error.kind.value,
        "code": error.code,
        "message": error.message,
        "hint": error.hint,
        "suggestion": error.suggestion,
        "cause": error.cause,
    }
    details = error.details
    if isinstance(details, ResolutionDetails):
        payload["entityType"] = details.entity_type
        payload["shortKey"] = details.short_key
        payload["availableKeys"] = list(details.available_keys)
    elif isinstance(details, RegistryDetails):
        payload["sessionId"] = details.session_id
    else:
        payload["schemaName"] = details.schema_name
        payload["fieldName"] = details.field_name
        payload["rowIndex"] = details.row_index
    return payload


# ============================================================================
# Factories
# ============================================================================

KEY_PREFIXES = {"user": "u", "state": "s", "project": "pr"}

_REFRESH_SUGGESTION = "Call workspace_metadata to refresh available options"


def _format_key_hint(available_keys: list[str]) -> str:
    shown = ", ".join(available_keys[:MAX_HINT_KEYS])
    more = "..." if len(available_keys) > MAX_HINT_KEYS else ""
    return f"Available keys: {shown}{more}" if shown else "No keys are registered"


def unknown_short_key_error(
    entity_type: str, short_key: str, available_keys: list[str]
) -> ToonError:
    """Build UNKNOWN_SHORT_KEY for a well-formed key that is not assigned."""
    return ToonError(
        f"Unknown {entity_type} key '{short_key}'",
        ResolutionDetails(
            code=ResolutionErrorCode.UNKNOWN_SHORT_KEY,
            entity_type=entity_type,
            short_key=short_key,
            available_keys=available_keys[:MAX_HINT_KEYS],
        ),
        hint=_format_key_hint(available_keys),
        suggestion=_REFRESH_SUGGESTION,
    )


def invalid_key_format_error(
    entity_type: str, short_key: str, available_keys: list[str]
) -> ToonError:
    """Build INVALID_KEY_FORMAT for a key that does not match ^{prefix}\\d+$."""
    prefix = KEY_PREFIXES.get(entity_type, "")
    return ToonError(
        f"Invalid {entity_type} key format '{short_key}'",
        ResolutionDetails(
            code=ResolutionErrorCode.INVALID_KEY_FORMAT,
            entity_type=entity_type,
            short_key=short_key,
            available_keys=available_keys[:MAX_HINT_KEYS],
        ),
        hint=(
            f"{entity_type.capitalize()} keys should be in format '{prefix}N' "
            f"(e.g., {prefix}0, {prefix}1). {_format_key_hint(available_keys)}"
        ),
        suggestion="Use the correct key format or call workspace_metadata to see available keys",
    )


def entity_not_found_error(entity_type: str, canonical_id: str, sample_ids: list[str], total: int) -> ToonError:
    """Build ENTITY_NOT_FOUND for a canonical id with no assigned key."""
    more = "..." if total > len(sample_ids) else ""
    return ToonError(
        f"ID '{canonical_id}' not found in {entity_type} registry",
        ResolutionDetails(code=ResolutionErrorCode.ENTITY_NOT_FOUND, entity_type=entity_type),
        hint=f"Registry contains {total} {entity_type}(s). Sample IDs: {', '.join(sample_ids)}{more}",
        suggestion=(
            "The entity may have been created after registry initialization. "
            "Call workspace_metadata({ forceRefresh: true }) to refresh."
        ),
    )


def registry_error(
    code: RegistryErrorCode,
    message: str,
    session_id: Optional[str] = None,
    cause: Optional[str] = None,
    hint: Optional[str] = None,
) -> ToonError:
    """Build a registry lifecycle error."""
    return ToonError(
        message,
        RegistryDetails(code=code, session_id=session_id),
        hint=hint or "Check workspace API connectivity and authentication",
        suggestion="Refresh workspace metadata and retry the call",
        cause=cause,
    )


def encoding_error(
    code: EncodingErrorCode,
    message: str,
    schema_name: Optional[str] = None,
    field_name: Optional[str] = None,
    row_index: Optional[int] = None,
    hint: Optional[str] = None,
    cause: Optional[str] = None,
) -> ToonError:
    """Build an encoding error."""
    return ToonError(
        message,
        EncodingDetails(
            code=code, schema_name=schema_name, field_name=field_name, row_index=row_index
        ),
        hint=hint or "Ensure data objects have all fields defined in schema",
        suggestion="The response will fall back to JSON; report the schema mismatch",
        cause=cause,
    )
