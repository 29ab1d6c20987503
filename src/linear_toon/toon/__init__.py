"""TOON (Token-Oriented Object Notation) encoding.

Tabular text output for LLM tool responses: one header per section
declaring its fields, then one comma-separated line per row.
"""

from .decoder import ParsedSection, ParsedToon, parse_toon
from .encoder import encode_response, encode_section, encode_toon, safe_encode
from .errors import ToonError, error_to_dict
from .types import (
    EncodingResult,
    FieldClass,
    ToonEncodingOptions,
    ToonMeta,
    ToonResponse,
    ToonSchema,
    ToonSection,
)

__all__ = [
    "EncodingResult",
    "FieldClass",
    "ParsedSection",
    "ParsedToon",
    "ToonEncodingOptions",
    "ToonError",
    "ToonMeta",
    "ToonResponse",
    "ToonSchema",
    "ToonSection",
    "encode_response",
    "encode_section",
    "encode_toon",
    "error_to_dict",
    "parse_toon",
    "safe_encode",
]
