"""
TOON encoder.

Renders a ToonResponse into wire text:
- Meta header:   `_meta{field1,field2}:` followed by one value line
- Section header: `name[count]{field1,field2}:` followed by one line per item
- Lookup tables (prefixed with `_`) come before data sections
- Sections are separated by a blank line

safe_encode() and encode_response() never raise: failures become an
EncodingResult or a lossless JSON fallback.
"""

import json
import re
from typing import Any, Mapping, Optional

from loguru import logger

from ..autolink import strip_issue_urls, strip_markdown_images, strip_project_urls
from .errors import EncodingErrorCode, ToonError, encoding_error
from .formatting import classify_field, format_field
from .types import (
    EncodingResult,
    FallbackResponse,
    FieldClass,
    ToonEncodingOptions,
    ToonMeta,
    ToonResponse,
    ToonSchema,
    ToonSection,
)

_SECTION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")
_FIELD_NAME = re.compile(r"^[^\s,{}\[\]:]+$")


def validate_schema(schema: ToonSchema) -> None:
    """
    Check a schema is renderable.

    Raises:
        ToonError: INVALID_SCHEMA for empty/malformed names or duplicate fields
    """
    if not schema.name or not _SECTION_NAME.match(schema.name):
        raise encoding_error(
            EncodingErrorCode.INVALID_SCHEMA,
            f"Invalid section name '{schema.name}'",
            schema_name=schema.name,
            hint="Section names must start with a letter or underscore and contain no spaces",
        )
    if not schema.fields:
        raise encoding_error(
            EncodingErrorCode.INVALID_SCHEMA,
            f"Schema '{schema.name}' declares no fields",
            schema_name=schema.name,
        )
    seen = set()
    for field_name in schema.fields:
        if not isinstance(field_name, str) or not _FIELD_NAME.match(field_name):
            raise encoding_error(
                EncodingErrorCode.INVALID_SCHEMA,
                f"Invalid field name {field_name!r} in schema '{schema.name}'",
                schema_name=schema.name,
                field_name=str(field_name),
            )
        if field_name in seen:
            raise encoding_error(
                EncodingErrorCode.INVALID_SCHEMA,
                f"Duplicate field '{field_name}' in schema '{schema.name}'",
                schema_name=schema.name,
                field_name=field_name,
            )
        seen.add(field_name)


def validate_row(row: Mapping[str, Any], schema: ToonSchema) -> list[str]:
    """
    Return schema fields missing from a row (empty list if valid).
    """
    return [field_name for field_name in schema.fields if field_name not in row]


def _strip_rich_text(value: str, options: ToonEncodingOptions) -> str:
    value = strip_issue_urls(value)
    value = strip_project_urls(value, options.project_slug_map)
    return strip_markdown_images(value)


def encode_row(
    row: Mapping[str, Any],
    schema: ToonSchema,
    options: Optional[ToonEncodingOptions] = None,
    row_index: Optional[int] = None,
) -> str:
    """
    Encode one row in schema field order (without the leading indent).

    Missing fields render as empty values; use validate_row() or
    safe_encode() to reject them instead.
    """
    options = options or ToonEncodingOptions()
    values = []
    for field_name in schema.fields:
        value = row.get(field_name)
        field_class = classify_field(field_name, schema.field_classes)
        if field_class is FieldClass.DESCRIPTION and isinstance(value, str):
            value = _strip_rich_text(value, options)
        try:
            encoded = format_field(
                value,
                field_class,
                limits=options.truncation,
                indicator=options.truncation_indicator,
                field_name=field_name,
            )
        except ToonError as exc:
            raise encoding_error(
                exc.details.code,
                f"{exc.message} in section '{schema.name}'"
                + (f" row {row_index}" if row_index is not None else ""),
                schema_name=schema.name,
                field_name=field_name,
                row_index=row_index,
                hint=exc.hint,
            ) from exc
        values.append(encoded)
    return ",".join(values)


def encode_section(section: ToonSection, options: Optional[ToonEncodingOptions] = None) -> str:
    """
    Encode a section header plus its rows.

    Returns:
        Encoded section, or "" for an empty section unless
        include_empty_sections is set
    """
    options = options or ToonEncodingOptions()
    schema, items = section.schema, section.items

    if not items and not options.include_empty_sections:
        return ""

    lines = [schema.header(len(items))]
    for index, item in enumerate(items):
        lines.append(f"{options.indent}{encode_row(item, schema, options, index)}")
    return "\n".join(lines)


def encode_meta(meta: ToonMeta, options: Optional[ToonEncodingOptions] = None) -> str:
    """Encode the `_meta{...}:` header and its single value line."""
    options = options or ToonEncodingOptions()
    schema = ToonSchema(name="_meta", fields=tuple(meta.fields))
    values = [
        format_field(meta.values.get(name), classify_field(name), field_name=name)
        for name in meta.fields
    ]
    return f"{schema.header()}\n{options.indent}{','.join(values)}"


def encode_toon(response: ToonResponse, options: Optional[ToonEncodingOptions] = None) -> str:
    """
    Encode a complete response: meta, then lookups, then data sections.

    Raises:
        ToonError: on unsupported values
    """
    options = options or ToonEncodingOptions()
    blocks = []

    if response.meta is not None:
        blocks.append(encode_meta(response.meta, options))

    for section in response.sections():
        encoded = encode_section(section, options)
        if encoded:
            blocks.append(encoded)

    return "\n\n".join(blocks)


def _check_response(response: ToonResponse) -> None:
    if response.meta is not None:
        validate_schema(ToonSchema(name="_meta", fields=tuple(response.meta.fields)))
    for section in response.lookups:
        if not section.schema.is_lookup:
            raise encoding_error(
                EncodingErrorCode.INVALID_SCHEMA,
                f"Lookup section '{section.schema.name}' must be prefixed with '_'",
                schema_name=section.schema.name,
                hint="Lookup tables are named like _users or _states",
            )
    for section in response.sections():
        validate_schema(section.schema)
        for index, row in enumerate(section.items):
            if not isinstance(row, Mapping):
                raise encoding_error(
                    EncodingErrorCode.INVALID_DATA,
                    f"Row {index} in section '{section.schema.name}' is "
                    f"{type(row).__name__}, expected a mapping",
                    schema_name=section.schema.name,
                    row_index=index,
                )
            missing = validate_row(row, section.schema)
            if missing:
                raise encoding_error(
                    EncodingErrorCode.FIELD_MISMATCH,
                    f"Row {index} in section '{section.schema.name}' is missing fields: "
                    f"{', '.join(missing)}",
                    schema_name=section.schema.name,
                    field_name=missing[0],
                    row_index=index,
                )


def safe_encode(
    response: ToonResponse, options: Optional[ToonEncodingOptions] = None
) -> EncodingResult:
    """
    Validate and encode, reporting failure instead of raising.

    Returns:
        EncodingResult with output on success, or error and error_code
    """
    try:
        _check_response(response)
        return EncodingResult(success=True, output=encode_toon(response, options))
    except ToonError as exc:
        return EncodingResult(success=False, error=exc.message, error_code=exc.code)
    except Exception as exc:
        return EncodingResult(
            success=False,
            error=f"{type(exc).__name__}: {exc}",
            error_code=EncodingErrorCode.ENCODING_FAILED.value,
        )


def encode_response(
    data: Any,
    response: ToonResponse,
    options: Optional[ToonEncodingOptions] = None,
) -> str:
    """
    Encode to TOON, falling back to JSON on failure.

    The fallback carries the untransformed data so no information is lost.

    Args:
        data: Original data the response was built from
        response: TOON response structure
        options: Encoding options

    Returns:
        TOON text, or a JSON document with _fallback, _reason and data
    """
    result = safe_encode(response, options)
    if result.success:
        return result.output

    logger.error(f"TOON encoding failed ({result.error_code}), falling back to JSON: {result.error}")
    fallback = FallbackResponse(reason=result.error or "Unknown encoding error", data=data)
    return json.dumps(fallback.to_dict(), indent=2, default=str)
