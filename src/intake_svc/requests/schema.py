"""Payload shape validation against a kind's JSON Schema."""

from __future__ import annotations

from typing import Any

import jsonschema

from .errors import ValidationError, Violation
from .result import Err, Ok, Result


def check_schema(schema: dict[str, Any]) -> None:
    """
    Verify that a schema is itself a valid Draft-7 schema.

    Raises:
        jsonschema.SchemaError: If the schema is malformed
    """
    jsonschema.Draft7Validator.check_schema(schema)


def _json_path(error: jsonschema.ValidationError) -> str:
    path = "$"
    for part in error.absolute_path:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def validate(schema: dict[str, Any], payload: Any) -> Result[dict[str, Any], ValidationError]:
    """
    Validate a payload against a schema.

    Every violation is reported, not just the first, so the caller can
    fix all problems in one round-trip.

    Returns:
        Ok(payload) when valid, Err(ValidationError) listing all violations
    """
    validator = jsonschema.Draft7Validator(
        schema,
        format_checker=jsonschema.FormatChecker(),
    )
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(map(str, e.absolute_path)))

    if errors:
        return Err(ValidationError([
            Violation(path=_json_path(e), message=e.message, rule=str(e.validator))
            for e in errors
        ]))
    return Ok(payload)
