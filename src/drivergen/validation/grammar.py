"""Structural check of memconfig.json against the schema grammar."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from drivergen.models.memconfig import Memconfig
from drivergen.models.validation import Component, Severity, ValidationIssue

_VALUE_ERROR_PREFIX = "Value error, "


def parse_memconfig(schema: str | dict[str, Any]) -> tuple[Memconfig | None, list[ValidationIssue]]:
    """Parse *schema* into a :class:`Memconfig`.

    Returns the parsed memconfig and an empty list, or ``None`` and one issue
    per structural violation (a single issue when the text is not JSON).
    """
    if isinstance(schema, str):
        try:
            data = json.loads(schema)
        except json.JSONDecodeError as exc:
            message = f"Schema is not valid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"
            return None, [
                ValidationIssue(
                    component=Component.SCHEMA,
                    message=message,
                    severity=Severity.ERROR,
                    suggestion="Return the complete memconfig.json as a single valid JSON object",
                )
            ]
    else:
        data = schema

    try:
        return Memconfig.model_validate(data), []
    except ValidationError as exc:
        return None, [_issue_from_error(err) for err in exc.errors()]


def _issue_from_error(error: Any) -> ValidationIssue:
    message = str(error.get("msg", "Invalid schema"))
    if message.startswith(_VALUE_ERROR_PREFIX):
        message = message[len(_VALUE_ERROR_PREFIX):]
    path = [str(part) for part in error.get("loc", ())]
    location = ".".join(path) if path else "<root>"
    return ValidationIssue(
        component=Component.SCHEMA,
        message=f"{message} at {location}",
        path=path,
        severity=Severity.ERROR,
        suggestion=f"Fix the schema validation error: {message}",
    )
