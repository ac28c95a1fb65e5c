"""Schema validation for task records.

``validate_task`` checks a candidate record (a raw mapping, as read from a
log line or assembled by a caller) against the Task model and reports each
failure as a :class:`FieldError` with a dot/bracket field path such as
``relations[0].as-type``. The functions here are pure: they report problems
but never modify data.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from tasklog.errors import TaskValidationError

from .models import Task

_TYPE_NAMES = {
    "int_type": "integer",
    "int_parsing": "integer",
    "string_type": "string",
    "dict_type": "map",
    "list_type": "list",
    "model_type": "map",
    "model_attributes_type": "map",
}


@dataclass(frozen=True)
class FieldError:
    """A single schema violation."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"

    def to_dict(self) -> dict[str, str]:
        return {"field": self.path, "reason": self.reason}


def format_field_path(loc: Sequence[str | int]) -> str:
    """Format a pydantic error location as ``relations[0].as-type``."""
    path = ""
    for element in loc:
        if isinstance(element, int):
            path += f"[{element}]"
        elif element == "[key]":
            path += element
        elif path:
            path += f".{element}"
        else:
            path = str(element)
    return path or "record"


def _format_reason(error: Mapping[str, Any]) -> str:
    kind = error["type"]
    value = error.get("input")
    ctx = error.get("ctx") or {}

    if kind == "missing":
        return "missing required field"
    if kind == "enum":
        return f"invalid value {value!r} (expected one of: {ctx.get('expected', '')})"
    if kind in _TYPE_NAMES:
        return (
            f"invalid type (got {type(value).__name__}: {value!r}, "
            f"expected {_TYPE_NAMES[kind]})"
        )
    if kind == "value_error" and "error" in ctx:
        return str(ctx["error"])
    return f"invalid value {value!r} ({error['msg']})"


def validate_task(record: Any) -> list[FieldError]:
    """Validate a record against the Task schema.

    Accepts a raw mapping or an existing :class:`Task` (which is checked
    again in its serialized form, since copies made with ``model_copy``
    bypass validation).

    Returns:
        An empty list when the record is valid, otherwise one FieldError
        per violation.
    """
    if isinstance(record, Task):
        record = record.to_dict()
    try:
        Task.model_validate(record)
    except ValidationError as exc:
        return [
            FieldError(path=format_field_path(err["loc"]), reason=_format_reason(err))
            for err in exc.errors()
        ]
    return []


def is_valid_task(record: Any) -> bool:
    return not validate_task(record)


def ensure_valid_task(record: Any) -> Task:
    """Return the record as a Task, raising TaskValidationError if invalid."""
    errors = validate_task(record)
    if errors:
        raise TaskValidationError(errors)
    if isinstance(record, Task):
        return record
    return Task.model_validate(record)


__all__ = [
    "FieldError",
    "format_field_path",
    "validate_task",
    "is_valid_task",
    "ensure_valid_task",
]
