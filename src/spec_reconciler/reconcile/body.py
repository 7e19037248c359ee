"""Helpers relating request body examples to their field definitions."""

from typing import Any, Iterable

from pydantic import BaseModel

from spec_reconciler.parser.base import CanonicalField
from spec_reconciler.reconcile.fields import MAX_DEPTH


class BodyConsistency(BaseModel):
    is_valid: bool
    missing: list[str] = []  # field names absent from the example
    extra: list[str] = []  # example keys with no field definition


def build_body_from_schema(
    fields: Iterable[CanonicalField] | None, _ancestors: frozenset[int] = frozenset()
) -> dict[str, Any]:
    """Build a placeholder body: 0 for numbers, True for booleans, the field
    name for strings, and nested structures for objects and arrays."""
    body: dict[str, Any] = {}
    for field in fields or []:
        if id(field) in _ancestors or len(_ancestors) >= MAX_DEPTH:
            body[field.name] = [] if field.type == "array" else {}
            continue
        inner = _ancestors | {id(field)}
        if field.type in ("integer", "number"):
            body[field.name] = 0
        elif field.type == "boolean":
            body[field.name] = True
        elif field.type == "array":
            item = field.items
            if item is not None and item.properties and id(item) not in inner:
                body[field.name] = [build_body_from_schema(item.properties, inner | {id(item)})]
            else:
                body[field.name] = []
        elif field.type == "object":
            body[field.name] = build_body_from_schema(field.properties, inner)
        else:
            body[field.name] = field.name
    return body


def validate_body_consistency(example: Any, fields: Iterable[CanonicalField] | None) -> BodyConsistency:
    names = [f.name for f in fields or []]
    if not isinstance(example, dict):
        return BodyConsistency(is_valid=not names, missing=names)
    keys = list(example)
    missing = [name for name in names if name not in example]
    extra = [key for key in keys if key not in names]
    return BodyConsistency(is_valid=not missing and not extra, missing=missing, extra=extra)


def body_matches_schema(example: Any, fields: Iterable[CanonicalField] | None) -> bool:
    """True when ``example`` is an object holding every top-level field name.

    Extra keys are allowed. An empty field list matches any object.
    """
    if not isinstance(example, dict):
        return False
    return all(f.name in example for f in fields or [])
