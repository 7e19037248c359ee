"""JSON Schema helpers shared by the OpenAPI and Postman importers."""

import logging
from typing import Any

from spec_reconciler.parser.base import CanonicalField

logger = logging.getLogger(__name__)


def resolve_ref(ref: str, doc: dict) -> dict | None:
    """Resolve a local ``#/...`` reference inside ``doc``."""
    if not ref.startswith("#/"):
        logger.warning("Unsupported $ref format: %s", ref)
        return None
    node: Any = doc
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(node, dict) or part not in node:
            logger.warning("Unresolvable $ref: %s", ref)
            return None
        node = node[part]
    return node if isinstance(node, dict) else None


def deref(schema: Any, doc: dict, seen: frozenset[str] = frozenset()) -> tuple[dict, frozenset[str], bool]:
    """Follow ``$ref`` chains and merge ``allOf`` parts.

    Returns the resolved schema, the references followed so far, and
    whether a reference loops back onto one already being expanded.
    """
    if not isinstance(schema, dict):
        return {}, seen, False
    while "$ref" in schema:
        ref = schema["$ref"]
        if ref in seen:
            return {}, seen, True
        seen = seen | {ref}
        schema = resolve_ref(ref, doc) or {}

    if "allOf" in schema:
        merged: dict[str, Any] = {k: v for k, v in schema.items() if k != "allOf"}
        properties = dict(merged.get("properties", {}))
        required = list(merged.get("required", []))
        for part in schema["allOf"]:
            resolved, seen, cyclic = deref(part, doc, seen)
            if cyclic:
                continue
            properties.update(resolved.get("properties", {}))
            required.extend(resolved.get("required", []))
            for key in ("type", "description", "example"):
                if key in resolved:
                    merged.setdefault(key, resolved[key])
        merged["properties"] = properties
        merged["required"] = required
        merged.setdefault("type", "object")
        schema = merged
    return schema, seen, False


def schema_type(schema: dict) -> str:
    declared = schema.get("type")
    if isinstance(declared, list):  # OpenAPI 3.1 allows ["string", "null"]
        declared = next((t for t in declared if t != "null"), None)
    if declared:
        return declared
    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    return "string"


def schema_to_field(
    name: str, schema: Any, doc: dict, required: bool = False, seen: frozenset[str] = frozenset()
) -> CanonicalField:
    """Convert one property schema into a CanonicalField, recursing into
    object properties and array items. A self-referencing ``$ref`` ends the
    recursion with an object field without properties."""
    resolved, seen, cyclic = deref(schema, doc, seen)
    if cyclic:
        return CanonicalField(name=name, type="object", required=required)

    field = CanonicalField(
        name=name,
        type=schema_type(resolved),
        required=required,
        description=resolved.get("description"),
        format=resolved.get("format"),
        example=resolved.get("example"),
        enum=resolved.get("enum"),
        pattern=resolved.get("pattern"),
        min=_first_present(resolved, "minimum", "minLength"),
        max=_first_present(resolved, "maximum", "maxLength"),
    )
    if field.type == "object" and "properties" in resolved:
        field.properties = schema_to_fields(resolved, doc, seen)
    if field.type == "array" and "items" in resolved:
        field.items = schema_to_field("", resolved["items"], doc, seen=seen)
    return field


def schema_to_fields(schema: Any, doc: dict, seen: frozenset[str] = frozenset()) -> list[CanonicalField]:
    """Flatten an object schema's properties into a list of fields."""
    resolved, seen, cyclic = deref(schema, doc, seen)
    if cyclic:
        return []
    required = set(resolved.get("required", []))
    return [
        schema_to_field(name, prop, doc, name in required, seen)
        for name, prop in resolved.get("properties", {}).items()
    ]


def schema_to_example(schema: Any, doc: dict, seen: frozenset[str] = frozenset()) -> Any:
    """Synthesize an example value from a schema."""
    resolved, seen, cyclic = deref(schema, doc, seen)
    if cyclic:
        return None
    for key in ("example", "default"):
        if key in resolved:
            return resolved[key]
    if resolved.get("enum"):
        return resolved["enum"][0]

    kind = schema_type(resolved)
    if kind == "object":
        return {name: schema_to_example(prop, doc, seen) for name, prop in resolved.get("properties", {}).items()}
    if kind == "array":
        item = schema_to_example(resolved.get("items", {}), doc, seen)
        return [item] if item is not None else []
    if kind == "integer":
        return 0
    if kind == "number":
        return 0.0
    if kind == "boolean":
        return True
    return _string_example(resolved.get("format"))


def _string_example(fmt: str | None) -> str:
    return {
        "date-time": "2024-01-01T00:00:00Z",
        "date": "2024-01-01",
        "email": "user@example.com",
        "uuid": "123e4567-e89b-12d3-a456-426614174000",
        "uri": "https://example.com",
    }.get(fmt or "", "string")


def infer_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def infer_fields_from_example(example: Any) -> list[CanonicalField]:
    """Derive field definitions from an example object when no schema exists."""
    if not isinstance(example, dict):
        return []
    fields = []
    for key, value in example.items():
        field = CanonicalField(name=key, type=infer_type(value), example=value)
        if isinstance(value, dict):
            field.properties = infer_fields_from_example(value)
        elif isinstance(value, list) and value:
            first = value[0]
            field.items = CanonicalField(type=infer_type(first))
            if isinstance(first, dict):
                field.items.properties = infer_fields_from_example(first)
        fields.append(field)
    return fields


def _first_present(schema: dict, *keys: str) -> Any:
    for key in keys:
        if key in schema:
            return schema[key]
    return None
