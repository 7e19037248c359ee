"""Cycle-safe traversal and comparison of nested CanonicalField trees.

Schemas resolved from self-referential ``$ref`` chains can produce field
graphs where a nested field points back at one of its ancestors. Every
walk here tracks the ancestors of the current node by identity, so a
cycle shows up as an opaque leaf instead of unbounded recursion.
"""

import math
from typing import Any, Iterable, Iterator, NamedTuple

from pydantic import BaseModel

from spec_reconciler.parser.base import CanonicalField

MAX_DEPTH = 32

# Scalar properties compared field by field, in report order.
FIELD_PROPERTIES = ("type", "required", "description", "example", "enum", "format", "min", "max", "pattern")


class FlatField(NamedTuple):
    """One node of a flattened field tree, keyed by its dotted path."""

    path: str
    field: CanonicalField
    opaque: bool  # cyclic or too deep; children were not visited


def iter_fields(
    fields: Iterable[CanonicalField] | None,
    prefix: str = "",
    _ancestors: frozenset[int] = frozenset(),
) -> Iterator[FlatField]:
    """Yield every field depth-first with dotted paths (``address.city``, ``items[].sku``)."""
    for field in fields or []:
        path = f"{prefix}{field.name}"
        if id(field) in _ancestors or len(_ancestors) >= MAX_DEPTH:
            yield FlatField(path, field, True)
            continue
        yield FlatField(path, field, False)

        inner = _ancestors | {id(field)}
        yield from iter_fields(field.properties, f"{path}.", inner)

        item = field.items
        if item is None:
            continue
        item_path = f"{path}[]"
        if id(item) in inner or len(inner) >= MAX_DEPTH:
            yield FlatField(item_path, item, True)
        else:
            yield from iter_fields(item.properties, f"{item_path}.", inner | {id(item)})


def flatten_fields(fields: Iterable[CanonicalField] | None) -> dict[str, FlatField]:
    """Map dotted path to node. The first field wins when names repeat."""
    flat: dict[str, FlatField] = {}
    for node in iter_fields(fields):
        flat.setdefault(node.path, node)
    return flat


def find_cycles(fields: Iterable[CanonicalField] | None) -> list[str]:
    """Return the dotted paths at which a field refers back to an ancestor."""
    return [node.path for node in iter_fields(fields) if node.opaque]


def items_descriptor(items: CanonicalField | None) -> dict[str, Any] | None:
    """Shallow description of an array's item schema."""
    if items is None:
        return None
    return {"type": items.type, "format": items.format, "enum": items.enum}


def field_signature(field: CanonicalField) -> dict[str, Any]:
    """Own scalar properties of a field, without walking into children."""
    signature = {name: getattr(field, name) for name in FIELD_PROPERTIES}
    signature["items"] = items_descriptor(field.items)
    return signature


def field_to_data(field: CanonicalField, _ancestors: frozenset[int] = frozenset()) -> dict[str, Any]:
    """Dump a field tree to plain data, replacing back-references with a marker."""
    if id(field) in _ancestors or len(_ancestors) >= MAX_DEPTH:
        return {"name": field.name, "type": field.type, "cyclic": True}
    inner = _ancestors | {id(field)}
    data: dict[str, Any] = {"name": field.name}
    data.update({name: getattr(field, name) for name in FIELD_PROPERTIES})
    if field.properties is not None:
        data["properties"] = [field_to_data(child, inner) for child in field.properties]
    if field.items is not None:
        data["items"] = field_to_data(field.items, inner)
    return data


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality for JSON-like values.

    Booleans never equal numbers, NaN equals NaN, and models are compared
    through their cycle-safe dump.
    """
    if isinstance(a, CanonicalField) and isinstance(b, CanonicalField):
        return values_equal(field_to_data(a), field_to_data(b))
    if isinstance(a, BaseModel) and isinstance(b, BaseModel):
        return type(a) is type(b) and values_equal(_model_data(a), _model_data(b))
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
            return True
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def fields_equal(a: Iterable[CanonicalField] | None, b: Iterable[CanonicalField] | None) -> bool:
    return values_equal(
        [field_to_data(f) for f in a or []],
        [field_to_data(f) for f in b or []],
    )


def _model_data(model: BaseModel) -> dict[str, Any]:
    data = {}
    for name in type(model).model_fields:
        value = getattr(model, name)
        if isinstance(value, CanonicalField):
            value = field_to_data(value)
        elif isinstance(value, list) and value and isinstance(value[0], CanonicalField):
            value = [field_to_data(f) for f in value]
        data[name] = value
    return data
