"""Field-level comparison of a stored endpoint against its incoming version.

Sections are compared independently and appended in a fixed order:
basic info, request content type, parameters, request body, responses,
auth. Collections are keyed by identity (parameter name + location, field
dotted path, error status), so reordering alone never counts as a change.
"""

from typing import Any, Iterable

from spec_reconciler.parser.base import (
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    CanonicalResponses,
    ErrorResponse,
    RequestBody,
)
from spec_reconciler.reconcile.fields import (
    FIELD_PROPERTIES,
    field_signature,
    flatten_fields,
    items_descriptor,
    values_equal,
)
from spec_reconciler.reconcile.report import Change, Difference, EndpointDiff

PARAMETER_PROPERTIES = ("type", "required", "description", "example", "enum", "default", "format", "pattern")
AUTH_PROPERTIES = ("required", "type", "scheme", "bearer_format", "location", "name")
SUCCESS_PROPERTIES = ("status", "description", "content_type", "example", "headers")
ERROR_PROPERTIES = ("reason", "description", "content_type", "example")

CYCLE_NOTE = "nested structure differs"


def diff_endpoints(existing: CanonicalEndpoint | None, incoming: CanonicalEndpoint | None) -> EndpointDiff:
    """Compare two endpoints and list every field-level change.

    Either side may be missing; its fields are then treated as absent and
    only ``added``/``removed`` changes are produced.
    """
    changes: list[Change] = []
    changes += _diff_basic_info(existing, incoming)

    old_request = existing.request if existing else None
    new_request = incoming.request if incoming else None
    changes += _diff_scalar(
        "request.content_type",
        old_request.content_type if old_request else None,
        new_request.content_type if new_request else None,
    )
    changes += diff_parameters(
        old_request.parameters if old_request else [],
        new_request.parameters if new_request else [],
    )
    changes += _diff_request_body(
        old_request.body if old_request else None,
        new_request.body if new_request else None,
    )
    changes += _diff_responses(
        existing.responses if existing else None,
        incoming.responses if incoming else None,
    )
    changes += _diff_auth(existing.auth if existing else None, incoming.auth if incoming else None)
    return EndpointDiff(changes=changes)


# -- basic info ---------------------------------------------------------------


def _diff_basic_info(existing: CanonicalEndpoint | None, incoming: CanonicalEndpoint | None) -> list[Change]:
    changes: list[Change] = []
    for attr in ("name", "description"):
        changes += _diff_scalar(attr, getattr(existing, attr, None), getattr(incoming, attr, None))

    old_tags = list(existing.tags) if existing else []
    new_tags = list(incoming.tags) if incoming else []
    if set(old_tags) != set(new_tags):
        if existing is None:
            tag_change = "added"
        elif incoming is None:
            tag_change = "removed"
        else:
            tag_change = "modified"
        changes.append(
            Change(
                field="tags",
                type=tag_change,
                old_value=old_tags,
                new_value=new_tags,
                added=[t for t in new_tags if t not in old_tags],
                removed=[t for t in old_tags if t not in new_tags],
            )
        )

    changes += _diff_scalar("operation_id", getattr(existing, "operation_id", None), getattr(incoming, "operation_id", None))
    changes += _diff_scalar(
        "deprecated",
        existing.deprecated if existing else None,
        incoming.deprecated if incoming else None,
    )
    return changes


def _diff_scalar(field: str, old: Any, new: Any) -> list[Change]:
    if values_equal(old, new):
        return []
    if old is None:
        return [Change(field=field, type="added", new_value=new)]
    if new is None:
        return [Change(field=field, type="removed", old_value=old)]
    return [Change(field=field, type="modified", old_value=old, new_value=new)]


def _differences(old: dict[str, Any], new: dict[str, Any], properties: Iterable[str]) -> list[Difference]:
    return [
        Difference(property=prop, old_value=old.get(prop), new_value=new.get(prop))
        for prop in properties
        if not values_equal(old.get(prop), new.get(prop))
    ]


# -- parameters ---------------------------------------------------------------


def _parameter_signature(param: CanonicalParameter) -> dict[str, Any]:
    signature = {name: getattr(param, name) for name in PARAMETER_PROPERTIES}
    signature["constraints"] = {"min": param.min, "max": param.max}
    signature["items"] = items_descriptor(param.items)
    return signature


def diff_parameters(
    old_params: Iterable[CanonicalParameter], new_params: Iterable[CanonicalParameter]
) -> list[Change]:
    """Compare parameter lists keyed by (name, location)."""
    old_map = {(p.name, p.location): p for p in old_params}
    new_map = {(p.name, p.location): p for p in new_params}
    changes: list[Change] = []

    for key, param in old_map.items():
        if key not in new_map:
            changes.append(
                Change(field="parameters", type="removed", name=param.name, location=param.location, old_value=param)
            )

    properties = PARAMETER_PROPERTIES + ("constraints", "items")
    for key, param in new_map.items():
        old = old_map.get(key)
        if old is None:
            changes.append(
                Change(field="parameters", type="added", name=param.name, location=param.location, new_value=param)
            )
            continue
        differences = _differences(_parameter_signature(old), _parameter_signature(param), properties)
        if differences:
            changes.append(
                Change(
                    field="parameters",
                    type="modified",
                    name=param.name,
                    location=param.location,
                    differences=differences,
                )
            )
    return changes


# -- body and response fields -------------------------------------------------


def diff_fields(
    field: str, old_fields: Iterable[CanonicalField] | None, new_fields: Iterable[CanonicalField] | None
) -> list[Change]:
    """Compare field trees by dotted path.

    A branch that is cyclic on one side only is reported once with
    ``note`` set, and its children are not compared.
    """
    old_flat = flatten_fields(old_fields)
    new_flat = flatten_fields(new_fields)
    changes: list[Change] = []

    for path, node in old_flat.items():
        if path not in new_flat:
            changes.append(Change(field=field, type="removed", name=path, old_value=node.field))

    properties = FIELD_PROPERTIES + ("items",)
    for path, node in new_flat.items():
        old = old_flat.get(path)
        if old is None:
            changes.append(Change(field=field, type="added", name=path, new_value=node.field))
            continue
        differences = _differences(field_signature(old.field), field_signature(node.field), properties)
        note = None
        if old.opaque != node.opaque:
            note = CYCLE_NOTE
            differences.append(
                Difference(
                    property="structure",
                    old_value="cyclic" if old.opaque else "tree",
                    new_value="cyclic" if node.opaque else "tree",
                )
            )
        if differences:
            changes.append(Change(field=field, type="modified", name=path, differences=differences, note=note))
    return changes


# -- request body -------------------------------------------------------------


def _has_text(value: str | None) -> bool:
    return value is not None and value != ""


def _diff_request_body(old: RequestBody | None, new: RequestBody | None) -> list[Change]:
    if old is None and new is None:
        return []
    if old is None:
        return [Change(field="request.body", type="added", new_value=new)] + diff_fields(
            "request.body.fields", [], new.fields
        )
    if new is None:
        return [Change(field="request.body", type="removed", old_value=old)] + diff_fields(
            "request.body.fields", old.fields, []
        )

    changes = _diff_scalar("request.body.required", old.required, new.required)

    old_desc = old.description if _has_text(old.description) else None
    new_desc = new.description if _has_text(new.description) else None
    changes += _diff_scalar("request.body.description", old_desc, new_desc)

    if not values_equal(old.example, new.example):
        changes.append(Change(field="request.body.example", old_value=old.example, new_value=new.example))

    changes += diff_fields("request.body.fields", old.fields, new.fields)
    return changes


# -- responses ----------------------------------------------------------------


def _diff_responses(old: CanonicalResponses | None, new: CanonicalResponses | None) -> list[Change]:
    if old is None and new is None:
        return []
    if old is None or new is None:
        return _diff_scalar("responses", old, new)

    changes: list[Change] = []
    old_success = {p: getattr(old.success, p) for p in SUCCESS_PROPERTIES}
    new_success = {p: getattr(new.success, p) for p in SUCCESS_PROPERTIES}
    differences = _differences(old_success, new_success, SUCCESS_PROPERTIES)
    if differences:
        changes.append(Change(field="responses.success", type="modified", differences=differences))
    changes += diff_fields("responses.success.fields", old.success.fields, new.success.fields)
    changes += _diff_errors(old.errors, new.errors)
    return changes


def _diff_errors(old_errors: list[ErrorResponse], new_errors: list[ErrorResponse]) -> list[Change]:
    old_map = {e.status: e for e in old_errors}
    new_map = {e.status: e for e in new_errors}
    changes: list[Change] = []

    for status, error in old_map.items():
        if status not in new_map:
            changes.append(Change(field="responses.errors", type="removed", name=str(status), old_value=error))
    for status, error in new_map.items():
        old = old_map.get(status)
        if old is None:
            changes.append(Change(field="responses.errors", type="added", name=str(status), new_value=error))
            continue
        differences = _differences(
            {p: getattr(old, p) for p in ERROR_PROPERTIES},
            {p: getattr(error, p) for p in ERROR_PROPERTIES},
            ERROR_PROPERTIES,
        )
        if differences:
            changes.append(
                Change(field="responses.errors", type="modified", name=str(status), differences=differences)
            )
    return changes


# -- auth ---------------------------------------------------------------------


def _diff_auth(old: CanonicalAuth | None, new: CanonicalAuth | None) -> list[Change]:
    if old is None and new is None:
        return []
    if old is None:
        return [Change(field="auth", type="added", new_value=new)]
    if new is None:
        return [Change(field="auth", type="removed", old_value=old)]

    differences = _differences(
        {p: getattr(old, p) for p in AUTH_PROPERTIES},
        {p: getattr(new, p) for p in AUTH_PROPERTIES},
        AUTH_PROPERTIES,
    )
    if not differences:
        return []
    return [Change(field="auth", type="modified", old_value=old, new_value=new, differences=differences)]
