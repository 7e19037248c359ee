"""Smart defaults for endpoints imported from metadata-poor sources.

cURL commands and Postman collections carry little beyond names and
example values. These heuristics fill in types, formats, requirement
flags and baseline error responses so that later comparisons see
enriched data. Every function here is pure: inputs are copied, never
mutated.
"""

import math
import re
from typing import Any

from spec_reconciler.parser.base import (
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    ErrorResponse,
    SuccessResponse,
)
from spec_reconciler.reconcile.report import CompletenessReport, SectionScore

API_KEY_HEADERS = {"x-api-key", "api-key", "apikey", "x-api-token"}
PAGINATION_PARAMS = {"page", "limit", "offset", "per_page", "page_size", "size"}
SORT_PARAMS = {"sort", "sort_by", "order", "order_by", "sort_order"}
BOOLEAN_NAMES = {"active", "enabled", "disabled", "deleted", "published"}
BOOLEAN_PREFIXES = ("is_", "has_", "can_", "should_")
DATE_NAMES = {"created", "updated", "deleted", "timestamp"}

MUTATING_METHODS = {"POST", "PUT", "PATCH"}
RESOURCE_METHODS = {"GET", "PUT", "PATCH", "DELETE"}

# name -> (min, max, default)
PAGINATION_BOUNDS = {
    "page": (1, None, 1),
    "limit": (1, 100, 10),
    "per_page": (1, 100, 10),
    "page_size": (1, 100, 10),
    "size": (1, 100, 10),
    "offset": (0, None, 0),
}
PAGINATION_DESCRIPTIONS = {
    "page": "Page number for pagination (starts at 1)",
    "offset": "Number of items to skip",
}

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
DATE_TIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}:\d{2}$")


def apply_smart_defaults(endpoint: CanonicalEndpoint) -> CanonicalEndpoint:
    """Return an enriched copy of ``endpoint``."""
    enriched = endpoint.model_copy(deep=True)
    request = enriched.request
    request.parameters = [enrich_parameter(p) for p in request.parameters]
    if request.body is not None:
        request.body.fields = [enrich_field(f) for f in request.body.fields]

    enriched.responses.success = _enrich_success_response(enriched.method, enriched.responses.success)
    if not enriched.responses.errors:
        enriched.responses.errors = common_error_responses(enriched.method, enriched.path, enriched.auth)
    return enriched


def enrich_parameter(param: CanonicalParameter) -> CanonicalParameter:
    enriched = param.model_copy()
    lower = enriched.name.lower()
    typed_by_name = False

    if enriched.location == "path":
        enriched.required = True
        enriched.description = enriched.description or f"Path parameter: {enriched.name}"

    if lower == "authorization":
        enriched.required = True
        enriched.description = enriched.description or "Authentication token"
    elif lower in API_KEY_HEADERS:
        enriched.required = True
        enriched.description = enriched.description or "API key for authentication"

    if is_id_name(enriched.name):
        numeric = detect_numeric_type(enriched.example)
        enriched.type = numeric or "integer"
        enriched.description = enriched.description or "Unique identifier"
        # A non-numeric example such as a UUID still refines to string below.
        typed_by_name = numeric is not None or enriched.example is None
    elif lower in PAGINATION_PARAMS:
        minimum, maximum, default = PAGINATION_BOUNDS[lower]
        enriched.type = "integer"
        enriched.required = False
        enriched.min = minimum if enriched.min is None else enriched.min
        enriched.max = maximum if enriched.max is None else enriched.max
        enriched.default = default if enriched.default is None else enriched.default
        enriched.description = enriched.description or PAGINATION_DESCRIPTIONS.get(lower, "Number of items per page")
        typed_by_name = True
    elif lower in SORT_PARAMS:
        enriched.type = "string"
        enriched.required = False
        enriched.description = enriched.description or "Sort order for results"
        typed_by_name = True
    elif enriched.location == "query" and is_filter_name(enriched.name):
        enriched.required = False
        enriched.description = enriched.description or f"Filter results by {enriched.name}"

    if enriched.example is not None and not enriched.format:
        enriched.format = detect_format(enriched.example)

    # Name rules win over example-based refinement: '42' for userId stays integer.
    if enriched.example is not None and not typed_by_name:
        enriched.type = refine_type(enriched.type, enriched.example)
    if enriched.location == "path":
        enriched.required = True
    return enriched


def enrich_field(field: CanonicalField) -> CanonicalField:
    enriched = field.model_copy()
    lower = enriched.name.lower()

    if is_id_name(enriched.name):
        numeric = detect_numeric_type(enriched.example)
        enriched.type = numeric or refine_type("integer", enriched.example)
        enriched.required = False  # usually generated server side
    elif "email" in lower:
        enriched.type = "string"
        enriched.format = "email"
        enriched.description = enriched.description or "Email address"
    elif "password" in lower:
        enriched.type = "string"
        enriched.format = "password"
        enriched.min = 8 if enriched.min is None else enriched.min
        enriched.description = enriched.description or "Password (minimum 8 characters)"
    elif "url" in lower or "link" in lower:
        enriched.type = "string"
        enriched.format = "uri"
    elif _is_boolean_name(lower):
        enriched.type = "boolean"
    elif _is_date_name(lower):
        enriched.type = "string"
        enriched.format = "date-time"
    elif enriched.example is not None:
        enriched.type = refine_type(enriched.type, enriched.example)

    if enriched.example is not None and not enriched.format:
        enriched.format = detect_format(enriched.example)
    return enriched


def _enrich_success_response(method: str, response: SuccessResponse) -> SuccessResponse:
    if response.status:
        return response
    if method == "POST":
        status, description = 201, "Resource created successfully"
    elif method == "DELETE":
        status, description = 204, "Resource deleted successfully"
    else:
        status, description = 200, "Successful response"
    return response.model_copy(update={"status": status, "description": response.description or description})


def common_error_responses(method: str, path: str, auth: CanonicalAuth | None) -> list[ErrorResponse]:
    """Baseline error responses for an endpoint that declares none."""
    errors: list[ErrorResponse] = []
    if auth is not None and auth.required and auth.type != "none":
        errors.append(_error(401, "Unauthorized", "Authentication credentials are missing or invalid"))
        errors.append(_error(403, "Forbidden", "Authenticated but not authorized to access this resource"))
    if method in MUTATING_METHODS:
        errors.append(_error(400, "Bad Request", "Invalid request parameters or body", "Invalid input"))
    if method in RESOURCE_METHODS and "{" in path:
        errors.append(_error(404, "Not Found", "Resource not found"))
    errors.append(_error(500, "Internal Server Error", "Unexpected server error"))
    return errors


def _error(status: int, reason: str, description: str, message: str | None = None) -> ErrorResponse:
    return ErrorResponse(
        status=status,
        reason=reason,
        description=description,
        content_type="application/json",
        example={"code": status, "message": message or reason},
    )


# -- name and value heuristics ------------------------------------------------


def is_id_name(name: str) -> bool:
    lower = name.lower()
    return lower == "id" or lower.endswith("_id") or lower.endswith("id")


def is_filter_name(name: str) -> bool:
    lower = name.lower()
    return (
        lower.startswith("filter_")
        or lower == "q"
        or any(word in lower for word in ("search", "query", "status", "type", "category"))
    )


def _is_boolean_name(lower: str) -> bool:
    return lower.startswith(BOOLEAN_PREFIXES) or lower in BOOLEAN_NAMES


def _is_date_name(lower: str) -> bool:
    return "date" in lower or "time" in lower or lower.endswith("_at") or lower in DATE_NAMES


def detect_format(value: Any) -> str | None:
    """Guess a string format from an example value."""
    if not isinstance(value, str):
        return None
    if "@" in value and "." in value:
        return "email"
    if value.startswith(("http://", "https://")):
        return "uri"
    if UUID_RE.match(value):
        return "uuid"
    if DATE_TIME_RE.match(value):
        return "date-time"
    if DATE_RE.match(value):
        return "date"
    if TIME_RE.match(value):
        return "time"
    return None


def refine_type(current: str, example: Any) -> str:
    """Type implied by an example's runtime type; unknown values keep ``current``."""
    if example is None:
        return current
    if isinstance(example, bool):
        return "boolean"
    if isinstance(example, int):
        return "integer"
    if isinstance(example, float):
        return "integer" if example.is_integer() else "number"
    if isinstance(example, (list, tuple)):
        return "array"
    if isinstance(example, dict):
        return "object"
    if isinstance(example, str):
        return "string"
    return current


def detect_numeric_type(value: Any) -> str | None:
    """'integer' or 'number' for numeric values and numeric strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return "integer" if number.is_integer() else "number"


# -- completeness -------------------------------------------------------------


def calculate_metadata_completeness(endpoint: CanonicalEndpoint) -> CompletenessReport:
    """Share of populated optional metadata slots, as a 0-100 score."""
    parameters = SectionScore()
    for param in endpoint.request.parameters:
        parameters.total += 4
        parameters.score += sum(
            (bool(param.description), param.required is not None, bool(param.type), param.example is not None)
        )

    body = SectionScore()
    for field in endpoint.request.body.fields if endpoint.request.body else []:
        body.total += 4
        body.score += sum(
            (bool(field.description), field.required is not None, bool(field.type), field.example is not None)
        )

    success = endpoint.responses.success
    responses = SectionScore(total=4)
    responses.score = sum(
        (
            bool(success.description),
            success.example is not None and success.example != {} and success.example != [],
            bool(success.fields),
            bool(endpoint.responses.errors),
        )
    )

    complete = parameters.score + body.score + responses.score
    total = parameters.total + body.total + responses.total
    score = round(complete / total * 100) if total else 100
    return CompletenessReport(
        score=score, complete=complete, total=total, parameters=parameters, body=body, responses=responses
    )
