"""OpenAPI / Swagger document parser.

Parses OpenAPI 3.x and Swagger 2.0 documents into CanonicalEndpoint models.
"""

import logging

from spec_reconciler.parser.base import (
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    CanonicalRequest,
    CanonicalResponses,
    ErrorResponse,
    RequestBody,
    ResponseHeader,
    SuccessResponse,
)
from spec_reconciler.parser.schema import (
    deref,
    resolve_ref,
    schema_to_example,
    schema_to_field,
    schema_to_fields,
    schema_type,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options")
PREFERRED_CONTENT_TYPES = (
    "application/json",
    "multipart/form-data",
    "application/x-www-form-urlencoded",
)


def parse_openapi(doc: dict, spec_id: int | None = None) -> list[CanonicalEndpoint]:
    """Parse a loaded OpenAPI/Swagger document into a list of CanonicalEndpoint."""
    is_swagger = "swagger" in doc
    source = "swagger" if is_swagger else "openapi"

    endpoints = []
    for path, path_item in (doc.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        shared_params = path_item.get("parameters", [])
        for method, operation in path_item.items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                continue

            params = _merge_parameters(shared_params, operation.get("parameters", []), doc)
            if is_swagger:
                request = _swagger_request(params, operation, doc)
            else:
                request = _openapi_request(params, operation.get("requestBody"), doc)

            endpoints.append(
                CanonicalEndpoint(
                    spec_id=spec_id,
                    source=source,
                    method=method.upper(),
                    path=path,
                    name=operation.get("summary") or operation.get("operationId") or f"{method.upper()} {path}",
                    description=operation.get("description"),
                    tags=operation.get("tags", []),
                    operation_id=operation.get("operationId"),
                    request=request,
                    responses=_parse_responses(operation.get("responses", {}), doc, is_swagger),
                    auth=_parse_auth(operation, doc),
                    deprecated=bool(operation.get("deprecated", False)),
                )
            )

    logger.debug("Parsed %d endpoints from %s document", len(endpoints), source)
    return endpoints


def _merge_parameters(shared: list, own: list, doc: dict) -> list[dict]:
    """Operation parameters override path-level ones with the same name and location."""
    merged: dict[tuple[str, str], dict] = {}
    for raw in list(shared) + list(own):
        param = resolve_ref(raw["$ref"], doc) if "$ref" in raw else raw
        if not param or "name" not in param:
            continue
        merged[(param["name"], param.get("in", "query"))] = param
    return list(merged.values())


def _parse_parameter(p: dict, doc: dict) -> CanonicalParameter:
    # Swagger 2 puts type information on the parameter itself.
    schema, _, _ = deref(p.get("schema", p), doc)
    items = None
    if schema_type(schema) == "array" and "items" in schema:
        items = schema_to_field("", schema["items"], doc)
    return CanonicalParameter(
        name=p["name"],
        location=p.get("in", "query"),
        type=schema_type(schema),
        required=p.get("required", False),
        description=p.get("description"),
        example=p.get("example", schema.get("example")),
        enum=schema.get("enum"),
        pattern=schema.get("pattern"),
        min=schema.get("minimum", schema.get("minLength")),
        max=schema.get("maximum", schema.get("maxLength")),
        default=schema.get("default"),
        format=schema.get("format"),
        items=items,
    )


def _openapi_request(params: list[dict], body: dict | None, doc: dict) -> CanonicalRequest:
    request = CanonicalRequest(parameters=[_parse_parameter(p, doc) for p in params])
    if not body:
        return request
    if "$ref" in body:
        body = resolve_ref(body["$ref"], doc) or {}

    content_type, media = _pick_media(body.get("content", {}))
    if content_type is None:
        return request
    schema = media.get("schema", {})
    request.content_type = content_type
    request.body = RequestBody(
        required=body.get("required", False),
        description=body.get("description"),
        example=_media_example(media, doc),
        fields=schema_to_fields(schema, doc),
    )
    return request


def _swagger_request(params: list[dict], operation: dict, doc: dict) -> CanonicalRequest:
    request = CanonicalRequest()
    form_fields: list[CanonicalField] = []
    for p in params:
        location = p.get("in", "query")
        if location == "body":
            schema = p.get("schema", {})
            request.body = RequestBody(
                required=p.get("required", False),
                description=p.get("description"),
                example=schema_to_example(schema, doc),
                fields=schema_to_fields(schema, doc),
            )
        elif location == "formData":
            form_fields.append(
                CanonicalField(
                    name=p["name"],
                    type=p.get("type", "string"),
                    required=p.get("required", False),
                    description=p.get("description"),
                    format=p.get("format"),
                )
            )
        else:
            request.parameters.append(_parse_parameter(p, doc))

    consumes = operation.get("consumes") or doc.get("consumes") or []
    if form_fields:
        has_file = any(f.type == "file" for f in form_fields)
        request.content_type = "multipart/form-data" if has_file else "application/x-www-form-urlencoded"
        request.body = RequestBody(fields=form_fields)
    elif consumes:
        request.content_type = consumes[0]
    return request


def _pick_media(content: dict) -> tuple[str | None, dict]:
    for content_type in PREFERRED_CONTENT_TYPES:
        if content_type in content:
            return content_type, content[content_type] or {}
    # Fallback: first declared media type
    for content_type, media in content.items():
        return content_type, media or {}
    return None, {}


def _media_example(media: dict, doc: dict):
    if "example" in media:
        return media["example"]
    for example in (media.get("examples") or {}).values():
        if "$ref" in example:
            example = resolve_ref(example["$ref"], doc) or {}
        if "value" in example:
            return example["value"]
    if "schema" in media:
        return schema_to_example(media["schema"], doc)
    return None


def _parse_responses(responses: dict, doc: dict, is_swagger: bool) -> CanonicalResponses:
    result = CanonicalResponses()
    numbered = {}
    for status_code, resp in responses.items():
        try:
            numbered[int(status_code)] = resp
        except ValueError:
            continue  # "default" and range keys such as "2XX"

    success_codes = sorted(code for code in numbered if 200 <= code < 300)
    if success_codes:
        status = success_codes[0]
        result.success = _success_response(status, numbered[status], doc, is_swagger)

    for status in sorted(code for code in numbered if code >= 400):
        resp = numbered[status]
        if "$ref" in resp:
            resp = resolve_ref(resp["$ref"], doc) or {}
        content_type, media = (None, {}) if is_swagger else _pick_media(resp.get("content", {}))
        result.errors.append(
            ErrorResponse(
                status=status,
                reason=resp.get("description", ""),
                description=resp.get("description"),
                content_type=content_type,
                example=_media_example(media, doc) if media else None,
            )
        )
    return result


def _success_response(status: int, resp: dict, doc: dict, is_swagger: bool) -> SuccessResponse:
    if "$ref" in resp:
        resp = resolve_ref(resp["$ref"], doc) or {}
    headers = [
        ResponseHeader(
            name=name,
            type=schema_type(header.get("schema", header)),
            description=header.get("description"),
            example=header.get("example"),
        )
        for name, header in (resp.get("headers") or {}).items()
    ]

    if is_swagger:
        schema = resp.get("schema")
        content_type = (doc.get("produces") or ["application/json"])[0] if schema else None
        example = (resp.get("examples") or {}).get(content_type) if schema else None
        if schema and example is None:
            example = schema_to_example(schema, doc)
    else:
        content_type, media = _pick_media(resp.get("content", {}))
        schema = media.get("schema")
        example = _media_example(media, doc) if media else None

    return SuccessResponse(
        status=status,
        description=resp.get("description"),
        content_type=content_type,
        example=example,
        fields=_response_fields(schema, doc),
        headers=headers,
    )


def _response_fields(schema: dict | None, doc: dict) -> list[CanonicalField]:
    if not schema:
        return []
    resolved, _, _ = deref(schema, doc)
    if schema_type(resolved) == "array":
        # List endpoints describe the element type.
        return schema_to_fields(resolved.get("items", {}), doc)
    return schema_to_fields(resolved, doc)


def _parse_auth(operation: dict, doc: dict) -> CanonicalAuth | None:
    security = operation.get("security", doc.get("security"))
    if security is None:
        return None
    if not security or all(not requirement for requirement in security):
        return CanonicalAuth(required=False, type="none")

    schemes = (doc.get("components") or {}).get("securitySchemes") or doc.get("securityDefinitions") or {}
    scheme_name = next(iter(security[0]), None) if security[0] else None
    definition = schemes.get(scheme_name) or {}
    if "$ref" in definition:
        definition = resolve_ref(definition["$ref"], doc) or {}

    kind = definition.get("type", "")
    if kind == "apiKey":
        return CanonicalAuth(
            type="apiKey",
            location=definition.get("in", "header"),
            name=definition.get("name"),
            description=definition.get("description"),
        )
    if kind in ("oauth2", "openIdConnect"):
        return CanonicalAuth(type="oauth2", description=definition.get("description"))
    if kind == "basic" or (kind == "http" and definition.get("scheme", "").lower() == "basic"):
        return CanonicalAuth(
            type="basic", scheme="basic", location="header", name="Authorization",
            description=definition.get("description"),
        )
    return CanonicalAuth(
        type="bearer",
        scheme="bearer",
        bearer_format=definition.get("bearerFormat"),
        location="header",
        name="Authorization",
        description=definition.get("description"),
    )
