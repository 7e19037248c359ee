"""Postman Collection v2.x parser.

Parses exported Postman collections into CanonicalEndpoint models.
Folder names become tags; saved example responses feed the success
response.
"""

import json
import logging
import re
from typing import Any
from urllib.parse import urlsplit

from spec_reconciler.parser.base import (
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    CanonicalRequest,
    CanonicalResponses,
    RequestBody,
    SuccessResponse,
)
from spec_reconciler.parser.schema import infer_fields_from_example, infer_type

logger = logging.getLogger(__name__)

VARIABLE_RE = re.compile(r"\{\{[^}]*\}\}")


def parse_postman(collection: dict, spec_id: int | None = None) -> list[CanonicalEndpoint]:
    """Parse a loaded Postman collection into a list of CanonicalEndpoint."""
    endpoints: list[CanonicalEndpoint] = []
    default_auth = _parse_auth(collection.get("auth"))
    _parse_items(collection.get("item", []), endpoints, [], default_auth, spec_id)
    logger.debug("Parsed %d endpoints from Postman collection", len(endpoints))
    return endpoints


def _parse_items(
    items: list[dict],
    endpoints: list[CanonicalEndpoint],
    folders: list[str],
    inherited_auth: CanonicalAuth | None,
    spec_id: int | None,
) -> None:
    """Recursively parse items (supports folders)."""
    for item in items:
        if "item" in item:
            folder_auth = _parse_auth(item["auth"]) if "auth" in item else inherited_auth
            _parse_items(item["item"], endpoints, folders + [item.get("name", "")], folder_auth, spec_id)
        elif "request" in item:
            endpoints.append(_parse_request(item, folders, inherited_auth, spec_id))


def _parse_request(
    item: dict, folders: list[str], inherited_auth: CanonicalAuth | None, spec_id: int | None
) -> CanonicalEndpoint:
    req = item["request"]
    if isinstance(req, str):  # a bare URL means GET
        req = {"method": "GET", "url": req}
    method = req.get("method", "GET").upper()
    url = req.get("url", {})
    if isinstance(url, str):
        url = _split_raw_url(url)

    path, path_params = _parse_path(url)
    request = CanonicalRequest(parameters=path_params + _parse_query_params(url.get("query", [])))

    headers = [h for h in req.get("header", []) if not h.get("disabled")]
    auth = _parse_auth(req["auth"]) if "auth" in req else inherited_auth
    for header in headers:
        key = header.get("key", "")
        if key.lower() == "content-type":
            request.content_type = header.get("value", request.content_type)
            continue
        if key.lower() == "authorization" and auth is None:
            auth = _auth_from_header(header.get("value", ""))
        request.parameters.append(
            CanonicalParameter(
                name=key,
                location="header",
                description=_description(header),
                example=header.get("value"),
            )
        )

    body = req.get("body")
    if body:
        request.body, content_type = _parse_body(body)
        if content_type and not any(h.get("key", "").lower() == "content-type" for h in headers):
            request.content_type = content_type

    return CanonicalEndpoint(
        spec_id=spec_id,
        source="postman",
        method=method,
        path=path,
        name=item.get("name", f"{method} {path}"),
        description=_description(req),
        tags=[f for f in folders if f],
        request=request,
        responses=_parse_responses(item.get("response", [])),
        auth=auth,
    )


def _split_raw_url(raw: str) -> dict:
    stripped = VARIABLE_RE.sub("", raw, count=1) if raw.startswith("{{") else raw
    parts = urlsplit(stripped if "://" in stripped or stripped.startswith("/") else "/" + stripped)
    query = []
    for pair in filter(None, parts.query.split("&")):
        key, _, value = pair.partition("=")
        query.append({"key": key, "value": value})
    return {"raw": raw, "path": [p for p in parts.path.split("/") if p], "query": query}


def _parse_path(url: dict) -> tuple[str, list[CanonicalParameter]]:
    """Turn Postman path segments into a templated path plus path parameters.

    ``:id`` segments become ``{id}``; a leading ``{{baseUrl}}`` segment is dropped.
    """
    segments = url.get("path", [])
    if isinstance(segments, str):
        segments = [s for s in segments.split("/") if s]
    variables = {v.get("key"): v for v in url.get("variable", [])}

    parts: list[str] = []
    params: list[CanonicalParameter] = []
    for segment in segments:
        if isinstance(segment, dict):  # path segments may be {type, value} objects
            segment = segment.get("value", "")
        if VARIABLE_RE.fullmatch(segment) and not parts:
            continue
        if segment.startswith(":"):
            name = segment[1:]
            variable = variables.get(name, {})
            parts.append("{" + name + "}")
            params.append(
                CanonicalParameter(
                    name=name,
                    location="path",
                    description=_description(variable),
                    example=variable.get("value") or None,
                )
            )
        else:
            parts.append(segment)
    return "/" + "/".join(parts), params


def _parse_query_params(query: list[dict]) -> list[CanonicalParameter]:
    return [
        CanonicalParameter(
            name=q["key"],
            location="query",
            required=False,
            description=_description(q),
            example=q.get("value"),
        )
        for q in query
        if q.get("key") and not q.get("disabled")
    ]


def _parse_body(body: dict) -> tuple[RequestBody | None, str | None]:
    mode = body.get("mode")
    if mode == "raw":
        raw = body.get("raw", "")
        language = (body.get("options") or {}).get("raw", {}).get("language", "json")
        try:
            example = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return RequestBody(example=raw or None), "text/plain" if language == "text" else None
        return RequestBody(example=example, fields=infer_fields_from_example(example)), "application/json"

    if mode in ("urlencoded", "formdata"):
        entries = [e for e in body.get(mode, []) if e.get("key") and not e.get("disabled")]
        fields = [
            CanonicalField(
                name=e["key"],
                type="file" if e.get("type") == "file" else infer_type(e.get("value")),
                description=_description(e),
                example=e.get("value"),
            )
            for e in entries
        ]
        example = {e["key"]: e.get("value") for e in entries}
        content_type = "multipart/form-data" if mode == "formdata" else "application/x-www-form-urlencoded"
        return RequestBody(example=example, fields=fields), content_type

    if mode == "graphql":
        graphql = body.get("graphql", {})
        return RequestBody(example=graphql, fields=infer_fields_from_example(graphql)), "application/json"
    return None, None


def _parse_responses(saved: list[dict]) -> CanonicalResponses:
    """Use the first saved 2xx example as the success response."""
    responses = CanonicalResponses()
    for example in saved:
        code = example.get("code")
        if not isinstance(code, int) or not 200 <= code < 300:
            continue
        content_type = next(
            (h.get("value") for h in example.get("header") or [] if h.get("key", "").lower() == "content-type"),
            "application/json",
        )
        payload: Any = example.get("body")
        try:
            payload = json.loads(payload) if payload else None
        except (json.JSONDecodeError, TypeError):
            pass
        responses.success = SuccessResponse(
            status=code,
            description=example.get("status") or example.get("name"),
            content_type=content_type,
            example=payload,
            fields=infer_fields_from_example(payload[0] if isinstance(payload, list) and payload else payload),
        )
        break
    else:
        # Without examples the status is left for smart defaults to fill in.
        responses.success = SuccessResponse(status=None, content_type="application/json")
    return responses


def _parse_auth(auth: dict | None) -> CanonicalAuth | None:
    if not auth:
        return None
    kind = auth.get("type")
    if kind == "noauth":
        return CanonicalAuth(required=False, type="none")
    if kind == "basic":
        return CanonicalAuth(type="basic", scheme="basic", location="header", name="Authorization")
    if kind == "apikey":
        settings = {e.get("key"): e.get("value") for e in auth.get("apikey", [])}
        return CanonicalAuth(type="apiKey", location=settings.get("in") or "header", name=settings.get("key") or "X-API-Key")
    if kind == "oauth2":
        return CanonicalAuth(type="oauth2")
    return CanonicalAuth(type="bearer", scheme="bearer", location="header", name="Authorization")


def _auth_from_header(value: str) -> CanonicalAuth:
    if value.lower().startswith("basic "):
        return CanonicalAuth(type="basic", scheme="basic", location="header", name="Authorization")
    return CanonicalAuth(type="bearer", scheme="bearer", location="header", name="Authorization")


def _description(entry: dict) -> str | None:
    description = entry.get("description")
    if isinstance(description, dict):  # {content, type} form
        description = description.get("content")
    return description or None
