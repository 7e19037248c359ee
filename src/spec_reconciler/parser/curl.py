"""cURL command parser.

Turns one or more ``curl`` command lines into CanonicalEndpoint models.
A command carries only a URL, headers and an example payload, so the
result is meant to go through smart defaults afterwards.
"""

import json
import logging
import re
import shlex
from urllib.parse import parse_qsl, urlsplit

from spec_reconciler.errors import UnsupportedFormat
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

DATA_FLAGS = {"-d", "--data", "--data-raw", "--data-binary", "--data-ascii", "--data-urlencode", "--json"}
FORM_FLAGS = {"-F", "--form", "--form-string"}
# Flags that take a value we do not use.
IGNORED_VALUE_FLAGS = {
    "-o", "--output", "-A", "--user-agent", "-e", "--referer", "-b", "--cookie", "-c", "--cookie-jar",
    "-m", "--max-time", "--connect-timeout", "-x", "--proxy", "-w", "--write-out", "--retry", "-T",
    "--upload-file", "--cacert", "--cert", "--key", "-r", "--range",
}
NUMERIC_SEGMENT_RE = re.compile(r"^\d+$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def split_commands(text: str) -> list[str]:
    """Split a document into individual curl commands, joining continuation lines."""
    joined = re.sub(r"\\\r?\n", " ", text)
    commands: list[str] = []
    for line in joined.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("curl ") or stripped == "curl":
            commands.append(stripped)
        elif commands:
            commands[-1] += " " + stripped
    return commands


def parse_curl(text: str, spec_id: int | None = None) -> list[CanonicalEndpoint]:
    """Parse every curl command found in ``text``."""
    commands = split_commands(text)
    if not commands:
        raise UnsupportedFormat("no curl command found")
    return [parse_curl_command(command, spec_id) for command in commands]


def parse_curl_command(command: str, spec_id: int | None = None) -> CanonicalEndpoint:
    try:
        tokens = shlex.split(command)
    except ValueError as exc:
        raise UnsupportedFormat(f"cannot tokenize curl command: {exc}") from exc
    if not tokens or tokens[0] != "curl":
        raise UnsupportedFormat("not a curl command")

    method: str | None = None
    url: str | None = None
    headers: list[tuple[str, str]] = []
    data: list[str] = []
    form: list[str] = []
    user: str | None = None
    as_query = False
    json_flag = False

    args = iter(tokens[1:])
    for token in args:
        if token in ("-X", "--request"):
            method = next(args, "GET")
        elif token.startswith("-X") and len(token) > 2:
            method = token[2:]
        elif token in ("-H", "--header"):
            name, _, value = next(args, "").partition(":")
            headers.append((name.strip(), value.strip()))
        elif token in DATA_FLAGS:
            json_flag = json_flag or token == "--json"
            data.append(next(args, ""))
        elif token in FORM_FLAGS:
            form.append(next(args, ""))
        elif token in ("-u", "--user"):
            user = next(args, "")
        elif token in ("-G", "--get"):
            as_query = True
        elif token == "--url":
            url = next(args, None)
        elif token == "-I" or token == "--head":
            method = "HEAD"
        elif token in IGNORED_VALUE_FLAGS:
            next(args, None)
        elif token.startswith("-"):
            continue
        elif url is None:
            url = token

    if not url:
        raise UnsupportedFormat("curl command has no URL")

    parts = urlsplit(url if "://" in url else "http://" + url)
    path, path_params = _template_path(parts.path or "/")
    request = CanonicalRequest(parameters=path_params)
    request.parameters += [
        CanonicalParameter(name=key, location="query", example=value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]

    auth = None
    if user is not None:
        auth = CanonicalAuth(type="basic", scheme="basic", location="header", name="Authorization")
    for name, value in headers:
        lower = name.lower()
        if lower == "content-type":
            request.content_type = value
            continue
        if lower == "authorization":
            scheme = value.split(" ", 1)[0].lower()
            auth = CanonicalAuth(
                type="basic" if scheme == "basic" else "bearer",
                scheme=scheme if scheme in ("basic", "bearer") else "bearer",
                location="header",
                name="Authorization",
            )
        elif lower in ("x-api-key", "api-key", "apikey") and auth is None:
            auth = CanonicalAuth(type="apiKey", location="header", name=name)
        request.parameters.append(CanonicalParameter(name=name, location="header", example=value))

    if as_query:
        for chunk in data:
            request.parameters += [
                CanonicalParameter(name=key, location="query", example=value)
                for key, value in parse_qsl(chunk, keep_blank_values=True)
            ]
    elif data:
        request.body, content_type = _data_body("&".join(data) if len(data) > 1 else data[0])
        if json_flag:
            content_type = "application/json"
        if content_type and not any(n.lower() == "content-type" for n, _ in headers):
            request.content_type = content_type
    elif form:
        fields = []
        example = {}
        for entry in form:
            key, _, value = entry.partition("=")
            fields.append(CanonicalField(name=key, type="file" if value.startswith("@") else "string", example=value))
            example[key] = value
        request.body = RequestBody(example=example, fields=fields)
        request.content_type = "multipart/form-data"

    if method is None:
        method = "POST" if (data or form) and not as_query else "GET"
    method = method.upper()

    return CanonicalEndpoint(
        spec_id=spec_id,
        source="curl",
        method=method,
        path=path,
        name=f"{method} {path}",
        description="Imported from cURL command",
        tags=["imported", "curl"],
        request=request,
        responses=CanonicalResponses(success=SuccessResponse(status=None)),
        auth=auth,
    )


def _template_path(path: str) -> tuple[str, list[CanonicalParameter]]:
    """Replace numeric and UUID segments with ``{id}`` style templates."""
    segments = [s for s in path.split("/") if s]
    params: list[CanonicalParameter] = []
    for index, segment in enumerate(segments):
        if not NUMERIC_SEGMENT_RE.match(segment):
            continue
        previous = segments[index - 1] if index else ""
        name = f"{previous.rstrip('s')}Id" if previous and not previous.startswith("{") else "id"
        if any(p.name == name for p in params):
            name = f"{name}{index}"
        segments[index] = "{" + name + "}"
        params.append(CanonicalParameter(name=name, location="path", example=segment))
    return "/" + "/".join(segments), params


def _data_body(raw: str) -> tuple[RequestBody, str | None]:
    try:
        example = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        pairs = parse_qsl(raw, keep_blank_values=True) if "=" in raw else []
        if not pairs:
            return RequestBody(example=raw), "text/plain"
        example = dict(pairs)
        fields = [CanonicalField(name=k, type=infer_type(v), example=v) for k, v in pairs]
        return RequestBody(example=example, fields=fields), "application/x-www-form-urlencoded"
    return RequestBody(example=example, fields=infer_fields_from_example(example)), "application/json"
