"""Auto-detect API documentation format."""

from typing import Any

import yaml


def detect_format(text: str, data: Any = None) -> tuple[str, str | None]:
    """Detect the format of an API document.

    Returns a ``(format, version)`` pair where format is one of
    'openapi', 'swagger', 'postman', 'curl' or 'unknown'. ``data`` may
    carry the already-loaded document to avoid parsing ``text`` twice.
    """
    if text.lstrip().startswith("curl"):
        return "curl", None

    if data is None:
        # YAML is a superset of JSON, so one loader covers both.
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError:
            return "unknown", None

    if isinstance(data, dict):
        if "openapi" in data:
            return "openapi", str(data["openapi"])
        if "swagger" in data:
            return "swagger", str(data["swagger"])
        info = data.get("info")
        if isinstance(info, dict) and ("_postman_id" in info or "postman" in str(info.get("schema", ""))):
            return "postman", _postman_version(info.get("schema", ""))
        if isinstance(data.get("item"), list):
            return "postman", None

    return "unknown", None


def _postman_version(schema_url: str) -> str | None:
    # https://schema.getpostman.com/json/collection/v2.1.0/collection.json
    for part in schema_url.split("/"):
        if part.startswith("v") and part[1:2].isdigit():
            return part[1:]
    return None
