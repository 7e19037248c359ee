"""Entry points of the Spec Parser: raw document text in, canonical endpoints out."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from spec_reconciler.errors import UnsupportedFormat
from spec_reconciler.parser.base import CanonicalEndpoint
from spec_reconciler.parser.curl import parse_curl
from spec_reconciler.parser.detect import detect_format
from spec_reconciler.parser.postman import parse_postman
from spec_reconciler.parser.swagger import parse_openapi
from spec_reconciler.reconcile.defaults import apply_smart_defaults

logger = logging.getLogger(__name__)

FORMATS = ("openapi", "swagger", "postman", "curl")
# Sources that carry too little metadata to compare without enrichment.
ENRICHED_FORMATS = {"postman", "curl"}


class ParsedDocument(BaseModel):
    """A recognised document before endpoint extraction."""

    format: str
    version: str | None = None
    document: Any = None  # loaded mapping, or the raw text for curl
    raw: str = ""


class DocumentInfo(BaseModel):
    name: str = "Imported API"
    version: str = "1.0.0"
    description: str | None = None
    base_url: str | None = None


def parse_document(raw: str, filename: str = "", fmt: str = "auto") -> ParsedDocument:
    """Recognise and load a raw document.

    ``fmt`` forces a format instead of detecting one. Raises
    UnsupportedFormat when nothing matches.
    """
    if fmt == "curl" or (fmt == "auto" and Path(filename).suffix in (".sh", ".curl")):
        return ParsedDocument(format="curl", document=raw, raw=raw)

    data = None
    if not raw.lstrip().startswith("curl"):
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise UnsupportedFormat(f"{filename or 'document'} is neither YAML nor JSON: {exc}") from exc

    detected, version = detect_format(raw, data)
    if fmt != "auto":
        if fmt not in FORMATS:
            raise UnsupportedFormat(f"unknown format {fmt!r}")
        if detected not in (fmt, "unknown") and {detected, fmt} != {"openapi", "swagger"}:
            logger.warning("%s looks like %s but was forced to %s", filename or "document", detected, fmt)
        detected = fmt
    if detected == "unknown":
        raise UnsupportedFormat(f"cannot detect the format of {filename or 'document'}")

    logger.debug("Detected %s %s in %s", detected, version or "", filename or "document")
    return ParsedDocument(format=detected, version=version, document=raw if detected == "curl" else data, raw=raw)


def load_file(path: Path, fmt: str = "auto") -> ParsedDocument:
    return parse_document(path.read_text(encoding="utf-8"), path.name, fmt)


def extract_endpoints(
    parsed: ParsedDocument, spec_id: int | None = None, smart_defaults: bool = True
) -> list[CanonicalEndpoint]:
    """Convert a parsed document into canonical endpoints.

    Postman and cURL endpoints are enriched with smart defaults unless
    ``smart_defaults`` is off.
    """
    if parsed.format in ("openapi", "swagger"):
        endpoints = parse_openapi(parsed.document, spec_id)
    elif parsed.format == "postman":
        endpoints = parse_postman(parsed.document, spec_id)
    elif parsed.format == "curl":
        endpoints = parse_curl(parsed.document, spec_id)
    else:
        raise UnsupportedFormat(f"unsupported format {parsed.format!r}")

    if smart_defaults and parsed.format in ENRICHED_FORMATS:
        endpoints = [apply_smart_defaults(e) for e in endpoints]
    return endpoints


def document_info(parsed: ParsedDocument) -> DocumentInfo:
    """Spec-level metadata (title, version, base URL) of a parsed document."""
    if parsed.format == "curl" or not isinstance(parsed.document, dict):
        return DocumentInfo(name="cURL import")

    doc = parsed.document
    info = doc.get("info") or {}
    if parsed.format == "postman":
        description = info.get("description")
        if isinstance(description, dict):
            description = description.get("content")
        base_url = next((v.get("value") for v in doc.get("variable", []) if v.get("key") == "baseUrl"), None)
        return DocumentInfo(name=info.get("name") or "Postman collection", description=description, base_url=base_url)

    if parsed.format == "swagger":
        host = doc.get("host")
        scheme = (doc.get("schemes") or ["https"])[0]
        base_url = f"{scheme}://{host}{doc.get('basePath', '')}" if host else doc.get("basePath")
    else:
        base_url = next((s.get("url") for s in doc.get("servers") or [] if s.get("url")), None)
    return DocumentInfo(
        name=info.get("title") or "Imported API",
        version=str(info.get("version") or "1.0.0"),
        description=info.get("description"),
        base_url=base_url,
    )
