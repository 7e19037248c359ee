"""Identity matching of endpoints by (method, path)."""

import re
from typing import Iterable

from pydantic import BaseModel

from spec_reconciler.parser.base import CanonicalEndpoint

_TEMPLATE_PARAM = re.compile(r"\{[^/{}]*\}")


class MatchedPair(BaseModel):
    existing: CanonicalEndpoint
    incoming: CanonicalEndpoint


class MatchResult(BaseModel):
    duplicates: list[MatchedPair] = []
    new_endpoints: list[CanonicalEndpoint] = []
    deprecated_candidates: list[CanonicalEndpoint] = []


def endpoint_key(endpoint: CanonicalEndpoint, normalize_templates: bool = False) -> tuple[str, str]:
    """Identity key: upper-cased method, case-sensitive path.

    With ``normalize_templates`` every ``{param}`` segment collapses to ``{}``,
    so ``/users/{id}`` and ``/users/{userId}`` share a key.
    """
    path = endpoint.path or ""
    if normalize_templates:
        path = _TEMPLATE_PARAM.sub("{}", path)
    return ((endpoint.method or "").upper(), path)


def current_endpoints(
    existing: Iterable[CanonicalEndpoint], normalize_templates: bool = False
) -> dict[tuple[str, str], CanonicalEndpoint]:
    """Pick one representative stored row per key.

    A replace merge keeps the superseded row next to its replacement, so a
    key can map to several rows. Rows superseded by another row are passed
    over; remaining ties prefer non-deprecated rows, then the highest id.
    """
    rows = list(existing)
    superseded = {e.previous_endpoint_id for e in rows if e.previous_endpoint_id is not None}

    def rank(endpoint: CanonicalEndpoint) -> tuple[bool, bool, int]:
        return (
            endpoint.id not in superseded,
            not endpoint.deprecated,
            endpoint.id if endpoint.id is not None else -1,
        )

    current: dict[tuple[str, str], CanonicalEndpoint] = {}
    for endpoint in rows:
        key = endpoint_key(endpoint, normalize_templates)
        held = current.get(key)
        if held is None or rank(endpoint) > rank(held):
            current[key] = endpoint
    return current


def match_endpoints(
    existing: Iterable[CanonicalEndpoint],
    incoming: Iterable[CanonicalEndpoint],
    normalize_templates: bool = False,
) -> MatchResult:
    """Split incoming endpoints into duplicates and new ones, and find stored
    endpoints the import no longer mentions.

    Incoming order is preserved for duplicates and new endpoints; deprecation
    candidates keep stored order. Every incoming endpoint is classified on its
    own, so a key repeated in the batch yields one duplicate pair per copy.
    """
    current = current_endpoints(existing, normalize_templates)
    result = MatchResult()
    seen: set[tuple[str, str]] = set()

    for endpoint in incoming:
        key = endpoint_key(endpoint, normalize_templates)
        stored = current.get(key)
        if stored is not None:
            result.duplicates.append(MatchedPair(existing=stored, incoming=endpoint))
        else:
            result.new_endpoints.append(endpoint)
        seen.add(key)

    result.deprecated_candidates = [e for key, e in current.items() if key not in seen]
    return result


def merge_endpoint_sets(endpoint_sets: Iterable[Iterable[CanonicalEndpoint]]) -> list[CanonicalEndpoint]:
    """Concatenate several imports into one batch; the first endpoint per key wins."""
    merged: list[CanonicalEndpoint] = []
    seen: set[tuple[str, str]] = set()
    for endpoints in endpoint_sets:
        for endpoint in endpoints:
            key = endpoint_key(endpoint)
            if key not in seen:
                seen.add(key)
                merged.append(endpoint)
    return merged
