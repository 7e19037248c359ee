"""Read-only analysis of an import batch against a stored spec."""

import logging
from typing import Any, Awaitable, Iterable, Mapping, TypeVar, Union

from pydantic import ValidationError

from spec_reconciler.errors import ReconcilerError, StorageUnavailable
from spec_reconciler.parser.base import CanonicalEndpoint
from spec_reconciler.reconcile.differ import diff_endpoints
from spec_reconciler.reconcile.matcher import match_endpoints
from spec_reconciler.reconcile.report import DuplicateEndpoint, ImportAnalysis, ImportSummary, SkippedEndpoint
from spec_reconciler.storage.base import Storage

logger = logging.getLogger(__name__)

T = TypeVar("T")

IncomingEndpoint = Union[CanonicalEndpoint, Mapping[str, Any]]


async def storage_call(awaitable: Awaitable[T], action: str) -> T:
    """Await a storage call, re-raising collaborator failures as StorageUnavailable."""
    try:
        return await awaitable
    except ReconcilerError:
        raise
    except Exception as exc:
        raise StorageUnavailable(f"{action} failed: {exc}") from exc


def prepare_incoming(
    incoming: Iterable[IncomingEndpoint],
) -> tuple[list[CanonicalEndpoint], list[SkippedEndpoint]]:
    """Validate an incoming batch at the boundary.

    Raw mappings are validated into CanonicalEndpoint. Anything that fails
    validation or lacks a method or path is set aside with a reason instead
    of failing the batch. Repeated keys are kept; callers decide what a
    repeat means.
    """
    accepted: list[CanonicalEndpoint] = []
    skipped: list[SkippedEndpoint] = []

    for index, item in enumerate(incoming):
        if isinstance(item, CanonicalEndpoint):
            endpoint = item
        else:
            try:
                endpoint = CanonicalEndpoint.model_validate(item)
            except ValidationError as exc:
                skipped.append(
                    SkippedEndpoint(
                        index=index,
                        method=_raw_str(item, "method"),
                        path=_raw_str(item, "path"),
                        reason=f"invalid endpoint: {exc.error_count()} validation error(s)",
                    )
                )
                continue

        if not endpoint.is_well_formed():
            missing = [name for name in ("method", "path") if not getattr(endpoint, name)]
            skipped.append(
                SkippedEndpoint(
                    index=index,
                    method=endpoint.method or None,
                    path=endpoint.path or None,
                    reason=f"missing {' and '.join(missing)}",
                )
            )
            continue

        accepted.append(endpoint)

    for entry in skipped:
        logger.warning("Skipping incoming endpoint #%d (%s %s): %s", entry.index, entry.method, entry.path, entry.reason)
    return accepted, skipped


def _raw_str(item: Any, key: str) -> str | None:
    value = item.get(key) if isinstance(item, Mapping) else None
    return value if isinstance(value, str) else None


class ImportAnalyzer:
    """Compares incoming endpoints with the endpoints stored for a spec.

    Never writes to storage, so repeated calls over unchanged storage give
    equal results.
    """

    def __init__(self, storage: Storage, normalize_templates: bool = False):
        self.storage = storage
        self.normalize_templates = normalize_templates

    async def analyze(self, incoming: Iterable[IncomingEndpoint], target_spec_id: int) -> ImportAnalysis:
        incoming = list(incoming)
        endpoints, skipped = prepare_incoming(incoming)

        # A missing spec simply has no endpoints; validating it is the caller's job.
        existing = await storage_call(
            self.storage.get_endpoints_by_spec(target_spec_id), f"loading endpoints of spec {target_spec_id}"
        )
        match = match_endpoints(existing, endpoints, self.normalize_templates)

        duplicates: list[DuplicateEndpoint] = []
        for pair in match.duplicates:
            diff = diff_endpoints(pair.existing, pair.incoming)
            affected = await storage_call(
                self.storage.count_tests_for_endpoint(pair.existing.id),
                f"counting tests of endpoint {pair.existing.id}",
            )
            duplicates.append(
                DuplicateEndpoint(
                    existing=pair.existing,
                    incoming=pair.incoming,
                    has_changes=diff.has_changes,
                    changes=diff.changes,
                    affected_tests=affected,
                )
            )

        summary = ImportSummary(
            new=len(match.new_endpoints),
            duplicates=len(duplicates),
            duplicates_with_tests=sum(1 for d in duplicates if d.affected_tests > 0),
            duplicates_without_tests=sum(1 for d in duplicates if d.affected_tests == 0),
            modified=sum(1 for d in duplicates if d.has_changes),
            unchanged=sum(1 for d in duplicates if not d.has_changes),
            deprecated=len(match.deprecated_candidates),
            skipped=len(skipped),
            total_tests=sum(d.affected_tests for d in duplicates),
        )
        logger.info(
            "Analyzed %d endpoints against spec %s: %d new, %d duplicates (%d modified), %d deprecated",
            len(incoming), target_spec_id, summary.new, summary.duplicates, summary.modified, summary.deprecated,
        )
        return ImportAnalysis(
            target_spec_id=target_spec_id,
            total_endpoints=len(incoming),
            duplicates=duplicates,
            new_endpoints=match.new_endpoints,
            deprecated_candidates=match.deprecated_candidates,
            skipped=skipped,
            summary=summary,
        )

    async def stats(self, incoming: Iterable[IncomingEndpoint], target_spec_id: int) -> dict[str, int]:
        """Quick new/duplicate counts without diffing or counting tests."""
        endpoints, _ = prepare_incoming(incoming)
        existing = await storage_call(
            self.storage.get_endpoints_by_spec(target_spec_id), f"loading endpoints of spec {target_spec_id}"
        )
        match = match_endpoints(existing, endpoints, self.normalize_templates)
        return {
            "total": len(endpoints),
            "estimated_new": len(match.new_endpoints),
            "estimated_duplicates": len(match.duplicates),
        }


async def analyze_import(
    storage: Storage, incoming: Iterable[IncomingEndpoint], target_spec_id: int
) -> ImportAnalysis:
    return await ImportAnalyzer(storage).analyze(incoming, target_spec_id)


async def get_import_stats(
    storage: Storage, incoming: Iterable[IncomingEndpoint], target_spec_id: int
) -> dict[str, int]:
    return await ImportAnalyzer(storage).stats(incoming, target_spec_id)
