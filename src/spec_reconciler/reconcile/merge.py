"""Writes an analysed import back to storage.

Replacing a stored endpoint never overwrites or deletes its row. The
incoming version is inserted as a new row linked to the old one through
``previous_endpoint_id``, tests pointing at the old row are re-pointed to
the new one, and the old row is optionally flagged deprecated. Test
``source_endpoint_id`` values are never touched.
"""

import asyncio
import logging
import uuid
from typing import Iterable

from spec_reconciler.errors import EndpointMergeError, MalformedEndpoint, SpecNotFound
from spec_reconciler.parser.base import CanonicalEndpoint, Spec
from spec_reconciler.reconcile.analyzer import IncomingEndpoint, prepare_incoming, storage_call
from spec_reconciler.reconcile.events import (
    EndpointDeprecated,
    EndpointInserted,
    EndpointReplaced,
    EventBus,
    TestRelinked,
)
from spec_reconciler.reconcile.matcher import current_endpoints, endpoint_key, match_endpoints
from spec_reconciler.reconcile.report import ImportOptions, ImportResult, SpecVersionResult
from spec_reconciler.storage.base import Storage

logger = logging.getLogger(__name__)


class MergeExecutor:
    """Applies a merge policy for one import batch against one spec.

    Assumes it is the only writer to the target spec while it runs.
    """

    def __init__(self, storage: Storage, events: EventBus | None = None, normalize_templates: bool = False):
        self.storage = storage
        self.events = events or EventBus()
        self.normalize_templates = normalize_templates

    async def apply(
        self,
        incoming: Iterable[IncomingEndpoint],
        target_spec_id: int,
        options: ImportOptions | None = None,
        abort: asyncio.Event | None = None,
    ) -> ImportResult:
        """Merge incoming endpoints into a spec.

        Each endpoint is handled as one unit. A failing unit is recorded in
        the result and the batch moves on; units already merged stay merged.
        When ``abort`` is set the batch stops before the next endpoint. A key
        repeated in the batch is merged once; later copies count as skipped.
        """
        options = options or ImportOptions()
        result = ImportResult()

        endpoints, skipped = prepare_incoming(incoming)
        for entry in skipped:
            result.failed += 1
            result.errors.append(MalformedEndpoint(f"endpoint #{entry.index} ({entry.method} {entry.path}): {entry.reason}"))

        existing = await storage_call(
            self.storage.get_endpoints_by_spec(target_spec_id), f"loading endpoints of spec {target_spec_id}"
        )
        match = match_endpoints(existing, endpoints, self.normalize_templates)
        stored_for = {id(pair.incoming): pair.existing for pair in match.duplicates}
        handled: set[tuple[str, str]] = set()

        for endpoint in endpoints:
            if abort is not None and abort.is_set():
                result.aborted = True
                logger.warning("Import into spec %s aborted after %d endpoints", target_spec_id, result.succeeded)
                break

            key = endpoint_key(endpoint, self.normalize_templates)
            if key in handled:
                logger.info("Skipping repeated %s %s in import", endpoint.method, endpoint.path)
                result.skipped += 1
                continue
            handled.add(key)

            stored = stored_for.get(id(endpoint))
            if stored is not None and not self._should_replace(stored, options):
                result.skipped += 1
                continue

            try:
                if stored is None:
                    new_id = await self._insert(endpoint, target_spec_id)
                    result.imported += 1
                else:
                    new_id = await self._replace(stored, endpoint, target_spec_id, options, result)
                    result.replaced += 1
            except EndpointMergeError as exc:
                logger.error("Merging into spec %s failed: %s", target_spec_id, exc)
                result.failed += 1
                result.errors.append(exc)
                if exc.inserted_id is not None:
                    result.endpoint_ids.append(exc.inserted_id)
                continue
            result.succeeded += 1
            result.endpoint_ids.append(new_id)

        if options.deprecate_missing and not result.aborted:
            for endpoint in match.deprecated_candidates:
                if endpoint.deprecated:
                    continue
                try:
                    await self._deprecate(endpoint)
                except EndpointMergeError as exc:
                    logger.error("Deprecating in spec %s failed: %s", target_spec_id, exc)
                    result.failed += 1
                    result.errors.append(exc)
                    continue
                result.deprecated += 1

        logger.info(
            "Import into spec %s: %d imported, %d replaced, %d skipped, %d failed",
            target_spec_id, result.imported, result.replaced, result.skipped, result.failed,
        )
        return result

    @staticmethod
    def _should_replace(stored: CanonicalEndpoint, options: ImportOptions) -> bool:
        if options.on_duplicate == "skip":
            return False
        return options.replacements is None or stored.id in options.replacements

    async def _insert(
        self, endpoint: CanonicalEndpoint, spec_id: int, previous: CanonicalEndpoint | None = None
    ) -> int:
        row = endpoint.model_copy(
            update={
                "id": None,
                "spec_id": spec_id,
                "previous_endpoint_id": previous.id if previous else None,
            }
        )
        try:
            new_id = await self.storage.insert_endpoint(row)
        except Exception as exc:
            raise EndpointMergeError(endpoint.method, endpoint.path, f"insert failed: {exc}") from exc
        self.events.publish(EndpointInserted(spec_id=spec_id, endpoint_id=new_id, method=row.method, path=row.path))
        return new_id

    async def _replace(
        self,
        stored: CanonicalEndpoint,
        endpoint: CanonicalEndpoint,
        spec_id: int,
        options: ImportOptions,
        result: ImportResult,
    ) -> int:
        new_id = await self._insert(endpoint, spec_id, previous=stored)
        try:
            tests = await self.storage.get_test_cases_by_endpoint(stored.id)
            for test in tests:
                await self.storage.update_test_case_endpoint_link(test.id, new_id)
                result.relinked += 1
                self.events.publish(TestRelinked(test_case_id=test.id, old_endpoint_id=stored.id, new_endpoint_id=new_id))
            if options.mark_as_deprecated and not stored.deprecated:
                await self.storage.mark_deprecated(stored.id)
                result.deprecated += 1
                self.events.publish(EndpointDeprecated(endpoint_id=stored.id))
        except Exception as exc:
            raise EndpointMergeError(
                endpoint.method, endpoint.path, f"relinking from endpoint {stored.id} failed: {exc}", inserted_id=new_id
            ) from exc

        self.events.publish(EndpointReplaced(spec_id=spec_id, old_endpoint_id=stored.id, new_endpoint_id=new_id))
        logger.debug("Replaced endpoint %s with %s (%s %s)", stored.id, new_id, endpoint.method, endpoint.path)
        return new_id

    async def _deprecate(self, endpoint: CanonicalEndpoint) -> None:
        try:
            await self.storage.mark_deprecated(endpoint.id)
        except Exception as exc:
            raise EndpointMergeError(endpoint.method, endpoint.path, f"deprecation failed: {exc}") from exc
        self.events.publish(EndpointDeprecated(endpoint_id=endpoint.id))

    async def create_spec_version(
        self,
        incoming: Iterable[IncomingEndpoint],
        spec: Spec,
        previous_spec_id: int | None = None,
    ) -> SpecVersionResult:
        """Store the import as a new spec instead of merging into an existing one.

        With ``previous_spec_id`` the new spec joins that spec's version group,
        becomes the latest version, and the result maps each previous-version
        endpoint id to the new endpoint with the same key.
        """
        endpoints, _ = prepare_incoming(incoming)
        previous: Spec | None = None
        if previous_spec_id is not None:
            previous = await storage_call(self.storage.get_spec(previous_spec_id), f"loading spec {previous_spec_id}")
            if previous is None:
                raise SpecNotFound(previous_spec_id)

        group = (previous.version_group if previous else spec.version_group) or str(uuid.uuid4())
        new_spec = spec.model_copy(
            update={
                "id": None,
                "version_group": group,
                "previous_version_id": previous.id if previous else None,
                "is_latest": True,
            }
        )
        if previous is not None:
            await storage_call(
                self.storage.update_spec(previous.model_copy(update={"is_latest": False, "version_group": group})),
                f"updating spec {previous.id}",
            )
        spec_id = await storage_call(self.storage.insert_spec(new_spec), "inserting spec")

        outcome = SpecVersionResult(spec_id=spec_id)
        new_ids: dict[tuple[str, str], int] = {}
        for endpoint in endpoints:
            key = endpoint_key(endpoint, self.normalize_templates)
            if key in new_ids:
                logger.info("Skipping repeated %s %s in new spec", endpoint.method, endpoint.path)
                continue
            row = endpoint.model_copy(update={"id": None, "spec_id": spec_id, "previous_endpoint_id": None})
            new_id = await storage_call(self.storage.insert_endpoint(row), f"inserting {endpoint.method} {endpoint.path}")
            self.events.publish(EndpointInserted(spec_id=spec_id, endpoint_id=new_id, method=row.method, path=row.path))
            outcome.endpoint_ids.append(new_id)
            new_ids[key] = new_id

        if previous is not None:
            old_rows = await storage_call(
                self.storage.get_endpoints_by_spec(previous.id), f"loading endpoints of spec {previous.id}"
            )
            for key, old in current_endpoints(old_rows, self.normalize_templates).items():
                if key in new_ids:
                    outcome.endpoint_mapping[old.id] = new_ids[key]

        logger.info("Created spec %s with %d endpoints", spec_id, len(outcome.endpoint_ids))
        return outcome


async def import_endpoints(
    storage: Storage,
    incoming: Iterable[IncomingEndpoint],
    target_spec_id: int,
    options: ImportOptions | None = None,
    events: EventBus | None = None,
    abort: asyncio.Event | None = None,
) -> ImportResult:
    return await MergeExecutor(storage, events).apply(incoming, target_spec_id, options, abort)
