"""Transient result models produced by analysis and merge.

None of these are persisted; they are built per call and handed to the
caller to render or act upon.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from spec_reconciler.parser.base import CanonicalEndpoint

ChangeType = Literal["added", "removed", "modified"]
ComparisonStatus = Literal["new", "modified", "unchanged", "deprecated"]


class Difference(BaseModel):
    property: str
    old_value: Any = None
    new_value: Any = None


class Change(BaseModel):
    """One field-level change between a stored endpoint and its incoming version."""

    field: str  # dotted path, e.g. request.body.fields
    type: ChangeType = "modified"
    old_value: Any = None
    new_value: Any = None

    # For collection-valued fields: which named item changed.
    name: str | None = None  # parameter name, dotted field path, or status code
    location: str | None = None  # parameter location
    differences: list[Difference] = []

    added: list[Any] | None = None  # set-valued fields (tags)
    removed: list[Any] | None = None
    note: str | None = None


class EndpointDiff(BaseModel):
    changes: list[Change] = []

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


class DuplicateEndpoint(BaseModel):
    existing: CanonicalEndpoint
    incoming: CanonicalEndpoint
    has_changes: bool
    changes: list[Change] = []
    affected_tests: int = 0


class SkippedEndpoint(BaseModel):
    index: int  # position in the incoming batch
    method: str | None = None
    path: str | None = None
    reason: str


class ImportSummary(BaseModel):
    new: int = 0
    duplicates: int = 0
    duplicates_with_tests: int = 0
    duplicates_without_tests: int = 0
    modified: int = 0
    unchanged: int = 0
    deprecated: int = 0
    skipped: int = 0
    total_tests: int = 0


class EndpointComparison(BaseModel):
    """One row per (method, path) key of an analysis."""

    method: str
    path: str
    existing: CanonicalEndpoint | None = None
    incoming: CanonicalEndpoint | None = None
    status: ComparisonStatus
    changes: list[Change] = []
    affected_tests: int = 0


class ImportAnalysis(BaseModel):
    target_spec_id: int
    total_endpoints: int = 0
    duplicates: list[DuplicateEndpoint] = []
    new_endpoints: list[CanonicalEndpoint] = []
    deprecated_candidates: list[CanonicalEndpoint] = []
    skipped: list[SkippedEndpoint] = []
    summary: ImportSummary = Field(default_factory=ImportSummary)

    def comparisons(self) -> list[EndpointComparison]:
        rows = [
            EndpointComparison(
                method=d.incoming.method,
                path=d.incoming.path,
                existing=d.existing,
                incoming=d.incoming,
                status="modified" if d.has_changes else "unchanged",
                changes=d.changes,
                affected_tests=d.affected_tests,
            )
            for d in self.duplicates
        ]
        rows.extend(
            EndpointComparison(method=e.method, path=e.path, incoming=e, status="new")
            for e in self.new_endpoints
        )
        rows.extend(
            EndpointComparison(method=e.method, path=e.path, existing=e, status="deprecated")
            for e in self.deprecated_candidates
        )
        return rows


class ImportOptions(BaseModel):
    on_duplicate: Literal["replace", "skip"] = "replace"
    replacements: list[int] | None = None  # existing endpoint ids; None means all duplicates
    mark_as_deprecated: bool = True
    deprecate_missing: bool = False


class ImportResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    succeeded: int = 0
    failed: int = 0
    errors: list[Exception] = []

    imported: int = 0
    replaced: int = 0
    skipped: int = 0
    deprecated: int = 0
    relinked: int = 0
    endpoint_ids: list[int] = []
    aborted: bool = False


class SpecVersionResult(BaseModel):
    spec_id: int
    endpoint_ids: list[int] = []
    endpoint_mapping: dict[int, int] = {}  # previous version endpoint id -> new id


class SectionScore(BaseModel):
    score: int = 0
    total: int = 0


class CompletenessReport(BaseModel):
    score: int  # 0-100
    complete: int
    total: int
    parameters: SectionScore
    body: SectionScore
    responses: SectionScore
