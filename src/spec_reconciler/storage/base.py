"""Storage port consumed by the analyzer and merge executor."""

from typing import Protocol

from spec_reconciler.parser.base import CanonicalEndpoint, Spec, TestCase


class Storage(Protocol):
    async def get_spec(self, spec_id: int) -> Spec | None:
        ...

    async def insert_spec(self, spec: Spec) -> int:
        ...

    async def update_spec(self, spec: Spec) -> None:
        ...

    async def get_endpoints_by_spec(self, spec_id: int) -> list[CanonicalEndpoint]:
        """All stored endpoints of a spec, including deprecated ones."""
        ...

    async def count_tests_for_endpoint(self, endpoint_id: int) -> int:
        """Number of test cases whose current_endpoint_id is this endpoint."""
        ...

    async def get_test_cases_by_endpoint(self, endpoint_id: int) -> list[TestCase]:
        ...

    async def insert_endpoint(self, endpoint: CanonicalEndpoint) -> int:
        ...

    async def update_test_case_endpoint_link(self, test_case_id: int, new_endpoint_id: int) -> None:
        ...

    async def mark_deprecated(self, endpoint_id: int) -> None:
        ...
