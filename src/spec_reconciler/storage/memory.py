"""In-process storage backed by dictionaries."""

from datetime import datetime, timezone

from spec_reconciler.parser.base import CanonicalEndpoint, Spec, TestCase


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStorage:
    """Implements the Storage port. Records are copied on the way in and out,
    so callers never hold a live reference to stored state."""

    def __init__(self):
        self.specs: dict[int, Spec] = {}
        self.endpoints: dict[int, CanonicalEndpoint] = {}
        self.test_cases: dict[int, TestCase] = {}
        self._next_id = {"specs": 1, "endpoints": 1, "test_cases": 1}

    def _allocate(self, table: str) -> int:
        new_id = self._next_id[table]
        self._next_id[table] = new_id + 1
        return new_id

    async def _changed(self) -> None:
        """Hook called after every write."""

    # -- specs ----------------------------------------------------------------

    async def get_spec(self, spec_id: int) -> Spec | None:
        spec = self.specs.get(spec_id)
        return spec.model_copy(deep=True) if spec else None

    async def insert_spec(self, spec: Spec) -> int:
        spec_id = self._allocate("specs")
        now = _now()
        self.specs[spec_id] = spec.model_copy(
            update={"id": spec_id, "created_at": spec.created_at or now, "updated_at": now}, deep=True
        )
        await self._changed()
        return spec_id

    async def update_spec(self, spec: Spec) -> None:
        if spec.id not in self.specs:
            raise KeyError(f"spec {spec.id} does not exist")
        self.specs[spec.id] = spec.model_copy(update={"updated_at": _now()}, deep=True)
        await self._changed()

    # -- endpoints ------------------------------------------------------------

    async def get_endpoints_by_spec(self, spec_id: int) -> list[CanonicalEndpoint]:
        return [e.model_copy(deep=True) for e in self.endpoints.values() if e.spec_id == spec_id]

    async def get_endpoint(self, endpoint_id: int) -> CanonicalEndpoint | None:
        endpoint = self.endpoints.get(endpoint_id)
        return endpoint.model_copy(deep=True) if endpoint else None

    async def insert_endpoint(self, endpoint: CanonicalEndpoint) -> int:
        endpoint_id = self._allocate("endpoints")
        now = _now()
        self.endpoints[endpoint_id] = endpoint.model_copy(
            update={"id": endpoint_id, "created_at": now, "updated_at": now}, deep=True
        )
        await self._changed()
        return endpoint_id

    async def mark_deprecated(self, endpoint_id: int) -> None:
        endpoint = self.endpoints[endpoint_id]
        endpoint.deprecated = True
        endpoint.updated_at = _now()
        await self._changed()

    # -- test cases -----------------------------------------------------------

    async def insert_test_case(self, test_case: TestCase) -> int:
        test_case_id = self._allocate("test_cases")
        now = _now()
        self.test_cases[test_case_id] = test_case.model_copy(
            update={"id": test_case_id, "created_at": now, "updated_at": now}, deep=True
        )
        await self._changed()
        return test_case_id

    async def get_test_case(self, test_case_id: int) -> TestCase | None:
        test_case = self.test_cases.get(test_case_id)
        return test_case.model_copy(deep=True) if test_case else None

    async def count_tests_for_endpoint(self, endpoint_id: int) -> int:
        return sum(1 for t in self.test_cases.values() if t.current_endpoint_id == endpoint_id)

    async def get_test_cases_by_endpoint(self, endpoint_id: int) -> list[TestCase]:
        return [t.model_copy(deep=True) for t in self.test_cases.values() if t.current_endpoint_id == endpoint_id]

    async def update_test_case_endpoint_link(self, test_case_id: int, new_endpoint_id: int) -> None:
        test_case = self.test_cases[test_case_id]
        test_case.current_endpoint_id = new_endpoint_id
        test_case.is_custom_endpoint = False
        test_case.updated_at = _now()
        await self._changed()
