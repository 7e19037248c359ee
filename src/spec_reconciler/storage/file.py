"""JSON file storage used by the command line tool."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel

from spec_reconciler.parser.base import CanonicalEndpoint, Spec, TestCase
from spec_reconciler.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)


class StoreSnapshot(BaseModel):
    """On-disk layout of a store file."""

    next_id: dict[str, int] = {}
    specs: list[Spec] = []
    endpoints: list[CanonicalEndpoint] = []
    test_cases: list[TestCase] = []


class JsonFileStorage(MemoryStorage):
    """MemoryStorage that reloads from and rewrites a single JSON file."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        snapshot = StoreSnapshot.model_validate(json.loads(self.path.read_text(encoding="utf-8")))
        self.specs = {s.id: s for s in snapshot.specs}
        self.endpoints = {e.id: e for e in snapshot.endpoints}
        self.test_cases = {t.id: t for t in snapshot.test_cases}
        self._next_id.update(snapshot.next_id)
        logger.debug(
            "Loaded %d specs, %d endpoints, %d test cases from %s",
            len(self.specs), len(self.endpoints), len(self.test_cases), self.path,
        )

    async def _changed(self) -> None:
        snapshot = StoreSnapshot(
            next_id=dict(self._next_id),
            specs=list(self.specs.values()),
            endpoints=list(self.endpoints.values()),
            test_cases=list(self.test_cases.values()),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(snapshot.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
