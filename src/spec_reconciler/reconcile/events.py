"""Events published by the merge executor.

Caches and UIs subscribe to these instead of the engine calling into them.
"""

import logging
from typing import Callable, Literal, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class EndpointInserted(BaseModel):
    kind: Literal["endpoint_inserted"] = "endpoint_inserted"
    spec_id: int
    endpoint_id: int
    method: str
    path: str


class EndpointReplaced(BaseModel):
    kind: Literal["endpoint_replaced"] = "endpoint_replaced"
    spec_id: int
    old_endpoint_id: int
    new_endpoint_id: int


class TestRelinked(BaseModel):
    __test__ = False

    kind: Literal["test_relinked"] = "test_relinked"
    test_case_id: int
    old_endpoint_id: int
    new_endpoint_id: int


class EndpointDeprecated(BaseModel):
    kind: Literal["endpoint_deprecated"] = "endpoint_deprecated"
    endpoint_id: int


MergeEvent = Union[EndpointInserted, EndpointReplaced, TestRelinked, EndpointDeprecated]
Subscriber = Callable[[MergeEvent], None]


class EventBus:
    """Synchronous fan-out of merge events to subscribers."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def publish(self, event: MergeEvent) -> None:
        logger.debug("Publishing %s", event.kind)
        for callback in list(self._subscribers):
            callback(event)
