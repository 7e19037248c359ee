"""Exception hierarchy for the reconciliation engine."""


class ReconcilerError(Exception):
    """Base class for every error raised by spec_reconciler."""


class MalformedEndpoint(ReconcilerError):
    """An incoming endpoint lacks the shape needed to identify it."""


class UnsupportedFormat(ReconcilerError):
    """A raw document could not be recognised as any supported import format."""


class SpecNotFound(ReconcilerError):
    def __init__(self, spec_id: int):
        super().__init__(f"Spec with ID {spec_id} not found")
        self.spec_id = spec_id


class StorageUnavailable(ReconcilerError):
    """A storage collaborator call failed."""


class EndpointMergeError(ReconcilerError):
    """Merging one endpoint of an import batch failed.

    ``inserted_id`` is set when the replacement row was already written
    before the failure, so the caller can still find it.
    """

    def __init__(self, method: str, path: str, reason: str, inserted_id: int | None = None):
        message = f"{method} {path}: {reason}"
        if inserted_id is not None:
            message += f" (inserted as endpoint {inserted_id})"
        super().__init__(message)
        self.method = method
        self.path = path
        self.reason = reason
        self.inserted_id = inserted_id
