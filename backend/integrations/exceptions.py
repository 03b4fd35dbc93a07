"""Typed exception hierarchy for the returns engine and its snapshot store.

Separates caller mistakes (a selector that can never be satisfied) from
upstream failures (the snapshot store could not be read), so the API layer
can answer 400 for the first and a retryable 503 for the second.
"""


class InvalidSelectorError(ValueError):
    """The scope, currency or position selector is malformed or unknown."""

    pass


class SnapshotStoreError(Exception):
    """Base exception for snapshot store failures.

    Carries the scope that failed so callers can identify which fetch broke
    an aggregate.
    """

    def __init__(self, message: str, scope_id: str = "", retriable: bool = True):
        self.scope_id = scope_id
        self.retriable = retriable
        super().__init__(message)


class SnapshotStoreConnectionError(SnapshotStoreError):
    """Timeouts, dropped connections, locked databases.

    Retriable by default.
    """

    pass


class SnapshotStoreDataError(SnapshotStoreError):
    """Stored data could not be turned into snapshots."""

    def __init__(self, message: str, scope_id: str = ""):
        super().__init__(message, scope_id=scope_id, retriable=False)
