"""Collaborator interfaces for the returns engine."""

from .exceptions import (
    InvalidSelectorError,
    SnapshotStoreConnectionError,
    SnapshotStoreDataError,
    SnapshotStoreError,
)
from .snapshot_store_protocol import (
    CurrencySnapshot,
    DailySnapshot,
    PositionSnapshot,
    SnapshotStore,
    position_key,
)

__all__ = [
    "CurrencySnapshot",
    "DailySnapshot",
    "InvalidSelectorError",
    "PositionSnapshot",
    "SnapshotStore",
    "SnapshotStoreConnectionError",
    "SnapshotStoreDataError",
    "SnapshotStoreError",
    "position_key",
]
