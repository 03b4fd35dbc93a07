"""Test doubles for the snapshot store and the clock."""

from datetime import date, datetime, timedelta

from integrations.exceptions import SnapshotStoreConnectionError
from integrations.snapshot_store_protocol import DailySnapshot


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class InMemorySnapshotStore:
    """SnapshotStore over a dict of scope id -> snapshots.

    Records every call in ``calls`` so tests can assert on store access.
    """

    def __init__(
        self,
        scopes: dict[str, list[DailySnapshot]] | None = None,
        account_ids: list[str] | None = None,
        inactive: set[str] | None = None,
    ):
        self.scopes = scopes or {}
        self._account_ids = account_ids
        self.inactive = inactive or set()
        self.calls: list[tuple] = []

    def list_snapshots(
        self,
        owner_id: str,
        scope_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DailySnapshot]:
        self.calls.append(("list_snapshots", owner_id, scope_id))
        return [
            s for s in self.scopes.get(scope_id, [])
            if (date_from is None or s.snapshot_date >= date_from)
            and (date_to is None or s.snapshot_date <= date_to)
        ]

    def list_account_ids(self, owner_id: str, active_only: bool = False) -> list[str]:
        self.calls.append(("list_account_ids", owner_id))
        if self._account_ids is not None:
            ids = list(self._account_ids)
        else:
            ids = [scope_id for scope_id in self.scopes if scope_id != "overall"]
        if active_only:
            ids = [i for i in ids if i not in self.inactive]
        return ids


class FailingSnapshotStore(InMemorySnapshotStore):
    """Store whose fetch of one scope always fails."""

    def __init__(self, failing_scope: str, **kwargs):
        super().__init__(**kwargs)
        self.failing_scope = failing_scope

    def list_snapshots(self, owner_id, scope_id, date_from=None, date_to=None):
        if scope_id == self.failing_scope:
            self.calls.append(("list_snapshots", owner_id, scope_id))
            raise SnapshotStoreConnectionError(
                f"Timed out reading {scope_id}", scope_id=scope_id,
            )
        return super().list_snapshots(owner_id, scope_id, date_from, date_to)
