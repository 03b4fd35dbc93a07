"""Snapshot store service — SQLAlchemy implementation of the SnapshotStore protocol."""

import logging
from datetime import date
from typing import Callable

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from integrations.exceptions import (
    SnapshotStoreConnectionError,
    SnapshotStoreDataError,
    SnapshotStoreError,
)
from integrations.snapshot_store_protocol import (
    CurrencySnapshot,
    DailySnapshot,
    PositionSnapshot,
    position_key,
)
from models import Account, PerformanceSnapshot, PositionPerformance

logger = logging.getLogger(__name__)

# Called with the owner id after that owner's snapshots were written
WriteListener = Callable[[str], object]


class SnapshotStoreService:
    """Reads and writes daily snapshots stored in ``performance_snapshots``.

    Write listeners run inside the same session before the caller commits,
    which is how the returns cache is invalidated atomically with a write.
    """

    def __init__(self, db: Session, write_listeners: list[WriteListener] | None = None):
        self.db = db
        self._write_listeners = list(write_listeners or [])

    def add_write_listener(self, listener: WriteListener) -> None:
        self._write_listeners.append(listener)

    # ------------------------------------------------------------------
    # Reads (SnapshotStore protocol)
    # ------------------------------------------------------------------

    def list_snapshots(
        self,
        owner_id: str,
        scope_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DailySnapshot]:
        """Fetch a scope's snapshots, grouped by day, ascending."""
        try:
            query = (
                self.db.query(PerformanceSnapshot)
                .options(selectinload(PerformanceSnapshot.positions))
                .filter(
                    PerformanceSnapshot.owner_id == owner_id,
                    PerformanceSnapshot.scope_id == scope_id,
                )
            )
            if date_from is not None:
                query = query.filter(PerformanceSnapshot.snapshot_date >= date_from)
            if date_to is not None:
                query = query.filter(PerformanceSnapshot.snapshot_date <= date_to)
            rows = query.order_by(PerformanceSnapshot.snapshot_date).all()
        except OperationalError as e:
            logger.warning("Snapshot fetch failed for %s/%s: %s", owner_id, scope_id, e)
            raise SnapshotStoreConnectionError(
                f"Could not read snapshots for scope {scope_id}", scope_id=scope_id,
            ) from e
        except SQLAlchemyError as e:
            logger.error("Snapshot query error for %s/%s: %s", owner_id, scope_id, e)
            raise SnapshotStoreError(
                f"Snapshot store error for scope {scope_id}", scope_id=scope_id,
            ) from e

        by_date: dict[date, DailySnapshot] = {}
        for row in rows:
            daily = by_date.setdefault(
                row.snapshot_date, DailySnapshot(snapshot_date=row.snapshot_date),
            )
            if row.currency in daily.by_currency:
                raise SnapshotStoreDataError(
                    f"Duplicate {row.currency} snapshot on {row.snapshot_date}",
                    scope_id=scope_id,
                )
            daily.by_currency[row.currency] = _to_currency_snapshot(row)

        logger.debug(
            "Loaded %d snapshot days for %s/%s", len(by_date), owner_id, scope_id,
        )
        return [by_date[d] for d in sorted(by_date)]

    def list_account_ids(self, owner_id: str, active_only: bool = False) -> list[str]:
        """Return the owner's account ids, oldest first."""
        try:
            query = self.db.query(Account.id).filter(Account.owner_id == owner_id)
            if active_only:
                query = query.filter(Account.is_active.is_(True))
            rows = query.order_by(Account.created_at, Account.id).all()
        except SQLAlchemyError as e:
            logger.warning("Account listing failed for %s: %s", owner_id, e)
            raise SnapshotStoreConnectionError(
                f"Could not list accounts for owner {owner_id}",
            ) from e
        return [row.id for row in rows]

    # ------------------------------------------------------------------
    # Writes (daily-close ingest / repair path)
    # ------------------------------------------------------------------

    def ensure_account(self, owner_id: str, account_id: str, name: str | None = None) -> Account:
        """Get or create the account a snapshot scope refers to."""
        account = self.db.query(Account).filter(Account.id == account_id).first()
        if account is None:
            account = Account(id=account_id, owner_id=owner_id, name=name or account_id)
            self.db.add(account)
            self.db.flush()
            logger.info("Created account %s for owner %s", account_id, owner_id)
        elif account.owner_id != owner_id:
            raise ValueError(f"Account {account_id} belongs to a different owner")
        elif name and account.name != name:
            account.name = name
        return account

    def save_snapshot(self, owner_id: str, scope_id: str, snapshot: DailySnapshot) -> int:
        """Replace one scope's day with ``snapshot`` and notify listeners.

        Returns:
            Number of currency rows written.
        """
        existing = (
            self.db.query(PerformanceSnapshot)
            .filter(
                PerformanceSnapshot.owner_id == owner_id,
                PerformanceSnapshot.scope_id == scope_id,
                PerformanceSnapshot.snapshot_date == snapshot.snapshot_date,
            )
            .all()
        )
        for row in existing:
            self.db.delete(row)
        self.db.flush()

        for currency, data in snapshot.by_currency.items():
            row = _to_row(owner_id, scope_id, snapshot.snapshot_date, currency, data)
            self.db.add(row)
        self.db.flush()

        logger.info(
            "Saved %s snapshot for %s/%s (%d currencies, replaced %d rows)",
            snapshot.snapshot_date, owner_id, scope_id,
            len(snapshot.by_currency), len(existing),
        )
        self._notify(owner_id)
        return len(snapshot.by_currency)

    def _notify(self, owner_id: str) -> None:
        for listener in self._write_listeners:
            listener(owner_id)


def _to_currency_snapshot(row: PerformanceSnapshot) -> CurrencySnapshot:
    positions: dict[str, PositionSnapshot] = {}
    for pos in row.positions:
        positions[position_key(pos.ticker, pos.asset_class)] = PositionSnapshot(
            ticker=pos.ticker,
            asset_class=pos.asset_class,
            total_value=pos.total_value,
            total_investment=pos.total_investment,
            total_cash_flow=pos.total_cash_flow,
            unrealized_pnl=pos.unrealized_pnl,
            done_pnl=pos.done_pnl,
            raw_daily_change_pct=pos.raw_daily_change_pct,
            adjusted_daily_change_pct=pos.adjusted_daily_change_pct,
        )
    return CurrencySnapshot(
        total_value=row.total_value,
        total_investment=row.total_investment,
        total_cash_flow=row.total_cash_flow,
        unrealized_pnl=row.unrealized_pnl,
        done_pnl=row.done_pnl,
        raw_daily_change_pct=row.raw_daily_change_pct,
        adjusted_daily_change_pct=row.adjusted_daily_change_pct,
        positions=positions,
    )


def _to_row(
    owner_id: str,
    scope_id: str,
    snapshot_date: date,
    currency: str,
    data: CurrencySnapshot,
) -> PerformanceSnapshot:
    row = PerformanceSnapshot(
        owner_id=owner_id,
        scope_id=scope_id,
        snapshot_date=snapshot_date,
        currency=currency,
        total_value=data.total_value,
        total_investment=data.total_investment,
        total_cash_flow=data.total_cash_flow,
        unrealized_pnl=data.unrealized_pnl,
        done_pnl=data.done_pnl,
        raw_daily_change_pct=data.raw_daily_change_pct,
        adjusted_daily_change_pct=data.adjusted_daily_change_pct,
    )
    for pos in data.positions.values():
        row.positions.append(PositionPerformance(
            ticker=pos.ticker,
            asset_class=pos.asset_class,
            total_value=pos.total_value,
            total_investment=pos.total_investment,
            total_cash_flow=pos.total_cash_flow,
            unrealized_pnl=pos.unrealized_pnl,
            done_pnl=pos.done_pnl,
            raw_daily_change_pct=pos.raw_daily_change_pct,
            adjusted_daily_change_pct=pos.adjusted_daily_change_pct,
        ))
    return row
