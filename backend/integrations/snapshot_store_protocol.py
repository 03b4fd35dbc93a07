"""Snapshot store protocol definitions.

Defines the daily snapshot value types the returns engine consumes and the
interface of the store that produces them. The engine only reads snapshots;
how they are produced (the daily-close job) and stored is not its concern.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Protocol


def position_key(ticker: str, asset_class: str) -> str:
    """Build the key a position is stored under (e.g. ``"AAPL_stock"``)."""
    return f"{ticker}_{asset_class}"


@dataclass
class PositionSnapshot:
    """A single holding's daily figures within one currency."""

    ticker: str
    asset_class: str
    total_value: float = 0.0
    total_investment: float = 0.0
    total_cash_flow: float = 0.0
    unrealized_pnl: float = 0.0
    done_pnl: float = 0.0
    raw_daily_change_pct: float | None = None
    adjusted_daily_change_pct: float | None = None


@dataclass
class CurrencySnapshot:
    """A scope's daily totals expressed in one currency.

    Sign convention: ``total_cash_flow`` < 0 is a net deposit into the scope,
    > 0 a net withdrawal. ``adjusted_daily_change_pct`` is None when the
    scope had no valid previous-day value.
    """

    total_value: float = 0.0
    total_investment: float = 0.0
    total_cash_flow: float = 0.0
    unrealized_pnl: float = 0.0
    done_pnl: float = 0.0
    raw_daily_change_pct: float | None = None
    adjusted_daily_change_pct: float | None = None
    positions: dict[str, PositionSnapshot] = field(default_factory=dict)


@dataclass
class DailySnapshot:
    """One scope's close for one calendar day, keyed by currency code."""

    snapshot_date: date
    by_currency: dict[str, CurrencySnapshot] = field(default_factory=dict)


class SnapshotStore(Protocol):
    """Protocol for daily snapshot stores.

    Implementations raise ``SnapshotStoreError`` (or a subclass) when the
    underlying storage cannot be read; they never return a partial range.
    """

    def list_snapshots(
        self,
        owner_id: str,
        scope_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DailySnapshot]:
        """Fetch a scope's snapshots within an optional inclusive date range.

        Args:
            owner_id: Owner of the scope.
            scope_id: Account id, or ``"overall"`` for the combined scope.
            date_from: First date to include, or None for no lower bound.
            date_to: Last date to include, or None for no upper bound.

        Returns:
            Snapshots orderable by ``snapshot_date``. An unknown scope or an
            empty range returns an empty list.
        """
        ...

    def list_account_ids(self, owner_id: str, active_only: bool = False) -> list[str]:
        """Return the ids of the owner's accounts.

        Args:
            owner_id: Owner of the accounts.
            active_only: Leave out accounts that are no longer active. Their
                history stays readable by id.
        """
        ...
