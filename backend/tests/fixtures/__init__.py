"""Test fixtures and sample data."""

from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from integrations.snapshot_store_protocol import (
    CurrencySnapshot,
    DailySnapshot,
    PositionSnapshot,
    position_key,
)
from models import OVERALL_SCOPE
from services.snapshot_store_service import SnapshotStoreService

# Wednesday 2025-06-18, 10:00 New York time (market open)
MARKET_OPEN_NOW = datetime(2025, 6, 18, 14, 0, tzinfo=timezone.utc)
TODAY = date(2025, 6, 18)


def make_position(
    ticker: str,
    asset_class: str = "stock",
    total_value: float = 0.0,
    adjusted: float | None = None,
    cash_flow: float = 0.0,
    raw: float | None = None,
) -> PositionSnapshot:
    return PositionSnapshot(
        ticker=ticker,
        asset_class=asset_class,
        total_value=total_value,
        total_investment=total_value,
        total_cash_flow=cash_flow,
        raw_daily_change_pct=raw,
        adjusted_daily_change_pct=adjusted,
    )


def make_snapshot(
    snapshot_date: date,
    total_value: float,
    adjusted: float | None,
    cash_flow: float = 0.0,
    currency: str = "USD",
    raw: float | None = None,
    positions: list[PositionSnapshot] | None = None,
    **kwargs,
) -> DailySnapshot:
    """Build a single-currency DailySnapshot."""
    currency_snapshot = CurrencySnapshot(
        total_value=total_value,
        total_investment=kwargs.get("total_investment", total_value),
        total_cash_flow=cash_flow,
        unrealized_pnl=kwargs.get("unrealized_pnl", 0.0),
        done_pnl=kwargs.get("done_pnl", 0.0),
        raw_daily_change_pct=raw,
        adjusted_daily_change_pct=adjusted,
        positions={position_key(p.ticker, p.asset_class): p for p in positions or []},
    )
    return DailySnapshot(snapshot_date=snapshot_date, by_currency={currency: currency_snapshot})


def series_from_values(
    start: date,
    values: list[float],
    cash_flows: dict[int, float] | None = None,
    currency: str = "USD",
) -> list[DailySnapshot]:
    """Daily snapshots with changes derived the way the daily-close job does.

    ``adjusted = (curr - prev + cf) / prev * 100`` and ``raw`` without the
    cash flow; the first day has no previous value so both are None.

    Args:
        start: Date of values[0]; one snapshot per calendar day.
        values: Closing value of each day.
        cash_flows: Day index -> cash flow (negative = deposit).
    """
    cash_flows = cash_flows or {}
    snapshots = []
    for i, value in enumerate(values):
        cf = cash_flows.get(i, 0.0)
        adjusted = raw = None
        if i > 0 and values[i - 1] > 0:
            prev = values[i - 1]
            adjusted = (value - prev + cf) / prev * 100
            raw = (value - prev) / prev * 100
        snapshots.append(make_snapshot(
            start + timedelta(days=i), value, adjusted,
            cash_flow=cf, currency=currency, raw=raw,
        ))
    return snapshots


def growth_values(days: int, start_value: float = 1000.0, daily_pct: float = 0.1) -> list[float]:
    """Values compounding at a constant daily rate."""
    values = [start_value]
    for _ in range(days - 1):
        values.append(values[-1] * (1 + daily_pct / 100))
    return values


def save_series(
    db: Session,
    owner_id: str,
    scope_id: str,
    snapshots: list[DailySnapshot],
) -> None:
    """Persist snapshots through the store (creates the account row)."""
    store = SnapshotStoreService(db)
    if scope_id != OVERALL_SCOPE:
        store.ensure_account(owner_id, scope_id)
    for snapshot in snapshots:
        store.save_snapshot(owner_id, scope_id, snapshot)
    db.commit()
