"""Daily change normalizer — flattens snapshots into one row per day.

Reads the pre-computed adjusted/raw daily changes for a single currency and,
optionally, a single position. Nothing is recomputed here: the adjusted
change written by the daily-close job is passed through as-is.
"""

from dataclasses import dataclass
from datetime import date

from integrations.snapshot_store_protocol import (
    CurrencySnapshot,
    DailySnapshot,
    PositionSnapshot,
)


@dataclass
class NormalizedDay:
    """One day of a scope (or position) in one currency."""

    snapshot_date: date
    adjusted_change_pct: float | None
    raw_change_pct: float | None
    total_value: float
    total_investment: float
    cash_flow: float
    done_pnl: float
    unrealized_pnl: float
    has_data: bool  # contributes to compounding
    in_scope: bool  # currency present that day (non-position sufficiency counter)


def normalize_snapshots(
    snapshots: list[DailySnapshot],
    currency: str,
    position: str | None = None,
) -> list[NormalizedDay]:
    """Normalize snapshots into an ascending list of NormalizedDay rows.

    Args:
        snapshots: Daily snapshots in any order.
        currency: Currency code to read.
        position: Optional position key (``ticker_assetClass``). When given,
            figures come from that position and days where it is not held
            have ``has_data=False``.

    Returns:
        One row per snapshot, sorted by date.
    """
    ordered = sorted(snapshots, key=lambda s: s.snapshot_date)
    return [_normalize_day(s, currency, position) for s in ordered]


def _normalize_day(
    snapshot: DailySnapshot, currency: str, position: str | None,
) -> NormalizedDay:
    currency_data = snapshot.by_currency.get(currency)
    if currency_data is None:
        return _empty_day(snapshot.snapshot_date, in_scope=False)

    source: CurrencySnapshot | PositionSnapshot | None = currency_data
    if position is not None:
        source = currency_data.positions.get(position)
        if source is None:
            return _empty_day(snapshot.snapshot_date, in_scope=True)

    adjusted = source.adjusted_daily_change_pct
    return NormalizedDay(
        snapshot_date=snapshot.snapshot_date,
        adjusted_change_pct=adjusted,
        raw_change_pct=source.raw_daily_change_pct,
        total_value=source.total_value or 0.0,
        total_investment=source.total_investment or 0.0,
        cash_flow=source.total_cash_flow or 0.0,
        done_pnl=source.done_pnl or 0.0,
        unrealized_pnl=source.unrealized_pnl or 0.0,
        has_data=adjusted is not None,
        in_scope=True,
    )


def _empty_day(snapshot_date: date, in_scope: bool) -> NormalizedDay:
    return NormalizedDay(
        snapshot_date=snapshot_date,
        adjusted_change_pct=None,
        raw_change_pct=None,
        total_value=0.0,
        total_investment=0.0,
        cash_flow=0.0,
        done_pnl=0.0,
        unrealized_pnl=0.0,
        has_data=False,
        in_scope=in_scope,
    )
