"""Multi-account aggregator — synthesizes an overall scope for any account subset.

For every date and currency, recovers each account's value *before* the
day's change from its stored figures, sums those into yesterday's combined
value and derives the combined adjusted change from it. The result is the
same daily snapshot the daily-close job would have written for a scope made
of exactly these accounts, so it feeds the compounding and personal-return
engines unmodified.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from integrations.snapshot_store_protocol import (
    CurrencySnapshot,
    DailySnapshot,
    PositionSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class _Totals:
    """Running sums for one (date, currency[, position]) bucket."""

    current_value: float = 0.0
    weight: float = 0.0
    cash_flow: float = 0.0
    investment: float = 0.0
    done_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    new_scopes: int = 0


def is_new_scope(adjusted_change_pct: float | None, cash_flow: float, total_value: float) -> bool:
    """True on a scope's first funding day.

    Pattern match ``change == 0 and cash_flow < 0 and value > 0``. Known
    approximation: a funded scope that genuinely moved 0% on a deposit day
    is classified as new too. Downstream reconciliation relies on exactly
    this predicate, so it must not be refined here.
    """
    return (adjusted_change_pct or 0.0) == 0 and cash_flow < 0 and total_value > 0


def pre_change_value(total_value: float, adjusted_change_pct: float | None, cash_flow: float) -> float:
    """Recover a scope's value before the day's change was applied.

    Inverts adjusted = (curr - prev + cf) / prev * 100. An undefined change
    counts as 0. Degenerate results (a change of -100% or worse, negative
    values) are floored at 0.
    """
    change = adjusted_change_pct or 0.0
    if change == 0:
        return total_value + cash_flow
    growth = 1 + change / 100
    if growth <= 0:
        return 0.0
    return max(0.0, (total_value + cash_flow) / growth)


def combined_changes(current_value: float, weight: float, cash_flow: float) -> tuple[float, float]:
    """(adjusted, raw) combined change; both 0 when there is no weight yet."""
    if weight <= 0:
        return 0.0, 0.0
    adjusted = (current_value - weight + cash_flow) / weight * 100
    raw = (current_value - weight) / weight * 100
    return adjusted, raw


def aggregate_snapshots(snapshots_by_account: dict[str, list[DailySnapshot]]) -> list[DailySnapshot]:
    """Blend several accounts' daily snapshots into one virtual overall scope.

    Args:
        snapshots_by_account: Account id -> that account's snapshots. Every
            selected account must be present; a missing fetch must fail the
            caller before this point, never be silently dropped.

    Returns:
        One synthetic DailySnapshot per date seen in any account, ascending.
        The first date has no previous close; it gets a 0% change where a
        stored scope leaves it undefined, so it adds one point to the value
        series. Personal returns never anchor on it.
    """
    scope_totals: dict[tuple[date, str], _Totals] = defaultdict(_Totals)
    position_totals: dict[tuple[date, str, str], _Totals] = defaultdict(_Totals)
    position_labels: dict[str, tuple[str, str]] = {}

    for snapshots in snapshots_by_account.values():
        for snapshot in snapshots:
            for currency, data in snapshot.by_currency.items():
                _accumulate(scope_totals[(snapshot.snapshot_date, currency)], data)
                for key, pos in data.positions.items():
                    position_labels[key] = (pos.ticker, pos.asset_class)
                    _accumulate(
                        position_totals[(snapshot.snapshot_date, currency, key)], pos,
                    )

    by_date: dict[date, DailySnapshot] = {}
    for (snapshot_date, currency), totals in scope_totals.items():
        adjusted, raw = combined_changes(totals.current_value, totals.weight, totals.cash_flow)
        daily = by_date.setdefault(snapshot_date, DailySnapshot(snapshot_date=snapshot_date))
        daily.by_currency[currency] = CurrencySnapshot(
            total_value=totals.current_value,
            total_investment=totals.investment,
            total_cash_flow=totals.cash_flow,
            unrealized_pnl=totals.unrealized_pnl,
            done_pnl=totals.done_pnl,
            raw_daily_change_pct=raw,
            adjusted_daily_change_pct=adjusted,
        )
        if totals.new_scopes:
            logger.debug(
                "%s %s: %d newly funded account(s) excluded from weight",
                snapshot_date, currency, totals.new_scopes,
            )

    for (snapshot_date, currency, key), totals in position_totals.items():
        adjusted, raw = combined_changes(totals.current_value, totals.weight, totals.cash_flow)
        ticker, asset_class = position_labels[key]
        by_date[snapshot_date].by_currency[currency].positions[key] = PositionSnapshot(
            ticker=ticker,
            asset_class=asset_class,
            total_value=totals.current_value,
            total_investment=totals.investment,
            total_cash_flow=totals.cash_flow,
            unrealized_pnl=totals.unrealized_pnl,
            done_pnl=totals.done_pnl,
            raw_daily_change_pct=raw,
            adjusted_daily_change_pct=adjusted,
        )

    return [by_date[d] for d in sorted(by_date)]


def _accumulate(totals: _Totals, data: CurrencySnapshot | PositionSnapshot) -> None:
    value = data.total_value or 0.0
    cash_flow = data.total_cash_flow or 0.0
    adjusted = data.adjusted_daily_change_pct

    totals.current_value += value
    totals.cash_flow += cash_flow
    totals.investment += data.total_investment or 0.0
    totals.done_pnl += data.done_pnl or 0.0
    totals.unrealized_pnl += data.unrealized_pnl or 0.0

    if is_new_scope(adjusted, cash_flow, value):
        totals.new_scopes += 1
        return
    totals.weight += pre_change_value(value, adjusted, cash_flow)
