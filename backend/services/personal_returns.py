"""Personal (money-weighted) returns.

Answers "how much did *my money* earn": unlike the time-weighted figure, the
result depends on when deposits and withdrawals happened. Two estimators:

- a simple formula for a single aggregate cash flow, assuming flows arrived
  mid-period,
- the Modified Dietz formula when dated flows are available, weighting each
  flow by the fraction of the period it remained invested.

Cash flows use the snapshot convention throughout: negative = deposit into
the portfolio, positive = withdrawal.
"""

import logging
from dataclasses import dataclass
from datetime import date

import numpy as np

from services.daily_change_normalizer import NormalizedDay
from services.multi_account_aggregator import pre_change_value
from services.period_boundaries import days_between

logger = logging.getLogger(__name__)

# Beyond this magnitude an MWR figure is treated as unreliable
EXTREME_RETURN_PCT = 100.0


@dataclass
class CashFlowEvent:
    """A dated cash flow (negative = deposit, positive = withdrawal)."""

    flow_date: date
    amount: float


def simple_personal_return(start_value: float, end_value: float, net_cash_flow: float) -> float:
    """Personal return from start/end values and one aggregate cash flow.

    Deposits are assumed to have been invested for half the period.
    """
    net_deposits = -net_cash_flow

    if start_value == 0:
        if net_deposits <= 0:
            return 0.0
        return (end_value - net_deposits) / net_deposits * 100

    if start_value > 0:
        investment_base = start_value + net_deposits / 2
        if investment_base > 0:
            return (end_value - start_value - net_deposits) / investment_base * 100

    return 0.0


def modified_dietz_return(
    start_value: float,
    end_value: float,
    cash_flows: list[CashFlowEvent],
    start_date: date,
    end_date: date,
) -> float:
    """Modified Dietz return over [start_date, end_date].

    R = (V_end - V_start - ΣD) / (V_start + Σ(D_i * W_i)), where D_i are net
    deposits and W_i = days from the flow to the period end / period days.
    """
    total_days = days_between(start_date, end_date)
    amounts = np.array([cf.amount for cf in cash_flows], dtype=float)
    total_cash_flow = float(amounts.sum()) if amounts.size else 0.0

    if total_days == 0:
        return simple_personal_return(start_value, end_value, total_cash_flow)

    weights = np.array(
        [days_between(cf.flow_date, end_date) / total_days for cf in cash_flows],
        dtype=float,
    )
    weighted_cash_flow = float(np.dot(amounts, weights)) if amounts.size else 0.0

    net_deposits = -total_cash_flow
    weighted_net_deposits = -weighted_cash_flow

    if start_value == 0:
        if net_deposits <= 0:
            return 0.0
        base = weighted_net_deposits if weighted_net_deposits > 0 else net_deposits
        result = (end_value - net_deposits) / base * 100
        if abs(result) > EXTREME_RETURN_PCT:
            return (end_value - net_deposits) / net_deposits * 100
        return result

    denominator = start_value + weighted_net_deposits
    if denominator <= 0:
        return simple_personal_return(start_value, end_value, total_cash_flow)

    result = (end_value - start_value - net_deposits) / denominator * 100

    # A tiny denominator relative to the flows produces extreme figures
    if abs(result) > EXTREME_RETURN_PCT:
        simple_result = simple_personal_return(start_value, end_value, total_cash_flow)
        if abs(simple_result) < abs(result):
            return simple_result

    return result


def apply_personal_return_guard(mwr_pct: float | None, twr_pct: float | None) -> float | None:
    """Prefer the TWR figure when the MWR is extreme and the TWR is smaller.

    Extreme MWR values usually come from small investment bases rather than
    real performance. This is a heuristic, not a correction.
    """
    if mwr_pct is None or twr_pct is None:
        return mwr_pct
    if abs(mwr_pct) > EXTREME_RETURN_PCT and abs(twr_pct) < abs(mwr_pct):
        logger.debug("Extreme personal return %.2f%% replaced by TWR %.2f%%", mwr_pct, twr_pct)
        return twr_pct
    return mwr_pct


def _opening_days(in_scope: list[NormalizedDay]) -> set[date]:
    """Dates with no previous close: the first day, or a day after a zero value."""
    opening = set()
    previous_value = 0.0
    for day in in_scope:
        if previous_value <= 0:
            opening.add(day.snapshot_date)
        previous_value = day.total_value
    return opening


def _window_anchor(window: list[NormalizedDay], opening: set[date]) -> NormalizedDay | None:
    """First contributing day of a window that had a previous close.

    A change on an opening day is synthetic (an aggregate writes 0% there
    while a stored scope leaves it undefined), so it never anchors a window.
    """
    return next(
        (d for d in window if d.has_data and d.snapshot_date not in opening),
        None,
    )


def calculate_period_personal_returns(
    days: list[NormalizedDay],
    cutoffs: dict[str, date],
    today: date,
) -> dict[str, float | None]:
    """Personal return for every period.

    The window of a period is its in-scope days from the anchor day on (see
    ``_window_anchor``); the Modified Dietz period runs from the anchor to
    ``today``. The start value is the anchor's pre-change value and the end
    value is the last in-scope value. An overall scope and the aggregate of
    the same accounts share their anchor, so both give the same figure.

    Returns:
        Period code -> MWR percentage, or None when the window has no
        contributing day.
    """
    in_scope = [d for d in days if d.in_scope]
    opening = _opening_days(in_scope)

    results: dict[str, float | None] = {}
    for period, cutoff in cutoffs.items():
        window = [d for d in in_scope if d.snapshot_date >= cutoff]
        first = _window_anchor(window, opening)
        if first is None:
            results[period] = None
            continue

        window = [d for d in window if d.snapshot_date >= first.snapshot_date]
        start_value = pre_change_value(
            first.total_value, first.adjusted_change_pct, first.cash_flow,
        )
        end_value = window[-1].total_value
        flows = [
            CashFlowEvent(flow_date=d.snapshot_date, amount=d.cash_flow)
            for d in window
            if d.cash_flow != 0
        ]

        if flows:
            results[period] = modified_dietz_return(
                start_value, end_value, flows, first.snapshot_date, today,
            )
        else:
            results[period] = simple_personal_return(start_value, end_value, 0.0)
    return results
