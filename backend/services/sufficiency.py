"""Sufficiency gate — decides whether a period has enough snapshots to trust."""

import math
from datetime import date

from services.daily_change_normalizer import NormalizedDay

# Minimum snapshots (≈ trading days) required before a period return is shown
MIN_SNAPSHOTS = {
    "1M": 21,
    "3M": 63,
    "6M": 126,
    "YTD": 1,
    "1Y": 252,
    "2Y": 504,
    "5Y": 1260,
}


def minimum_snapshots(period: str, today: date) -> int:
    """Minimum snapshot count for a period.

    YTD grows with the elapsed months of the year so that a YTD figure in
    December needs more history than one in January.
    """
    if period == "YTD":
        return max(math.ceil(today.month * 4 / 12), MIN_SNAPSHOTS["YTD"])
    return MIN_SNAPSHOTS.get(period, 1)


def count_snapshots(
    days: list[NormalizedDay],
    cutoffs: dict[str, date],
    position_scoped: bool = False,
) -> dict[str, int]:
    """Count the snapshots observed on/after each period's cutoff.

    Scope-level requests count every day the currency was present, even when
    its adjusted change was undefined. Position-level requests only count
    days the position actually contributed.
    """
    counts = {period: 0 for period in cutoffs}
    for day in days:
        counted = day.has_data if position_scoped else day.in_scope
        if not counted:
            continue
        for period, cutoff in cutoffs.items():
            if day.snapshot_date >= cutoff:
                counts[period] += 1
    return counts


def has_sufficient_data(period: str, found_start: bool, count: int, today: date) -> bool:
    """A period has data only if its cutoff was crossed and the count is met."""
    return found_start and count >= minimum_snapshots(period, today)
