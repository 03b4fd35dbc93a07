"""Period definitions and their start cutoffs."""

import calendar
from datetime import date

# Display order of the standard periods
PERIODS = ["1M", "3M", "6M", "YTD", "1Y", "2Y", "5Y"]

# Months to look back for each trailing period (YTD is anchored to Jan 1)
_TRAILING_MONTHS = {
    "1M": 1,
    "3M": 3,
    "6M": 6,
    "1Y": 12,
    "2Y": 24,
    "5Y": 60,
}


def get_period_cutoffs(today: date) -> dict[str, date]:
    """Map every period code to the first date that belongs to the period.

    Cutoffs are computed once per request from "today" in the market
    timezone, e.g. for 2025-06-15: 1M -> 2025-05-15, YTD -> 2025-01-01.
    """
    cutoffs = {}
    for period in PERIODS:
        if period == "YTD":
            cutoffs[period] = date(today.year, 1, 1)
        else:
            cutoffs[period] = subtract_months(today, _TRAILING_MONTHS[period])
    return cutoffs


def subtract_months(d: date, months: int) -> date:
    """Subtract months from a date, clamping to valid day."""
    year = d.year
    month = d.month - months
    while month <= 0:
        month += 12
        year -= 1
    # Clamp day to max days in target month
    max_day = calendar.monthrange(year, month)[1]
    day = min(d.day, max_day)
    return date(year, month, day)


def days_between(start: date, end: date) -> int:
    """Absolute number of calendar days between two dates."""
    return abs((end - start).days)
