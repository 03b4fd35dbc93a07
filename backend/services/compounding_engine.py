"""Compounding engine — time-weighted returns from daily adjusted changes.

Walks an ascending sequence of normalized days, keeps a running compounding
factor (product of ``1 + adjusted/100``) and derives:

- trailing period returns (1M/3M/6M/YTD/1Y/2Y/5Y) from the factor captured
  on the first contributing day on/after each cutoff,
- a month-by-month / year-by-year return table,
- the raw value series used for charting.

All figures are percentages. Returns are always compounded from factors,
never summed.
"""

from dataclasses import dataclass, field
from datetime import date

from services.daily_change_normalizer import NormalizedDay


@dataclass
class MonthlyPerformance:
    """Compounded return and running totals for one calendar month."""

    year: int
    month: int  # 1-12
    start_factor: float  # factor before the month's first contributing day
    end_factor: float  # factor after the month's last contributing day
    return_pct: float = 0.0
    start_total_value: float = 0.0
    end_total_value: float = 0.0
    start_total_investment: float = 0.0
    end_total_investment: float = 0.0
    total_cash_flow: float = 0.0
    done_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    profit: float = 0.0
    last_day_of_month: bool = False


@dataclass
class YearPerformance:
    """Monthly returns of one year and their compounded total."""

    year: int
    months: dict[int, float] = field(default_factory=dict)  # 1-12 -> return %
    total_pct: float = 0.0


@dataclass
class ValueSeries:
    """Daily values and raw changes for charting."""

    dates: list[date] = field(default_factory=list)
    values: list[float] = field(default_factory=list)
    percent_changes: list[float] = field(default_factory=list)
    overall_percent_change: float = 0.0


@dataclass
class CompoundingResult:
    """Outcome of one pass of the compounding engine."""

    final_factor: float
    start_factors: dict[str, float]
    found_start: dict[str, bool]
    monthly: list[MonthlyPerformance]

    def period_return(self, period: str) -> float | None:
        """Compounded return since the period's cutoff, or None if never reached."""
        if not self.found_start.get(period):
            return None
        start = self.start_factors[period]
        if start <= 0:
            return None
        return (self.final_factor / start - 1) * 100


def compound_daily_changes(
    days: list[NormalizedDay],
    cutoffs: dict[str, date],
) -> CompoundingResult:
    """Compound daily adjusted changes and capture period/month boundaries.

    Args:
        days: Normalized days in ascending date order. Days without data are
            skipped.
        cutoffs: Period code -> first date of the period.

    Returns:
        The final factor, per-period start factors and the monthly table.
    """
    factor = 1.0
    start_factors = {period: 1.0 for period in cutoffs}
    found_start = {period: False for period in cutoffs}
    months: dict[tuple[int, int], MonthlyPerformance] = {}
    last_date_by_month = _last_snapshot_date_by_month(days)

    for day in days:
        if not day.has_data:
            continue

        # Boundary factor is taken before the day's own change is applied
        for period, cutoff in cutoffs.items():
            if not found_start[period] and day.snapshot_date >= cutoff:
                start_factors[period] = factor
                found_start[period] = True

        month_key = (day.snapshot_date.year, day.snapshot_date.month)
        entry = months.get(month_key)
        if entry is None:
            entry = MonthlyPerformance(
                year=month_key[0],
                month=month_key[1],
                start_factor=factor,
                end_factor=factor,
                start_total_value=day.total_value,
                start_total_investment=day.total_investment,
            )
            months[month_key] = entry

        factor *= 1 + day.adjusted_change_pct / 100

        entry.end_factor = factor
        entry.end_total_value = day.total_value
        entry.end_total_investment = day.total_investment
        entry.total_cash_flow += day.cash_flow
        entry.done_pnl += day.done_pnl
        entry.unrealized_pnl = day.unrealized_pnl
        entry.last_day_of_month = last_date_by_month[month_key] == day.snapshot_date

    monthly = [months[key] for key in sorted(months)]
    for entry in monthly:
        if entry.start_factor > 0:
            entry.return_pct = (entry.end_factor / entry.start_factor - 1) * 100
        if entry.last_day_of_month:
            entry.profit = entry.done_pnl + entry.unrealized_pnl
        else:
            entry.profit = entry.done_pnl

    return CompoundingResult(
        final_factor=factor,
        start_factors=start_factors,
        found_start=found_start,
        monthly=monthly,
    )


def _last_snapshot_date_by_month(days: list[NormalizedDay]) -> dict[tuple[int, int], date]:
    """Latest snapshot date seen in each (year, month), with or without data."""
    last: dict[tuple[int, int], date] = {}
    for day in days:
        key = (day.snapshot_date.year, day.snapshot_date.month)
        if key not in last or day.snapshot_date > last[key]:
            last[key] = day.snapshot_date
    return last


def build_performance_table(
    monthly: list[MonthlyPerformance],
) -> tuple[dict[int, YearPerformance], list[int], date | None]:
    """Group monthly returns into years.

    Returns:
        (performance_by_year, available_years, start_date) where
        available_years lists years with at least one non-zero month (newest
        first) and start_date is the first day of the earliest non-zero month.
    """
    by_year: dict[int, YearPerformance] = {}
    for entry in monthly:
        year = by_year.get(entry.year)
        if year is None:
            year = YearPerformance(year=entry.year, months={m: 0.0 for m in range(1, 13)})
            by_year[entry.year] = year
        year.months[entry.month] = entry.return_pct

    for year in by_year.values():
        compound_total = 1.0
        for month in range(1, 13):
            compound_total *= 1 + year.months[month] / 100
        year.total_pct = (compound_total - 1) * 100

    years_with_data = sorted(
        (y for y, perf in by_year.items() if any(r != 0 for r in perf.months.values())),
        reverse=True,
    )

    start_date = None
    if years_with_data:
        first_year = years_with_data[-1]
        first_month = next(
            m for m in range(1, 13) if by_year[first_year].months[m] != 0
        )
        start_date = date(first_year, first_month, 1)

    return by_year, years_with_data, start_date


def build_value_series(days: list[NormalizedDay]) -> ValueSeries:
    """Collect the value/raw-change series of every contributing day."""
    series = ValueSeries()
    for day in days:
        if not day.has_data:
            continue
        series.dates.append(day.snapshot_date)
        series.values.append(day.total_value)
        series.percent_changes.append(day.raw_change_pct or 0.0)

    if len(series.values) >= 2 and series.values[0] > 0:
        initial, final = series.values[0], series.values[-1]
        series.overall_percent_change = (final - initial) / initial * 100
    return series
