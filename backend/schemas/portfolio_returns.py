"""Pydantic schemas for period return API responses."""

from datetime import date, datetime

from pydantic import BaseModel


class PeriodReturn(BaseModel):
    """Return figures for a single period.

    ``twr_pct``/``mwr_pct`` are percentages (5.23 means 5.23%) and are null
    whenever the period lacks enough snapshots. Null means unknown, never 0.
    """

    period: str  # "1M", "3M", "6M", "YTD", "1Y", "2Y", "5Y"
    start_date: date
    twr_pct: float | None
    mwr_pct: float | None
    has_data: bool
    has_personal_data: bool
    valid_snapshot_count: int

    model_config = {"from_attributes": True}


class YearPerformanceResponse(BaseModel):
    """Monthly returns of one year and their compounded total."""

    year: int
    months: dict[int, float]
    total_pct: float

    model_config = {"from_attributes": True}


class MonthlyPerformanceResponse(BaseModel):
    """Compounded return and running totals for one calendar month."""

    year: int
    month: int
    return_pct: float
    start_total_value: float
    end_total_value: float
    start_total_investment: float
    end_total_investment: float
    total_cash_flow: float
    done_pnl: float
    unrealized_pnl: float
    profit: float
    last_day_of_month: bool

    model_config = {"from_attributes": True}


class ValueSeriesResponse(BaseModel):
    """Daily values and raw changes for charting."""

    dates: list[date]
    values: list[float]
    percent_changes: list[float]
    overall_percent_change: float

    model_config = {"from_attributes": True}


class PeriodReturnsResponse(BaseModel):
    """Period returns for one owner, currency and scope selection."""

    owner_id: str
    currency: str
    scope_key: str  # "overall", an account id, or "multi:<ids>"
    strategy: str
    position: str | None
    periods: list[PeriodReturn]
    performance_by_year: dict[int, YearPerformanceResponse]
    monthly: list[MonthlyPerformanceResponse]
    available_years: list[int]
    start_date: date | None
    value_series: ValueSeriesResponse
    cache_hit: bool
    computed_at: datetime | None
    valid_until: datetime | None

    model_config = {"from_attributes": True}


class CacheInvalidationResponse(BaseModel):
    """Result of an explicit cache invalidation."""

    owner_id: str
    entries_deleted: int
