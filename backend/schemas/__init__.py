"""Pydantic request/response schemas."""

from .portfolio_returns import (
    CacheInvalidationResponse,
    MonthlyPerformanceResponse,
    PeriodReturn,
    PeriodReturnsResponse,
    ValueSeriesResponse,
    YearPerformanceResponse,
)
from .snapshot import (
    CurrencySnapshotIn,
    PositionSnapshotIn,
    SnapshotIngest,
    SnapshotIngestResponse,
)

__all__ = [
    "CacheInvalidationResponse",
    "CurrencySnapshotIn",
    "MonthlyPerformanceResponse",
    "PeriodReturn",
    "PeriodReturnsResponse",
    "PositionSnapshotIn",
    "SnapshotIngest",
    "SnapshotIngestResponse",
    "ValueSeriesResponse",
    "YearPerformanceResponse",
]
