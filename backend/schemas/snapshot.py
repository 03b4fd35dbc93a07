"""Pydantic schemas for daily snapshot ingest."""

from datetime import date

from pydantic import BaseModel, Field, field_validator


class PositionSnapshotIn(BaseModel):
    """One holding's figures for the day."""

    ticker: str = Field(..., min_length=1)
    asset_class: str = Field(..., min_length=1)
    total_value: float = 0.0
    total_investment: float = 0.0
    total_cash_flow: float = 0.0
    unrealized_pnl: float = 0.0
    done_pnl: float = 0.0
    raw_daily_change_pct: float | None = None
    adjusted_daily_change_pct: float | None = None


class CurrencySnapshotIn(BaseModel):
    """A scope's figures for the day in one currency.

    ``total_cash_flow`` is negative for a net deposit and positive for a net
    withdrawal. ``adjusted_daily_change_pct`` stays null when there was no
    valid previous value.
    """

    total_value: float = 0.0
    total_investment: float = 0.0
    total_cash_flow: float = 0.0
    unrealized_pnl: float = 0.0
    done_pnl: float = 0.0
    raw_daily_change_pct: float | None = None
    adjusted_daily_change_pct: float | None = None
    positions: list[PositionSnapshotIn] = []


class SnapshotIngest(BaseModel):
    """Request body for writing one day of one scope."""

    owner_id: str = Field(..., min_length=1)
    scope_id: str = Field(..., min_length=1, description="'overall' or an account id")
    account_name: str | None = None
    snapshot_date: date
    by_currency: dict[str, CurrencySnapshotIn]

    @field_validator("by_currency")
    @classmethod
    def validate_currency_codes(cls, v: dict[str, CurrencySnapshotIn]) -> dict[str, CurrencySnapshotIn]:
        normalized = {}
        for code, data in v.items():
            if len(code) != 3 or not code.isalpha():
                raise ValueError(f"Invalid currency code: {code}")
            normalized[code.upper()] = data
        return normalized


class SnapshotIngestResponse(BaseModel):
    """Result of a snapshot write."""

    owner_id: str
    scope_id: str
    snapshot_date: date
    currencies_written: int
    cache_entries_invalidated: int
