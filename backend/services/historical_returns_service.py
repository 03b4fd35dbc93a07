"""Historical returns service — period TWR/MWR for any scope selection.

Resolves a scope selector into a fetch strategy, runs the snapshots through
normalizer → compounding/personal-return engines → sufficiency gate, and
caches the resulting report per (owner, currency, scope, position).
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from pydantic import TypeAdapter

from integrations.exceptions import InvalidSelectorError
from integrations.snapshot_store_protocol import DailySnapshot, SnapshotStore, position_key
from models.performance_snapshot import OVERALL_SCOPE
from models.utils import utc_now
from services.compounding_engine import (
    MonthlyPerformance,
    ValueSeries,
    YearPerformance,
    build_performance_table,
    build_value_series,
    compound_daily_changes,
)
from services.daily_change_normalizer import normalize_snapshots
from services.market_calendar import MarketCalendar
from services.multi_account_aggregator import aggregate_snapshots
from services.period_boundaries import PERIODS, get_period_cutoffs
from services.personal_returns import (
    apply_personal_return_guard,
    calculate_period_personal_returns,
)
from services.returns_cache_service import ReturnsCacheService, build_cache_key
from services.sufficiency import count_snapshots, has_sufficient_data

logger = logging.getLogger(__name__)

# Aggregation strategies
STRATEGY_OVERALL = "overall"
STRATEGY_SINGLE_ACCOUNT = "single_account"
STRATEGY_ALL_ACCOUNTS = "all_accounts"
STRATEGY_AGGREGATE = "aggregate"

_CURRENCY_RE = re.compile(r"[A-Za-z]{3}")

ScopeSelector = str | list[str]


@dataclass
class PeriodReturn:
    """Return figures for one standard period."""

    period: str
    start_date: date
    twr_pct: float | None = None
    mwr_pct: float | None = None
    has_data: bool = False
    has_personal_data: bool = False
    valid_snapshot_count: int = 0


@dataclass
class ReturnsCalculation:
    """Everything computed from one scope's snapshots in one currency."""

    periods: list[PeriodReturn]
    performance_by_year: dict[int, YearPerformance]
    monthly: list[MonthlyPerformance]
    available_years: list[int]
    start_date: date | None
    value_series: ValueSeries


@dataclass
class PeriodReturnReport:
    """Period returns for an (owner, currency, scope[, position]) request."""

    owner_id: str
    currency: str
    scope_key: str
    strategy: str
    position: str | None = None
    periods: list[PeriodReturn] = field(default_factory=list)
    performance_by_year: dict[int, YearPerformance] = field(default_factory=dict)
    monthly: list[MonthlyPerformance] = field(default_factory=list)
    available_years: list[int] = field(default_factory=list)
    start_date: date | None = None
    value_series: ValueSeries = field(default_factory=ValueSeries)
    cache_hit: bool = False
    computed_at: datetime | None = None
    valid_until: datetime | None = None


@dataclass
class ScopePlan:
    """How a selector is served: which scopes to fetch and how to combine them."""

    strategy: str
    scope_key: str
    scope_ids: list[str]


_REPORT_ADAPTER = TypeAdapter(PeriodReturnReport)


def _finite(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def calculate_period_returns(
    snapshots: list[DailySnapshot],
    currency: str,
    today: date,
    position: str | None = None,
) -> ReturnsCalculation:
    """Compute every period's TWR/MWR plus the monthly table and value series.

    Pure: the same snapshots, currency, position and ``today`` always give
    the same result. Periods without enough snapshots are reported with
    ``has_data=False`` and no figures.
    """
    cutoffs = get_period_cutoffs(today)
    days = normalize_snapshots(snapshots, currency, position)

    compounding = compound_daily_changes(days, cutoffs)
    counts = count_snapshots(days, cutoffs, position_scoped=position is not None)
    personal = calculate_period_personal_returns(days, cutoffs, today)

    periods = []
    for period in PERIODS:
        result = PeriodReturn(
            period=period,
            start_date=cutoffs[period],
            valid_snapshot_count=counts[period],
        )
        if has_sufficient_data(period, compounding.found_start[period], counts[period], today):
            twr = _finite(compounding.period_return(period))
            mwr = _finite(apply_personal_return_guard(personal[period], twr))
            result.twr_pct = twr
            result.mwr_pct = mwr
            result.has_data = twr is not None
            result.has_personal_data = mwr is not None
        periods.append(result)

    by_year, available_years, start_date = build_performance_table(compounding.monthly)
    return ReturnsCalculation(
        periods=periods,
        performance_by_year=by_year,
        monthly=compounding.monthly,
        available_years=available_years,
        start_date=start_date,
        value_series=build_value_series(days),
    )


def normalize_currency(currency: str) -> str:
    """Validate a currency code and return it upper-cased."""
    if not isinstance(currency, str) or not _CURRENCY_RE.fullmatch(currency.strip()):
        raise InvalidSelectorError(f"Invalid currency code: {currency!r}")
    return currency.strip().upper()


def normalize_position(position: tuple[str | None, str | None] | None) -> str | None:
    """Turn an optional (ticker, asset_class) pair into a position key."""
    if position is None:
        return None
    ticker, asset_class = (part.strip() if part else None for part in position)
    if not ticker and not asset_class:
        return None
    if not ticker or not asset_class:
        raise InvalidSelectorError("Position selector needs both ticker and asset class")
    return position_key(ticker, asset_class)


class HistoricalReturnsService:
    """Serves period-return reports, from the cache when it is still fresh."""

    def __init__(
        self,
        store: SnapshotStore,
        cache: ReturnsCacheService | None = None,
        calendar: MarketCalendar | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.cache = cache
        self.calendar = calendar or MarketCalendar()
        self.clock = clock

    def get_returns(
        self,
        owner_id: str,
        currency: str,
        scope_selector: ScopeSelector,
        position: tuple[str | None, str | None] | None = None,
        force_refresh: bool = False,
    ) -> PeriodReturnReport:
        """Period returns for one owner, currency and scope selection.

        Args:
            owner_id: Portfolio owner.
            currency: 3-letter currency code.
            scope_selector: ``"overall"``, one account id, or a list of
                account ids.
            position: Optional (ticker, asset_class) pair.
            force_refresh: Skip the cache read (the result is still cached).

        Raises:
            InvalidSelectorError: Malformed or unknown selector.
            SnapshotStoreError: A snapshot fetch failed.
        """
        currency = normalize_currency(currency)
        pos_key = normalize_position(position)
        selection = _normalize_selector(scope_selector)

        plan = self.resolve_scope(owner_id, selection)
        cache_key = build_cache_key(owner_id, currency, plan.scope_key, pos_key)

        if self.cache is not None and not force_refresh:
            entry = self.cache.get(cache_key)
            if entry is not None:
                report = _REPORT_ADAPTER.validate_json(entry.payload)
                report.cache_hit = True
                return report

        # Must be read before the snapshots are fetched
        generation = self.cache.generation(owner_id) if self.cache is not None else None

        now = self.clock()
        today = self.calendar.today(now)
        snapshots = self.load_snapshots(owner_id, plan, today)
        if not snapshots:
            logger.info("No snapshots for %s/%s, reporting no data", owner_id, plan.scope_key)

        calc = calculate_period_returns(snapshots, currency, today, pos_key)
        report = PeriodReturnReport(
            owner_id=owner_id,
            currency=currency,
            scope_key=plan.scope_key,
            strategy=plan.strategy,
            position=pos_key,
            periods=calc.periods,
            performance_by_year=calc.performance_by_year,
            monthly=calc.monthly,
            available_years=calc.available_years,
            start_date=calc.start_date,
            value_series=calc.value_series,
            computed_at=now,
        )

        if self.cache is not None:
            report.valid_until = self.cache.valid_until(now)
            stored = self.cache.set(
                owner_id, cache_key, _REPORT_ADAPTER.dump_json(report).decode(),
                now=now, generation=generation,
            )
            if stored is None:
                report.valid_until = None
        return report

    def resolve_scope(self, owner_id: str, selection: str | list[str]) -> ScopePlan:
        """Pick the fetch strategy for a normalized selector."""
        if selection == OVERALL_SCOPE:
            return ScopePlan(STRATEGY_OVERALL, OVERALL_SCOPE, [OVERALL_SCOPE])

        requested = [selection] if isinstance(selection, str) else selection
        known = self.store.list_account_ids(owner_id)
        unknown = sorted(set(requested) - set(known))
        if unknown:
            raise InvalidSelectorError(f"Unknown account id(s): {', '.join(unknown)}")

        if len(requested) == 1:
            plan = ScopePlan(STRATEGY_SINGLE_ACCOUNT, requested[0], [requested[0]])
        elif set(requested) == set(self.store.list_account_ids(owner_id, active_only=True)):
            # The overall scope is written from active accounts only
            plan = ScopePlan(STRATEGY_ALL_ACCOUNTS, OVERALL_SCOPE, [OVERALL_SCOPE])
        else:
            ids = sorted(requested)
            plan = ScopePlan(STRATEGY_AGGREGATE, f"multi:{','.join(ids)}", ids)

        logger.debug("Scope %s for %s resolved to %s", plan.scope_key, owner_id, plan.strategy)
        return plan

    def load_snapshots(self, owner_id: str, plan: ScopePlan, today: date) -> list[DailySnapshot]:
        """Fetch the plan's snapshots up to ``today``; aggregate when needed.

        Every selected account is fetched before anything is computed; a
        failed fetch propagates and fails the whole request.
        """
        if plan.strategy != STRATEGY_AGGREGATE:
            return self.store.list_snapshots(owner_id, plan.scope_ids[0], date_to=today)

        by_account = {
            scope_id: self.store.list_snapshots(owner_id, scope_id, date_to=today)
            for scope_id in plan.scope_ids
        }
        logger.info(
            "Aggregating %d accounts for %s", len(by_account), owner_id,
        )
        return aggregate_snapshots(by_account)


def _normalize_selector(scope_selector: ScopeSelector) -> str | list[str]:
    """Validate a selector's shape before any store access."""
    if isinstance(scope_selector, str):
        value = scope_selector.strip()
        if not value:
            raise InvalidSelectorError("Scope selector is empty")
        return value

    ids = sorted({s.strip() for s in scope_selector if s and s.strip()})
    if not ids:
        raise InvalidSelectorError("Account selection is empty")
    if OVERALL_SCOPE in ids:
        raise InvalidSelectorError(f"{OVERALL_SCOPE!r} cannot be combined with account ids")
    return ids
