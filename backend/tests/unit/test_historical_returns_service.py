"""Tests for the historical returns service."""

from datetime import date, timedelta

import pytest

from integrations.exceptions import InvalidSelectorError, SnapshotStoreError
from services.historical_returns_service import (
    STRATEGY_AGGREGATE,
    STRATEGY_ALL_ACCOUNTS,
    STRATEGY_OVERALL,
    STRATEGY_SINGLE_ACCOUNT,
    HistoricalReturnsService,
    calculate_period_returns,
    normalize_currency,
    normalize_position,
)
from services.market_calendar import MarketCalendar
from services.multi_account_aggregator import aggregate_snapshots
from services.returns_cache_service import ReturnsCacheService
from services.snapshot_store_service import SnapshotStoreService
from tests.fixtures import (
    MARKET_OPEN_NOW,
    TODAY,
    growth_values,
    make_position,
    make_snapshot,
    save_series,
    series_from_values,
)
from tests.fixtures.mocks import FailingSnapshotStore, FixedClock, InMemorySnapshotStore

START = date(2024, 5, 1)
DAYS = (TODAY - START).days + 1


def _two_account_store() -> InMemorySnapshotStore:
    """Accounts A and B plus the overall scope written as their exact sum."""
    a_values = growth_values(DAYS, 1000.0, daily_pct=0.05)
    b_values = growth_values(DAYS, 4000.0, daily_pct=-0.01)
    c_values = growth_values(DAYS, 500.0, daily_pct=0.2)
    overall = series_from_values(
        START, [a + b + c for a, b, c in zip(a_values, b_values, c_values)],
    )
    return InMemorySnapshotStore({
        "overall": overall,
        "A": series_from_values(START, a_values),
        "B": series_from_values(START, b_values),
        "C": series_from_values(START, c_values),
    })


FUNDED_START = date(2025, 3, 1)


def _funded_store() -> InMemorySnapshotStore:
    """Accounts funded on their first day, plus a later deposit into A.

    The overall scope is written the way the daily-close job would write it
    for exactly these two accounts.
    """
    days = (TODAY - FUNDED_START).days + 1
    deposit_day = days - 12
    a_values = growth_values(days, 1000.0, daily_pct=0.05)
    a_values = a_values[:deposit_day] + [v + 500.0 for v in a_values[deposit_day:]]
    b_values = growth_values(days, 3000.0, daily_pct=0.02)
    overall_values = [a + b for a, b in zip(a_values, b_values)]
    return InMemorySnapshotStore({
        "overall": series_from_values(
            FUNDED_START, overall_values, {0: -overall_values[0], deposit_day: -500.0},
        ),
        "A": series_from_values(FUNDED_START, a_values, {0: -a_values[0], deposit_day: -500.0}),
        "B": series_from_values(FUNDED_START, b_values, {0: -b_values[0]}),
    })


def _service(store, **kwargs) -> HistoricalReturnsService:
    return HistoricalReturnsService(
        store, calendar=MarketCalendar(), clock=FixedClock(MARKET_OPEN_NOW), **kwargs,
    )


def _twr(report) -> dict:
    return {p.period: p.twr_pct for p in report.periods}


class TestSelectorValidation:
    """Malformed selectors are rejected before the store is touched."""

    @pytest.mark.parametrize("currency", ["US", "USDX", "", "12$"])
    def test_invalid_currency(self, currency):
        store = InMemorySnapshotStore()

        with pytest.raises(InvalidSelectorError, match="currency"):
            _service(store).get_returns("o1", currency, "overall")
        assert store.calls == []

    def test_empty_account_list(self):
        store = InMemorySnapshotStore()

        with pytest.raises(InvalidSelectorError, match="empty"):
            _service(store).get_returns("o1", "USD", [])
        assert store.calls == []

    def test_half_position_selector(self):
        store = InMemorySnapshotStore()

        with pytest.raises(InvalidSelectorError, match="ticker and asset class"):
            _service(store).get_returns("o1", "USD", "overall", position=("VTI", None))
        assert store.calls == []

    def test_overall_mixed_with_accounts(self):
        with pytest.raises(InvalidSelectorError):
            _service(InMemorySnapshotStore()).get_returns("o1", "USD", ["overall", "A"])

    def test_unknown_account(self):
        with pytest.raises(InvalidSelectorError, match="Z"):
            _service(_two_account_store()).get_returns("o1", "USD", ["A", "Z"])

    def test_currency_normalized(self):
        assert normalize_currency(" usd ") == "USD"

    def test_position_normalization(self):
        assert normalize_position(None) is None
        assert normalize_position((None, "")) is None
        assert normalize_position(("VTI", "stock")) == "VTI_stock"


class TestScopeResolution:
    """Tests for strategy selection."""

    def test_overall(self):
        report = _service(_two_account_store()).get_returns("o1", "USD", "overall")
        assert report.strategy == STRATEGY_OVERALL
        assert report.scope_key == "overall"

    def test_single_account(self):
        store = _two_account_store()

        report = _service(store).get_returns("o1", "USD", ["A"])

        assert report.strategy == STRATEGY_SINGLE_ACCOUNT
        assert report.scope_key == "A"
        assert ("list_snapshots", "o1", "A") in store.calls

    def test_all_accounts_reads_overall(self):
        store = _two_account_store()

        report = _service(store).get_returns("o1", "USD", ["C", "A", "B", "A"])

        assert report.strategy == STRATEGY_ALL_ACCOUNTS
        assert report.scope_key == "overall"
        fetched = [call[2] for call in store.calls if call[0] == "list_snapshots"]
        assert fetched == ["overall"]

    def test_subset_is_aggregated(self):
        store = _two_account_store()

        report = _service(store).get_returns("o1", "USD", ["B", "A"])

        assert report.strategy == STRATEGY_AGGREGATE
        assert report.scope_key == "multi:A,B"
        fetched = sorted(call[2] for call in store.calls if call[0] == "list_snapshots")
        assert fetched == ["A", "B"]

    def test_active_accounts_read_overall(self):
        """Every active account selected is the overall scope, even with inactive ones left out."""
        store = _two_account_store()
        store.inactive = {"C"}

        report = _service(store).get_returns("o1", "USD", ["A", "B"])

        assert report.strategy == STRATEGY_ALL_ACCOUNTS
        assert report.scope_key == "overall"

    def test_inactive_account_included_is_aggregated(self):
        store = _two_account_store()
        store.inactive = {"C"}

        report = _service(store).get_returns("o1", "USD", ["A", "B", "C"])

        assert report.strategy == STRATEGY_AGGREGATE
        assert report.scope_key == "multi:A,B,C"

    def test_inactive_account_still_selectable(self):
        store = _two_account_store()
        store.inactive = {"C"}

        report = _service(store).get_returns("o1", "USD", "C")

        assert report.strategy == STRATEGY_SINGLE_ACCOUNT


class TestGetReturns:
    """Tests for HistoricalReturnsService.get_returns()."""

    def test_period_report(self):
        report = _service(_two_account_store()).get_returns("o1", "usd", "overall")

        assert report.currency == "USD"
        assert [p.period for p in report.periods] == ["1M", "3M", "6M", "YTD", "1Y", "2Y", "5Y"]
        by_period = {p.period: p for p in report.periods}
        for period in ("1M", "3M", "6M", "YTD", "1Y"):
            assert by_period[period].has_data is True
            assert by_period[period].twr_pct is not None
        for period in ("2Y", "5Y"):
            assert by_period[period].has_data is False
            assert by_period[period].twr_pct is None
            assert by_period[period].mwr_pct is None
        assert by_period["1M"].start_date == date(2025, 5, 18)
        assert by_period["1M"].valid_snapshot_count == 32
        assert report.available_years == [2025, 2024]
        assert report.value_series.dates[-1] == TODAY
        assert report.cache_hit is False
        assert report.computed_at == MARKET_OPEN_NOW

    def test_no_data_is_not_an_error(self):
        report = _service(InMemorySnapshotStore()).get_returns("o1", "USD", "overall")

        assert all(p.has_data is False for p in report.periods)
        assert all(p.twr_pct is None for p in report.periods)
        assert report.monthly == []
        assert report.start_date is None

    def test_other_currency_has_no_data(self):
        report = _service(_two_account_store()).get_returns("o1", "EUR", "overall")

        assert all(p.has_data is False for p in report.periods)
        assert all(p.valid_snapshot_count == 0 for p in report.periods)

    def test_future_snapshots_ignored(self):
        store = _two_account_store()
        store.scopes["overall"].append(make_snapshot(TODAY + timedelta(days=1), 1.0, -99.0))

        report = _service(store).get_returns("o1", "USD", "overall")

        assert report.value_series.dates[-1] == TODAY

    def test_all_account_shortcut_matches_overall(self):
        service = _service(_two_account_store())

        shortcut = service.get_returns("o1", "USD", ["A", "B", "C"])
        overall = service.get_returns("o1", "USD", "overall")

        assert _twr(shortcut) == _twr(overall)

    def test_all_account_shortcut_matches_aggregation(self):
        store = _two_account_store()
        overall = _service(store).get_returns("o1", "USD", "overall")

        aggregated = calculate_period_returns(
            aggregate_snapshots({k: store.scopes[k] for k in ("A", "B", "C")}), "USD", TODAY,
        )

        for expected, actual in zip(overall.periods, aggregated.periods):
            assert actual.has_data == expected.has_data
            if expected.twr_pct is not None:
                assert actual.twr_pct == pytest.approx(expected.twr_pct, rel=1e-9, abs=1e-9)
            assert actual.has_personal_data == expected.has_personal_data
            if expected.mwr_pct is not None:
                assert actual.mwr_pct == pytest.approx(expected.mwr_pct, rel=1e-9, abs=1e-9)

    def test_single_account_shortcut_matches_aggregation(self):
        store = _two_account_store()
        single = _service(store).get_returns("o1", "USD", "A")

        aggregated = calculate_period_returns(aggregate_snapshots({"A": store.scopes["A"]}), "USD", TODAY)

        for expected, actual in zip(single.periods, aggregated.periods):
            if expected.twr_pct is not None:
                assert actual.twr_pct == pytest.approx(expected.twr_pct, rel=1e-9, abs=1e-9)
            if expected.mwr_pct is not None:
                assert actual.mwr_pct == pytest.approx(expected.mwr_pct, rel=1e-9, abs=1e-9)

    def test_funded_accounts_match_overall_personal_returns(self):
        """First-day funding and a later deposit give the same MWR on both paths."""
        store = _funded_store()
        overall = calculate_period_returns(store.scopes["overall"], "USD", TODAY)

        aggregated = calculate_period_returns(
            aggregate_snapshots({k: store.scopes[k] for k in ("A", "B")}), "USD", TODAY,
        )

        compared = 0
        for expected, actual in zip(overall.periods, aggregated.periods):
            assert actual.has_data == expected.has_data, expected.period
            assert actual.has_personal_data == expected.has_personal_data, expected.period
            if expected.twr_pct is not None:
                assert actual.twr_pct == pytest.approx(expected.twr_pct, rel=1e-9, abs=1e-9)
            if expected.mwr_pct is not None:
                assert actual.mwr_pct == pytest.approx(expected.mwr_pct, rel=1e-9, abs=1e-9), (
                    expected.period
                )
                compared += 1
        assert compared >= 3

    def test_aggregate_value_series_starts_one_day_earlier(self):
        """The aggregate's first day is a 0% contributing day; a stored scope's is undefined."""
        store = _funded_store()
        overall = calculate_period_returns(store.scopes["overall"], "USD", TODAY)

        aggregated = calculate_period_returns(
            aggregate_snapshots({k: store.scopes[k] for k in ("A", "B")}), "USD", TODAY,
        )

        assert aggregated.value_series.dates == [FUNDED_START] + overall.value_series.dates
        assert aggregated.value_series.percent_changes[0] == 0.0
        assert aggregated.value_series.values[1:] == pytest.approx(overall.value_series.values)

    def test_mwr_equals_twr_without_cash_flows(self):
        report = _service(_two_account_store()).get_returns("o1", "USD", "overall")

        for period in report.periods:
            if period.has_data:
                assert period.has_personal_data is True
                assert period.mwr_pct == pytest.approx(period.twr_pct, rel=1e-9)

    def test_upstream_failure_fails_the_aggregate(self):
        healthy = _two_account_store()
        store = FailingSnapshotStore("B", scopes=healthy.scopes)

        with pytest.raises(SnapshotStoreError) as exc_info:
            _service(store).get_returns("o1", "USD", ["A", "B"])
        assert exc_info.value.scope_id == "B"
        assert exc_info.value.retriable is True

    def test_position_returns(self):
        snapshots = []
        for i in range(40):
            day = TODAY - timedelta(days=39 - i)
            positions = []
            if i >= 10:
                positions = [make_position("VTI", total_value=100.0 + i, adjusted=1.0 if i > 10 else None)]
            snapshots.append(make_snapshot(day, 1000.0, 0.0, positions=positions))
        store = InMemorySnapshotStore({"overall": snapshots})

        report = _service(store).get_returns("o1", "USD", "overall", position=("VTI", "stock"))

        one_month = report.periods[0]
        assert report.position == "VTI_stock"
        # Held with a defined change on 29 days, all inside the 1M window
        assert one_month.valid_snapshot_count == 29
        assert one_month.has_data is True
        assert one_month.twr_pct == pytest.approx((1.01 ** 29 - 1) * 100)


class TestCaching:
    """Cache behavior with the SQL store and cache."""

    def _service(self, db, clock):
        calendar = MarketCalendar()
        cache = ReturnsCacheService(db, calendar, clock=clock)
        store = SnapshotStoreService(db, write_listeners=[cache.invalidate_owner])
        return HistoricalReturnsService(store, cache=cache, calendar=calendar, clock=clock), store

    def test_second_request_hits_cache(self, db):
        clock = FixedClock(MARKET_OPEN_NOW)
        save_series(db, "o1", "overall", series_from_values(START, growth_values(DAYS)))
        service, _ = self._service(db, clock)

        first = service.get_returns("o1", "USD", "overall")
        second = service.get_returns("o1", "USD", "overall")

        assert first.cache_hit is False
        assert second.cache_hit is True
        assert _twr(second) == _twr(first)
        assert second.performance_by_year.keys() == first.performance_by_year.keys()
        assert second.valid_until == MARKET_OPEN_NOW + timedelta(minutes=5)

    def test_force_refresh_recomputes(self, db):
        save_series(db, "o1", "overall", series_from_values(START, growth_values(DAYS)))
        service, _ = self._service(db, FixedClock(MARKET_OPEN_NOW))
        service.get_returns("o1", "USD", "overall")

        report = service.get_returns("o1", "USD", "overall", force_refresh=True)

        assert report.cache_hit is False

    def test_expired_entry_recomputed(self, db):
        clock = FixedClock(MARKET_OPEN_NOW)
        save_series(db, "o1", "overall", series_from_values(START, growth_values(DAYS)))
        service, _ = self._service(db, clock)
        service.get_returns("o1", "USD", "overall")

        clock.advance(timedelta(minutes=5))

        assert service.get_returns("o1", "USD", "overall").cache_hit is False

    def test_snapshot_write_invalidates(self, db):
        save_series(db, "o1", "overall", series_from_values(START, growth_values(DAYS)))
        service, store = self._service(db, FixedClock(MARKET_OPEN_NOW))
        before = service.get_returns("o1", "USD", "overall")

        store.save_snapshot("o1", "overall", make_snapshot(TODAY, 5000.0, 50.0))
        after = service.get_returns("o1", "USD", "overall")

        assert after.cache_hit is False
        assert after.periods[0].twr_pct != before.periods[0].twr_pct

    def test_write_during_fetch_is_not_cached(self, db, monkeypatch):
        """A report computed from pre-write snapshots is never served after the write."""
        clock = FixedClock(MARKET_OPEN_NOW)
        save_series(db, "o1", "overall", series_from_values(START, growth_values(DAYS)))
        calendar = MarketCalendar()
        cache = ReturnsCacheService(db, calendar, clock=clock)
        writer = SnapshotStoreService(db, write_listeners=[cache.invalidate_owner])
        reader = SnapshotStoreService(db)
        fetch = reader.list_snapshots

        def fetch_then_write(owner_id, scope_id, date_from=None, date_to=None):
            snapshots = fetch(owner_id, scope_id, date_from, date_to)
            writer.save_snapshot(owner_id, scope_id, make_snapshot(TODAY, 10.0, -99.0))
            return snapshots

        monkeypatch.setattr(reader, "list_snapshots", fetch_then_write)
        service = HistoricalReturnsService(reader, cache=cache, calendar=calendar, clock=clock)

        stale = service.get_returns("o1", "USD", "overall")
        db.commit()
        monkeypatch.undo()
        fresh = service.get_returns("o1", "USD", "overall")

        assert stale.valid_until is None
        assert stale.periods[0].twr_pct > 0
        assert fresh.cache_hit is False
        assert fresh.periods[0].twr_pct < -90

    def test_scopes_do_not_collide(self, db):
        save_series(db, "o1", "overall", series_from_values(START, growth_values(DAYS)))
        save_series(db, "o1", "acc-1", series_from_values(START, growth_values(DAYS, daily_pct=0.3)))
        service, _ = self._service(db, FixedClock(MARKET_OPEN_NOW))

        overall = service.get_returns("o1", "USD", "overall")
        account = service.get_returns("o1", "USD", "acc-1")

        assert account.cache_hit is False
        assert _twr(account) != _twr(overall)
