"""Tests for the debug_returns script."""

from datetime import date

import pytest

from scripts.debug_returns import build_parser, main
from tests.fixtures import growth_values, save_series, series_from_values


@pytest.fixture(name="script_db")
def script_db_fixture(db, monkeypatch):
    """Point the script at the test database."""
    monkeypatch.setattr("scripts.debug_returns.get_session_local", lambda: lambda: db)
    monkeypatch.setattr("scripts.debug_returns.init_db", lambda: None)
    return db


class TestParser:
    def test_owner_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_defaults(self):
        args = build_parser().parse_args(["--owner", "o1"])
        assert args.currency == "USD"
        assert args.scope == "overall"
        assert args.accounts is None
        assert args.verbose is False

    def test_verbose_flag(self):
        args = build_parser().parse_args(["--owner", "o1", "-v"])
        assert args.verbose is True


class TestMain:
    """Tests for main()."""

    def test_list_accounts(self, script_db, capsys):
        save_series(script_db, "o1", "acc-1", series_from_values(date(2025, 6, 1), growth_values(3)))

        assert main(["--owner", "o1", "--list-accounts"]) == 0

        out = capsys.readouterr().out
        assert "acc-1" in out
        assert "2025-06-01" in out
        assert "2025-06-03" in out

    def test_list_accounts_empty(self, script_db, capsys):
        assert main(["--owner", "nobody", "--list-accounts"]) == 0
        assert "No accounts" in capsys.readouterr().out

    def test_period_and_monthly_tables(self, script_db, capsys):
        save_series(script_db, "o1", "overall", series_from_values(date(2025, 1, 1), growth_values(60)))

        assert main(["--owner", "o1"]) == 0

        out = capsys.readouterr().out
        assert "strategy overall" in out
        for period in ("1M", "3M", "6M", "YTD", "1Y", "2Y", "5Y"):
            assert period in out
        assert "Jan 2025" in out
        assert "Yearly totals" in out

    def test_invalid_selector_reported(self, script_db, capsys):
        assert main(["--owner", "o1", "--accounts", "missing"]) == 1
        assert "Unknown account" in capsys.readouterr().out
