#!/usr/bin/env python
"""Debug period return calculations with internal visibility.

Recomputes (never reads the cache) and shows the aggregation strategy, the
period table with snapshot counts, the month-by-month table and the yearly
totals.

Usage:
    python -m scripts.debug_returns --owner <id>                       # overall scope
    python -m scripts.debug_returns --owner <id> --scope <account_id>  # single account
    python -m scripts.debug_returns --owner <id> --accounts a,b        # blended accounts
    python -m scripts.debug_returns --owner <id> --ticker VTI --asset-class stock
    python -m scripts.debug_returns --owner <id> --list-accounts       # show account IDs
"""

import argparse
from datetime import date

from database import get_session_local, init_db
from logging_config import setup_logging
from integrations.exceptions import InvalidSelectorError, SnapshotStoreError
from models import Account, PerformanceSnapshot
from services.historical_returns_service import HistoricalReturnsService, PeriodReturnReport
from services.market_calendar import calendar_from_settings
from services.snapshot_store_service import SnapshotStoreService
from services.sufficiency import minimum_snapshots
from utils.query_params import parse_account_ids

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def _fmt_pct(val: float | None) -> str:
    if val is None:
        return "--"
    sign = "+" if val >= 0 else ""
    return f"{sign}{val:.2f}%"


def _fmt_money(val: float | None) -> str:
    if val is None:
        return "--"
    return f"{val:>14,.2f}"


def _separator(char: str = "-", width: int = 80) -> str:
    return char * width


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def list_accounts(db, owner_id: str) -> None:
    """Print the owner's accounts with their snapshot date ranges."""
    accounts = (
        db.query(Account)
        .filter(Account.owner_id == owner_id)
        .order_by(Account.created_at)
        .all()
    )
    if not accounts:
        print(f"No accounts for owner {owner_id}.")
        return

    print(f"\n{'ID':<38} {'Name':<28} {'First':<10}  {'Last':<10}")
    print(_separator())
    for acc in accounts:
        dates = [
            row.snapshot_date
            for row in db.query(PerformanceSnapshot.snapshot_date)
            .filter(
                PerformanceSnapshot.owner_id == owner_id,
                PerformanceSnapshot.scope_id == acc.id,
            )
            .all()
        ]
        first = min(dates).isoformat() if dates else "--"
        last = max(dates).isoformat() if dates else "--"
        print(f"{acc.id:<38} {acc.name[:28]:<28} {first:<10}  {last:<10}")


def print_period_table(report: PeriodReturnReport, today: date) -> None:
    """Period TWR/MWR with the counts that gate them."""
    print(f"\nOwner {report.owner_id}  currency {report.currency}  "
          f"scope {report.scope_key}  strategy {report.strategy}")
    if report.position:
        print(f"Position {report.position}")

    header = f"{'Period':<7}{'From':<12}{'TWR':>10}{'MWR':>10}{'Count':>8}{'Min':>7}  Status"
    print(f"\n{header}")
    print(_separator("=", len(header)))
    for p in report.periods:
        status = "OK" if p.has_data else "INSUFFICIENT"
        print(
            f"{p.period:<7}{p.start_date.isoformat():<12}"
            f"{_fmt_pct(p.twr_pct):>10}{_fmt_pct(p.mwr_pct):>10}"
            f"{p.valid_snapshot_count:>8}{minimum_snapshots(p.period, today):>7}  {status}"
        )


def print_monthly_table(report: PeriodReturnReport) -> None:
    """Month-by-month returns with value and cash-flow detail."""
    if not report.monthly:
        print("\nNo monthly data.")
        return

    header = (f"{'Month':<9}{'Return':>10}{'Start value':>16}{'End value':>16}"
              f"{'Cash flow':>16}{'Profit':>16}")
    print(f"\n{header}")
    print(_separator("-", len(header)))
    for m in report.monthly:
        label = f"{MONTH_ABBR[m.month - 1]} {m.year}"
        print(
            f"{label:<9}{_fmt_pct(m.return_pct):>10}{_fmt_money(m.start_total_value):>16}"
            f"{_fmt_money(m.end_total_value):>16}{_fmt_money(m.total_cash_flow):>16}"
            f"{_fmt_money(m.profit):>16}"
        )

    print("\nYearly totals:")
    for year in sorted(report.performance_by_year, reverse=True):
        print(f"  {year}  {_fmt_pct(report.performance_by_year[year].total_pct)}")
    if report.start_date:
        print(f"Performance history starts {report.start_date.isoformat()}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Debug period return calculations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--owner", required=True, help="Portfolio owner id")
    parser.add_argument("--currency", default="USD", help="Currency code (default: USD)")
    parser.add_argument("--scope", default="overall", help="'overall' or an account id")
    parser.add_argument("--accounts", help="Comma-separated account ids to blend")
    parser.add_argument("--ticker", help="Position ticker")
    parser.add_argument("--asset-class", dest="asset_class", help="Position asset class")
    parser.add_argument(
        "--list-accounts", action="store_true",
        help="List the owner's accounts with snapshot date ranges",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log store and cache activity at DEBUG",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        setup_logging("DEBUG")

    init_db()
    SessionLocal = get_session_local()
    db = SessionLocal()

    try:
        if args.list_accounts:
            list_accounts(db, args.owner)
            return 0

        calendar = calendar_from_settings()
        service = HistoricalReturnsService(SnapshotStoreService(db), calendar=calendar)
        selector = parse_account_ids(args.accounts) or args.scope
        position = (args.ticker, args.asset_class) if args.ticker or args.asset_class else None

        try:
            report = service.get_returns(args.owner, args.currency, selector, position=position)
        except (InvalidSelectorError, SnapshotStoreError) as e:
            print(f"Error: {e}")
            return 1

        today = calendar.today(report.computed_at)
        print_period_table(report, today)
        print_monthly_table(report)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
