"""Market session calendar and the cache TTL strategy derived from it.

Snapshots change more often while the market is open, so cached returns
live for a few minutes during the session and until the next open
otherwise. This is a freshness heuristic only: writes still invalidate the
cache explicitly.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from config import settings

DEFAULT_INTRADAY_TTL = timedelta(minutes=5)

# Strategy signature: (now, calendar) -> how long a freshly computed entry stays valid
TtlStrategy = Callable[[datetime, "MarketCalendar"], timedelta]


@dataclass(frozen=True)
class MarketCalendar:
    """Trading session definition: timezone, hours, weekends and holidays."""

    timezone: str = "America/New_York"
    open_time: time = time(9, 30)
    close_time: time = time(16, 0)
    holidays: frozenset[date] = field(default_factory=frozenset)
    intraday_ttl: timedelta = DEFAULT_INTRADAY_TTL

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local_now(self, now: datetime) -> datetime:
        """Convert an aware datetime into the market timezone."""
        return now.astimezone(self.tz)

    def today(self, now: datetime) -> date:
        """The market-local calendar date of ``now``."""
        return self.local_now(now).date()

    def is_trading_day(self, d: date) -> bool:
        return d.weekday() < 5 and d not in self.holidays

    def is_open(self, now: datetime) -> bool:
        local = self.local_now(now)
        return (
            self.is_trading_day(local.date())
            and self.open_time <= local.time() < self.close_time
        )

    def next_open(self, now: datetime) -> datetime:
        """The next session open strictly after ``now`` (market-local, aware)."""
        local = self.local_now(now)
        candidate = local.date()
        if local.time() >= self.open_time:
            candidate += timedelta(days=1)
        while not self.is_trading_day(candidate):
            candidate += timedelta(days=1)
        return datetime.combine(candidate, self.open_time, tzinfo=self.tz)


def compute_cache_ttl(now: datetime, calendar: MarketCalendar) -> timedelta:
    """How long a report computed at ``now`` stays fresh.

    - Market open: the calendar's intraday TTL (5 minutes by default)
    - Otherwise (before open, after close, weekends, holidays): until the
      next session open
    """
    if calendar.is_open(now):
        return calendar.intraday_ttl
    # Subtract in UTC; same-zone aware subtraction ignores DST transitions
    return calendar.next_open(now).astimezone(timezone.utc) - now.astimezone(timezone.utc)


def calendar_from_settings() -> MarketCalendar:
    """Build the market calendar from application settings."""
    return MarketCalendar(
        timezone=settings.MARKET_TIMEZONE,
        open_time=settings.MARKET_OPEN,
        close_time=settings.MARKET_CLOSE,
        holidays=frozenset(settings.MARKET_HOLIDAYS),
        intraday_ttl=timedelta(seconds=settings.INTRADAY_CACHE_TTL_SECONDS),
    )
