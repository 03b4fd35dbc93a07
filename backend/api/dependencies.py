"""Dependency providers shared by the returns and snapshot routers.

Tests swap the calendar, clock or whole service through
``app.dependency_overrides``.
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.utils import utc_now
from services.historical_returns_service import HistoricalReturnsService
from services.market_calendar import MarketCalendar, calendar_from_settings
from services.returns_cache_service import ReturnsCacheService
from services.snapshot_store_service import SnapshotStoreService


def get_market_calendar() -> MarketCalendar:
    """Market calendar built from settings."""
    return calendar_from_settings()


def get_clock() -> Callable[[], datetime]:
    """Wall clock used for 'today' and cache expiry."""
    return utc_now


def get_returns_cache(
    db: Session = Depends(get_db),
    calendar: MarketCalendar = Depends(get_market_calendar),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ReturnsCacheService:
    return ReturnsCacheService(db, calendar, clock=clock)


def get_snapshot_store(
    db: Session = Depends(get_db),
    cache: ReturnsCacheService = Depends(get_returns_cache),
) -> SnapshotStoreService:
    """Snapshot store whose writes invalidate the owner's cached returns."""
    return SnapshotStoreService(db, write_listeners=[cache.invalidate_owner])


def get_returns_service(
    store: SnapshotStoreService = Depends(get_snapshot_store),
    cache: ReturnsCacheService = Depends(get_returns_cache),
    calendar: MarketCalendar = Depends(get_market_calendar),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> HistoricalReturnsService:
    return HistoricalReturnsService(
        store,
        cache=cache if settings.RETURNS_CACHE_ENABLED else None,
        calendar=calendar,
        clock=clock,
    )
