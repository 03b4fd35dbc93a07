"""Returns cache service — keyed store of computed period-return reports."""

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from models.returns_cache_entry import ReturnsCacheEntry, ReturnsCacheGeneration
from models.utils import utc_now
from services.market_calendar import MarketCalendar, TtlStrategy, compute_cache_ttl

logger = logging.getLogger(__name__)


def build_cache_key(
    owner_id: str, currency: str, scope_key: str, position: str | None = None,
) -> str:
    """Key that separates every (owner, currency, scope, position) request.

    ``scope_key`` is ``"overall"``, an account id, or ``"multi:<sorted ids>"``.
    """
    return f"{owner_id}:{currency}:{scope_key}:{position or '-'}"


class ReturnsCacheService:
    """Cache of serialized reports backed by the ``returns_cache_entries`` table.

    The clock and TTL strategy are injected so expiry is testable without
    waiting on real market hours. Invalidation deletes an owner's rows and
    bumps the owner's generation inside the caller's transaction; committing
    the snapshot write commits the invalidation with it.

    A reader records the generation before fetching snapshots and passes it
    to ``set``. A report computed before a concurrent invalidation is then
    either not stored or, if stored, never served.
    """

    def __init__(
        self,
        db: Session,
        calendar: MarketCalendar,
        clock: Callable[[], datetime] = utc_now,
        ttl_strategy: TtlStrategy = compute_cache_ttl,
    ):
        self.db = db
        self.calendar = calendar
        self.clock = clock
        self.ttl_strategy = ttl_strategy

    def generation(self, owner_id: str) -> int:
        """The owner's current cache generation (0 before any invalidation)."""
        row = (
            self.db.query(ReturnsCacheGeneration.generation)
            .filter(ReturnsCacheGeneration.owner_id == owner_id)
            .first()
        )
        return row.generation if row is not None else 0

    def get(self, cache_key: str) -> ReturnsCacheEntry | None:
        """Return the entry if present, current and still valid, else None."""
        entry = (
            self.db.query(ReturnsCacheEntry)
            .filter(ReturnsCacheEntry.cache_key == cache_key)
            .first()
        )
        if entry is None:
            logger.debug("Returns cache MISS for %s", cache_key)
            return None

        if entry.generation != self.generation(entry.owner_id):
            logger.info("Returns cache STALE for %s (generation %d)", cache_key, entry.generation)
            return None

        if _as_aware(entry.valid_until) <= self.clock():
            logger.info("Returns cache EXPIRED for %s", cache_key)
            return None

        logger.info("Returns cache HIT for %s", cache_key)
        return entry

    def valid_until(self, now: datetime) -> datetime:
        """Expiry (UTC) of an entry computed at ``now``."""
        return (now + self.ttl_strategy(now, self.calendar)).astimezone(timezone.utc)

    def set(
        self,
        owner_id: str,
        cache_key: str,
        payload: str,
        now: datetime | None = None,
        generation: int | None = None,
    ) -> ReturnsCacheEntry | None:
        """Store (or replace) a payload computed at ``now`` (default: the clock).

        Args:
            generation: Generation read before the payload's snapshots were
                fetched. When the owner was invalidated since, nothing is
                stored and None is returned. Defaults to the current one.
        """
        current = self.generation(owner_id)
        if generation is None:
            generation = current
        elif generation != current:
            logger.info(
                "Returns cache skipped %s: invalidated during computation (%d -> %d)",
                cache_key, generation, current,
            )
            return None

        now = now or self.clock()
        valid_until = self.valid_until(now)
        now = now.astimezone(timezone.utc)

        entry = (
            self.db.query(ReturnsCacheEntry)
            .filter(ReturnsCacheEntry.cache_key == cache_key)
            .first()
        )
        if entry is None:
            entry = ReturnsCacheEntry(owner_id=owner_id, cache_key=cache_key)
            self.db.add(entry)
        entry.payload = payload
        entry.generation = generation
        entry.computed_at = now
        entry.valid_until = valid_until
        self.db.flush()

        logger.debug("Returns cache stored %s (valid until %s)", cache_key, valid_until.isoformat())
        return entry

    def invalidate_owner(self, owner_id: str) -> int:
        """Delete every cached report for an owner and bump its generation.

        Returns:
            Number of entries deleted.
        """
        bumped = (
            self.db.query(ReturnsCacheGeneration)
            .filter(ReturnsCacheGeneration.owner_id == owner_id)
            .update(
                {ReturnsCacheGeneration.generation: ReturnsCacheGeneration.generation + 1},
                synchronize_session=False,
            )
        )
        if not bumped:
            self.db.add(ReturnsCacheGeneration(owner_id=owner_id, generation=1))

        deleted = (
            self.db.query(ReturnsCacheEntry)
            .filter(ReturnsCacheEntry.owner_id == owner_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        if deleted:
            logger.info("Returns cache invalidated for %s (%d entries)", owner_id, deleted)
        return deleted


def _as_aware(value: datetime) -> datetime:
    """SQLite drops tzinfo on round-trip; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
