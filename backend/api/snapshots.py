"""Snapshot ingest endpoint (daily-close and repair writes)."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.dependencies import get_returns_cache
from database import get_db
from integrations.snapshot_store_protocol import (
    CurrencySnapshot,
    DailySnapshot,
    PositionSnapshot,
    position_key,
)
from models.performance_snapshot import OVERALL_SCOPE
from schemas import SnapshotIngest, SnapshotIngestResponse
from services.returns_cache_service import ReturnsCacheService
from services.snapshot_store_service import SnapshotStoreService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snapshots", tags=["snapshots"])


@router.post("", response_model=SnapshotIngestResponse, status_code=201)
def ingest_snapshot(
    body: SnapshotIngest,
    db: Session = Depends(get_db),
    cache: ReturnsCacheService = Depends(get_returns_cache),
):
    """Write one day of one scope, replacing any existing rows for that day.

    The owner's cached returns are invalidated in the same transaction.

    Raises:
        HTTPException:
            - 400 Bad Request: Account belongs to another owner
            - 503 Service Unavailable: Database write failed
    """
    invalidated = 0

    def _count_invalidation(owner_id: str) -> None:
        nonlocal invalidated
        invalidated += cache.invalidate_owner(owner_id)

    store = SnapshotStoreService(db, write_listeners=[_count_invalidation])

    try:
        if body.scope_id != OVERALL_SCOPE:
            store.ensure_account(body.owner_id, body.scope_id, body.account_name)
        written = store.save_snapshot(body.owner_id, body.scope_id, _to_daily_snapshot(body))
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError:
        db.rollback()
        logger.error("Snapshot write failed for %s/%s", body.owner_id, body.scope_id, exc_info=True)
        raise HTTPException(
            status_code=503,
            detail="Snapshot could not be stored. Please retry.",
        )

    return SnapshotIngestResponse(
        owner_id=body.owner_id,
        scope_id=body.scope_id,
        snapshot_date=body.snapshot_date,
        currencies_written=written,
        cache_entries_invalidated=invalidated,
    )


def _to_daily_snapshot(body: SnapshotIngest) -> DailySnapshot:
    by_currency = {}
    for currency, data in body.by_currency.items():
        positions = {
            position_key(p.ticker, p.asset_class): PositionSnapshot(**p.model_dump())
            for p in data.positions
        }
        by_currency[currency] = CurrencySnapshot(
            **data.model_dump(exclude={"positions"}), positions=positions,
        )
    return DailySnapshot(snapshot_date=body.snapshot_date, by_currency=by_currency)
