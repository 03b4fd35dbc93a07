"""Period returns API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.dependencies import get_returns_cache, get_returns_service
from config import settings
from database import get_db
from integrations.exceptions import InvalidSelectorError, SnapshotStoreError
from schemas import CacheInvalidationResponse, PeriodReturnsResponse
from services.historical_returns_service import HistoricalReturnsService
from services.returns_cache_service import ReturnsCacheService
from utils.query_params import parse_scope_selector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/returns", tags=["returns"])


@router.get("", response_model=PeriodReturnsResponse)
def get_returns(
    owner_id: str = Query(..., min_length=1, description="Portfolio owner"),
    currency: Optional[str] = Query(None, description="3-letter currency code"),
    scope: Optional[str] = Query(None, description="'overall' or an account id"),
    account_ids: Optional[str] = Query(
        None, description="Comma-separated account IDs to blend"
    ),
    ticker: Optional[str] = Query(None, description="Position ticker"),
    asset_class: Optional[str] = Query(None, description="Position asset class"),
    force_refresh: bool = Query(False, description="Bypass the cache read"),
    db: Session = Depends(get_db),
    returns_service: HistoricalReturnsService = Depends(get_returns_service),
):
    """TWR and personal returns over the standard periods.

    Raises:
        HTTPException:
            - 400 Bad Request: Malformed or unknown selector
            - 503 Service Unavailable: Snapshot store could not be read
    """
    selector = parse_scope_selector(scope, account_ids)
    position = (ticker, asset_class) if ticker or asset_class else None

    try:
        report = returns_service.get_returns(
            owner_id,
            currency or settings.DEFAULT_CURRENCY,
            selector,
            position=position,
            force_refresh=force_refresh,
        )
    except InvalidSelectorError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SnapshotStoreError as e:
        logger.warning("Snapshot store error for %s (scope %s): %s", owner_id, e.scope_id, e)
        raise HTTPException(
            status_code=503,
            detail="Snapshot data is temporarily unavailable. Please retry.",
        )

    # Persist the freshly cached entry
    db.commit()

    logger.info(
        "Returns requested: owner=%s, currency=%s, scope=%s, strategy=%s, cache_hit=%s",
        owner_id, report.currency, report.scope_key, report.strategy, report.cache_hit,
    )
    return PeriodReturnsResponse.model_validate(report)


@router.delete("/cache", response_model=CacheInvalidationResponse)
def invalidate_returns_cache(
    owner_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    cache: ReturnsCacheService = Depends(get_returns_cache),
):
    """Drop every cached report for an owner."""
    deleted = cache.invalidate_owner(owner_id)
    db.commit()
    return CacheInvalidationResponse(owner_id=owner_id, entries_deleted=deleted)
