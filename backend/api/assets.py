"""Assets API endpoints: symbol search, cached quotes and history."""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.helpers import get_current_user, get_market_data_service
from database import get_db
from models import User
from schemas import (
    AssetDetailResponse,
    AssetResponse,
    HistoryResponse,
    ManualAssetCreate,
    QuoteInput,
    RefreshAllResponse,
    SymbolMatchResponse,
)
from services.asset_service import AssetService
from services.market_data_service import MarketDataService
from utils.dates import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assets", tags=["assets"])


@router.get("", response_model=list[AssetResponse])
def list_assets(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """List cached assets."""
    return AssetService.list_assets(db)


@router.get("/search", response_model=list[SymbolMatchResponse])
def search(
    q: str = Query(..., min_length=1, description="Symbol or company name"),
    user: User = Depends(get_current_user),
    service: MarketDataService = Depends(get_market_data_service),
):
    """Search the quote provider for matching symbols."""
    return service.search(q)


@router.post("", response_model=AssetDetailResponse, status_code=201)
def create_manual_asset(
    data: ManualAssetCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a manually priced asset."""
    try:
        asset = AssetService.create_manual(
            db,
            data.symbol,
            data.currency,
            quotes=[q.model_dump() for q in data.quotes],
            long_name=data.long_name,
            instrument_type=data.instrument_type,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(asset)
    return asset


@router.post("/refresh", response_model=RefreshAllResponse)
def refresh_all(
    force: bool = Query(False, description="Refresh even when the data is current for its market"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: MarketDataService = Depends(get_market_data_service),
):
    """Refresh every provider-sourced asset whose market may have new data."""
    result = AssetService.refresh_all(db, service, force=force)
    db.commit()
    return result


@router.get("/{symbol}", response_model=AssetDetailResponse)
def get_asset(
    symbol: str,
    fetch: bool = Query(True, description="Fetch from the provider when not cached"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: MarketDataService = Depends(get_market_data_service),
):
    """Get an asset with its cached quotes, fetching it on first use."""
    asset = AssetService.get_asset(db, symbol)
    if asset is None:
        if not fetch:
            raise HTTPException(status_code=404, detail="Asset not found")
        asset = AssetService.get_or_fetch(db, symbol, service)
        db.commit()
        db.refresh(asset)
    return asset


@router.post("/{symbol}/quotes", response_model=AssetDetailResponse)
def add_quotes(
    symbol: str,
    quotes: list[QuoteInput],
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Add or overwrite quotes of a manual asset."""
    try:
        asset = AssetService.add_manual_quotes(db, symbol, [q.model_dump() for q in quotes])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(asset)
    return asset


@router.post("/{symbol}/refresh", response_model=AssetDetailResponse)
def refresh_asset(
    symbol: str,
    force: bool = Query(False, description="Refresh even when the data is current for its market"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: MarketDataService = Depends(get_market_data_service),
):
    """Fetch quotes newer than the last cached one."""
    try:
        asset = AssetService.refresh(db, symbol, service, force=force)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(asset)
    return asset


@router.get("/{symbol}/history", response_model=HistoryResponse)
def get_history(
    symbol: str,
    start: datetime | None = Query(None, description="Default: 30 days before end"),
    end: datetime | None = Query(None, description="Default: now"),
    interval: str = Query("1d"),
    user: User = Depends(get_current_user),
    service: MarketDataService = Depends(get_market_data_service),
):
    """Fetch a price series straight from the quote provider."""
    end = end or utc_now()
    start = start or end - timedelta(days=30)
    try:
        series = service.historical_series(symbol, start, end, interval)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return HistoryResponse(
        symbol=series.symbol,
        interval=series.interval,
        currency=series.metadata.currency,
        points=[asdict(point) for point in series.points],
    )
