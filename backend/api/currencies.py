"""Currencies API endpoints."""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.helpers import get_current_user, get_market_data_service
from database import get_db
from models import User
from schemas import (
    ConversionResponse,
    CurrencyCreate,
    CurrencyResponse,
    RefreshRatesResponse,
    SetDefaultCurrencyRequest,
    UpdateRatesRequest,
)
from services.currency_service import CurrencyService
from services.market_data_service import MarketDataService

router = APIRouter(prefix="/api/currencies", tags=["currencies"])


@router.get("", response_model=list[CurrencyResponse])
def list_currencies(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """List currencies with their rates into the reference currency."""
    return CurrencyService.list_currencies(db)


@router.post("", response_model=CurrencyResponse, status_code=201)
def create_currency(
    data: CurrencyCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        currency = CurrencyService.create_currency(
            db, data.code, data.name, data.exchange_rate, symbol=data.symbol
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(currency)
    return currency


@router.put("/default", response_model=CurrencyResponse)
def set_default_currency(
    data: SetDefaultCurrencyRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Select the reporting currency of the "All" portfolio."""
    currency = CurrencyService.set_default(db, data.currency_id)
    db.commit()
    db.refresh(currency)
    return currency


@router.put("/rates", response_model=list[CurrencyResponse])
def update_rates(
    data: UpdateRatesRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Overwrite exchange rates keyed by currency code."""
    try:
        updated = CurrencyService.update_rates(db, data.rates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return updated


@router.post("/refresh", response_model=RefreshRatesResponse)
def refresh_rates(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: MarketDataService = Depends(get_market_data_service),
):
    """Refresh exchange rates from the quote provider."""
    result = CurrencyService.refresh_from_provider(db, service)
    db.commit()
    return result


@router.get("/convert", response_model=ConversionResponse)
def convert(
    amount: Decimal = Query(...),
    from_currency: str = Query(..., alias="from"),
    to_currency: str = Query(..., alias="to"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Convert an amount between two currency codes."""
    table = CurrencyService.build_table(db)
    source = table.by_code(from_currency)
    target = table.by_code(to_currency)
    return ConversionResponse(
        amount=amount,
        from_currency=source.code,
        to_currency=target.code,
        converted=table.convert(amount, source.id, target.id),
    )
