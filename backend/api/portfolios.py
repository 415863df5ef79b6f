"""Portfolios API endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from api.helpers import get_current_user, ledger_entry_dict, portfolio_response_dict, report_response_dict
from database import get_db
from models import User
from schemas import (
    HoldingsReportResponse,
    LedgerEntryResponse,
    PortfolioCreate,
    PortfolioResponse,
    PortfolioUpdate,
)
from services.ledger_service import ALL_PORTFOLIO_ID
from services.portfolio_service import PortfolioService
from utils.dates import ensure_utc
from utils.query_params import parse_transaction_types

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portfolios", tags=["portfolios"])


def _get_owned(db: Session, user: User, portfolio_id: int):
    portfolio = PortfolioService.get_portfolio(db, user.id, portfolio_id)
    if portfolio is None:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return portfolio


@router.get("", response_model=list[PortfolioResponse])
def list_portfolios(
    include_all: bool = Query(True, description="Prepend the virtual 'All' portfolio"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's portfolios, with the "All" aggregate first."""
    result = [portfolio_response_dict(p) for p in PortfolioService.list_portfolios(db, user.id)]
    if include_all:
        result.insert(0, PortfolioService.all_portfolio(db, user.id))
    return result


@router.post("", response_model=PortfolioResponse, status_code=201)
def create_portfolio(
    data: PortfolioCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a portfolio."""
    try:
        portfolio = PortfolioService.create_portfolio(db, user.id, **data.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(portfolio)
    return portfolio_response_dict(portfolio)


@router.get("/{portfolio_id}", response_model=PortfolioResponse)
def get_portfolio(
    portfolio_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get a portfolio by id; -1 returns the "All" aggregate."""
    if portfolio_id == ALL_PORTFOLIO_ID:
        return PortfolioService.all_portfolio(db, user.id)
    return portfolio_response_dict(_get_owned(db, user, portfolio_id))


@router.put("/{portfolio_id}", response_model=PortfolioResponse)
def update_portfolio(
    portfolio_id: int,
    data: PortfolioUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update a portfolio's fields."""
    portfolio = _get_owned(db, user, portfolio_id)
    try:
        PortfolioService.update_portfolio(db, portfolio, **data.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(portfolio)
    return portfolio_response_dict(portfolio)


@router.delete("/{portfolio_id}", status_code=204)
def delete_portfolio(
    portfolio_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete a portfolio and its transactions."""
    portfolio = _get_owned(db, user, portfolio_id)
    PortfolioService.delete_portfolio(db, portfolio)
    db.commit()
    return Response(status_code=204)


@router.get("/{portfolio_id}/holdings", response_model=HoldingsReportResponse)
def get_holdings(
    portfolio_id: int,
    as_of: datetime | None = Query(None, description="Value holdings at this instant (default: now)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Holdings, cash and totals of a portfolio (or "All") in its reporting currency."""
    if portfolio_id != ALL_PORTFOLIO_ID:
        _get_owned(db, user, portfolio_id)
    try:
        report = PortfolioService.compute_holdings(db, user.id, portfolio_id, as_of)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return report_response_dict(report)


@router.get("/{portfolio_id}/transactions", response_model=list[LedgerEntryResponse])
def list_portfolio_transactions(
    portfolio_id: int,
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    types: str | None = Query(None, description="Comma-separated transaction types"),
    include_housekeeping: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Stored and virtual transactions touching a portfolio, in ledger order."""
    if portfolio_id != ALL_PORTFOLIO_ID:
        _get_owned(db, user, portfolio_id)
    if start is not None and end is not None and ensure_utc(start) > ensure_utc(end):
        raise HTTPException(status_code=400, detail="start must be on or before end")
    entries = PortfolioService.ledger_entries(
        db,
        user.id,
        portfolio_id,
        start=start,
        end=end,
        include_housekeeping=include_housekeeping,
        types=parse_transaction_types(types),
    )
    return [ledger_entry_dict(entry) for entry in entries]
