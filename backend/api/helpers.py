"""Shared API helpers for route handlers.

Common lookups and FastAPI dependencies used across multiple route files.
"""

from dataclasses import asdict
from typing import TypeVar

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import Base, get_db
from models import Portfolio, User
from services.auth_service import AuthService
from services.ledger_service import LedgerEntry
from services.market_data_service import MarketDataService
from services.portfolio_aggregator import PortfolioReport

T = TypeVar("T", bound=Base)

# Dependency injection for testing
_market_data_service_override: MarketDataService | None = None


def get_or_404(db: Session, model: type[T], entity_id: int, detail: str = "Not found") -> T:
    """Fetch a single entity by primary key or raise 404.

    Args:
        db: Database session.
        model: SQLAlchemy model class.
        entity_id: Primary key value.
        detail: Error message for the 404 response.

    Returns:
        The entity instance.

    Raises:
        HTTPException: 404 if the entity doesn't exist.
    """
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_current_user(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the request's bearer token to a user.

    Raises:
        Unauthorized: Rendered as 401 by the app's exception handler.
    """
    return AuthService.resolve(db, bearer_token(authorization)).user


def get_market_data_service() -> MarketDataService:
    """Get MarketDataService instance, allowing for test overrides."""
    if _market_data_service_override is not None:
        return _market_data_service_override
    return MarketDataService()


def set_market_data_service_override(service: MarketDataService | None) -> None:
    """Set a MarketDataService override for testing."""
    global _market_data_service_override
    _market_data_service_override = service


def portfolio_response_dict(portfolio: Portfolio) -> dict:
    """Build a PortfolioResponse-compatible dict from a Portfolio.

    Args:
        portfolio: A Portfolio with its currency relationship loaded.

    Returns:
        Dict matching the PortfolioResponse schema.
    """
    return {
        "id": portfolio.id,
        "name": portfolio.name,
        "currency_id": portfolio.currency_id,
        "currency_code": portfolio.currency.code if portfolio.currency else None,
        "institution_id": portfolio.institution_id,
        "type": portfolio.type,
        "symbol": portfolio.symbol,
        "tags": portfolio.tags or "",
        "cash_balance": portfolio.cash_balance,
        "created_at": portfolio.created_at,
        "is_virtual": False,
    }


def report_response_dict(report: PortfolioReport) -> dict:
    """Build a HoldingsReportResponse-compatible dict from a PortfolioReport."""
    return {
        "portfolio_id": report.portfolio_id,
        "currency_id": report.currency_id,
        "currency_code": report.currency_code,
        "as_of": report.as_of,
        "holdings": [asdict(report.holdings[symbol]) for symbol in sorted(report.holdings)],
        "cash_balance": report.cash_balance,
        "holdings_value": report.holdings_value,
        "total_value": report.total_value,
        "has_unknown_values": report.has_unknown_values,
        "realized_gain_loss": report.realized_gain_loss,
        "dividend_income": report.dividend_income,
        "fees": report.fees,
        "errors": report.errors,
    }


def ledger_entry_dict(entry: LedgerEntry) -> dict:
    """Build a LedgerEntryResponse-compatible dict from a LedgerEntry."""
    tx = entry.transaction
    return {
        "id": tx.id,
        "template_id": tx.template_id,
        "portfolio_id": tx.portfolio_id,
        "target_portfolio_id": tx.target_portfolio_id,
        "date": tx.date,
        "type": tx.type,
        "asset_symbol": tx.asset_symbol,
        "quantity": tx.quantity,
        "signed_quantity": entry.signed_quantity,
        "direction": entry.direction,
        "price": tx.price,
        "commission": tx.commission,
        "tax": tx.tax,
        "is_housekeeping": tx.is_housekeeping,
        "is_virtual": entry.is_virtual,
        "tags": tx.tags,
        "notes": tx.notes,
    }
