"""Portfolio and institution management, and holdings report orchestration."""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models import PORTFOLIO_TYPES, Currency, Institution, Portfolio, Transaction
from services.asset_service import AssetService
from services.currency_service import CurrencyService
from services.exceptions import UnknownCurrency
from services.ledger_service import ALL_PORTFOLIO_ID, LedgerEntry, TransactionLedger, TransactionType
from services.portfolio_aggregator import PortfolioAggregator, PortfolioReport

logger = logging.getLogger(__name__)

ALL_PORTFOLIO_NAME = "All"


class PortfolioService:
    """Service for portfolio CRUD and for the computed views over them."""

    # -- portfolios -------------------------------------------------------

    @staticmethod
    def list_portfolios(db: Session, user_id: int) -> list[Portfolio]:
        return (
            db.query(Portfolio)
            .options(joinedload(Portfolio.currency), joinedload(Portfolio.institution))
            .filter(Portfolio.user_id == user_id)
            .order_by(Portfolio.id)
            .all()
        )

    @staticmethod
    def get_portfolio(db: Session, user_id: int, portfolio_id: int) -> Portfolio | None:
        return (
            db.query(Portfolio)
            .filter(Portfolio.id == portfolio_id, Portfolio.user_id == user_id)
            .first()
        )

    @staticmethod
    def all_portfolio(db: Session, user_id: int) -> dict:
        """Descriptor of the virtual "All" portfolio, reported in the default currency."""
        default = CurrencyService.get_default(db)
        return {
            "id": ALL_PORTFOLIO_ID,
            "name": ALL_PORTFOLIO_NAME,
            "currency_id": default.id,
            "currency_code": default.code,
            "institution_id": None,
            "type": None,
            "symbol": None,
            "tags": "",
            "cash_balance": Decimal("0"),
            "is_virtual": True,
        }

    @staticmethod
    def create_portfolio(
        db: Session,
        user_id: int,
        *,
        name: str,
        currency_id: int,
        institution_id: int | None = None,
        type: str = "Investment",
        symbol: str | None = None,
        tags: str = "",
        cash_balance: Decimal = Decimal("0"),
    ) -> Portfolio:
        """Create a portfolio for ``user_id``.

        Raises:
            UnknownCurrency: If ``currency_id`` does not exist.
            ValueError: If the name is blank, the type is unknown, or the
                institution does not exist.
        """
        portfolio = Portfolio(user_id=user_id)
        PortfolioService._apply_fields(
            db,
            portfolio,
            name=name,
            currency_id=currency_id,
            institution_id=institution_id,
            type=type,
            symbol=symbol,
            tags=tags,
            cash_balance=cash_balance,
        )
        db.add(portfolio)
        db.flush()
        logger.info("Portfolio created: %s (id=%s)", portfolio.name, portfolio.id)
        return portfolio

    @staticmethod
    def update_portfolio(db: Session, portfolio: Portfolio, **fields) -> Portfolio:
        """Update the given fields; None values are left unchanged."""
        PortfolioService._apply_fields(
            db, portfolio, **{key: value for key, value in fields.items() if value is not None}
        )
        db.flush()
        logger.info("Portfolio updated: %s (id=%s)", portfolio.name, portfolio.id)
        return portfolio

    @staticmethod
    def delete_portfolio(db: Session, portfolio: Portfolio) -> None:
        """Delete a portfolio and every transaction it owns.

        Transactions elsewhere that name it as a target keep their own
        effect but lose the counterparty.
        """
        db.query(Transaction).filter(Transaction.target_portfolio_id == portfolio.id).update(
            {Transaction.target_portfolio_id: None}, synchronize_session="fetch"
        )
        logger.info("Deleting portfolio %s (id=%s)", portfolio.name, portfolio.id)
        db.delete(portfolio)
        db.flush()

    @staticmethod
    def _apply_fields(db: Session, portfolio: Portfolio, **fields) -> None:
        if "name" in fields:
            name = (fields["name"] or "").strip()
            if not name:
                raise ValueError("Portfolio name must not be empty")
            if name == ALL_PORTFOLIO_NAME:
                raise ValueError(f"{ALL_PORTFOLIO_NAME!r} is reserved for the aggregate portfolio")
            portfolio.name = name
        if "currency_id" in fields:
            if db.get(Currency, fields["currency_id"]) is None:
                raise UnknownCurrency(fields["currency_id"])
            portfolio.currency_id = fields["currency_id"]
        if "institution_id" in fields:
            institution_id = fields["institution_id"]
            if institution_id is not None and db.get(Institution, institution_id) is None:
                raise ValueError(f"Institution {institution_id} not found")
            portfolio.institution_id = institution_id
        if "type" in fields:
            if fields["type"] not in PORTFOLIO_TYPES:
                raise ValueError(f"Portfolio type must be one of {', '.join(PORTFOLIO_TYPES)}")
            portfolio.type = fields["type"]
        if "symbol" in fields:
            portfolio.symbol = fields["symbol"]
        if "tags" in fields:
            portfolio.tags = fields["tags"] or ""
        if "cash_balance" in fields:
            portfolio.cash_balance = fields["cash_balance"]

    # -- institutions -----------------------------------------------------

    @staticmethod
    def list_institutions(db: Session) -> list[Institution]:
        return db.query(Institution).order_by(Institution.name).all()

    @staticmethod
    def get_or_create_institution(db: Session, name: str, **fields) -> tuple[Institution, bool]:
        """Return the institution named ``name`` (case-insensitive), creating it if needed."""
        name = name.strip()
        if not name:
            raise ValueError("Institution name must not be empty")
        existing = (
            db.query(Institution)
            .filter(func.lower(Institution.name) == name.lower())
            .first()
        )
        if existing is not None:
            return existing, False
        institution = Institution(
            name=name,
            website=fields.get("website"),
            api_url=fields.get("api_url"),
            is_default=bool(fields.get("is_default", False)),
        )
        db.add(institution)
        db.flush()
        return institution, True

    # -- computed views ---------------------------------------------------

    @staticmethod
    def load_ledger(
        db: Session, user_id: int, as_of: datetime | None = None, exclude_id: int | None = None
    ) -> TransactionLedger:
        query = (
            db.query(Transaction)
            .join(Portfolio, Transaction.portfolio_id == Portfolio.id)
            .filter(Portfolio.user_id == user_id)
        )
        if exclude_id is not None:
            query = query.filter(Transaction.id != exclude_id)
        rows = query.all()
        return TransactionLedger.from_rows(rows, as_of=as_of)

    @staticmethod
    def build_aggregator(
        db: Session, user_id: int, as_of: datetime | None = None, exclude_id: int | None = None
    ) -> PortfolioAggregator:
        portfolios = PortfolioService.list_portfolios(db, user_id)
        ledger = PortfolioService.load_ledger(db, user_id, as_of=as_of, exclude_id=exclude_id)
        symbols = {tx.asset_symbol for tx in ledger.transactions}
        symbols.update(t.asset_symbol for t in ledger.templates)
        return PortfolioAggregator(
            ledger=ledger,
            quotes=AssetService.build_cache(db, symbols),
            currencies=CurrencyService.build_table(db),
            portfolio_currencies={p.id: p.currency_id for p in portfolios},
            opening_cash={p.id: Decimal(str(p.cash_balance or 0)) for p in portfolios},
        )

    @staticmethod
    def compute_holdings(
        db: Session, user_id: int, portfolio_id: int, as_of: datetime | None = None, exclude_id: int | None = None
    ) -> PortfolioReport:
        aggregator = PortfolioService.build_aggregator(db, user_id, as_of=as_of, exclude_id=exclude_id)
        report = aggregator.compute_holdings(portfolio_id, as_of)
        if report.errors:
            logger.info(
                "Holdings for portfolio %s: %d transactions not applied",
                portfolio_id, len(report.errors),
            )
        return report

    @staticmethod
    def held_quantity(
        db: Session, user_id: int, portfolio_id: int, symbol: str, as_of: datetime, exclude_id: int | None = None
    ) -> Decimal:
        """Quantity of ``symbol`` held by a portfolio at ``as_of``, ignoring transaction ``exclude_id``."""
        report = PortfolioService.compute_holdings(db, user_id, portfolio_id, as_of, exclude_id=exclude_id)
        holding = report.holdings.get(symbol)
        return holding.quantity if holding else Decimal("0")

    @staticmethod
    def ledger_entries(
        db: Session,
        user_id: int,
        portfolio_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        include_housekeeping: bool = False,
        types: set[TransactionType] | None = None,
    ) -> list[LedgerEntry]:
        ledger = PortfolioService.load_ledger(db, user_id)
        return ledger.list_for_portfolio(
            portfolio_id,
            start=start,
            end=end,
            include_housekeeping=include_housekeeping,
            types=types,
        )
