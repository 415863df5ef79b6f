"""Export of a user's portfolios, transactions and institutions."""

import csv
import io
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from models import Institution, Portfolio, Transaction
from services.portfolio_service import PortfolioService
from utils.dates import ensure_utc

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "wallet-data.json"
CSV_FILENAME = "transactions.csv"

CSV_HEADERS = (
    "Date",
    "Portfolio",
    "Institution",
    "Type",
    "Asset",
    "Quantity",
    "Price",
    "Total",
    "Commission",
    "Tax",
    "Currency",
    "Tags",
    "Recurrence",
    "Notes",
)


def _number(value) -> str:
    return f"{Decimal(str(value)).normalize():f}"


class ExportService:
    """Collects the rows that make up a user's data export."""

    @staticmethod
    def collect(db: Session, user_id: int) -> dict[str, list]:
        """Return ``{portfolios, transactions, institutions}`` for ``user_id``.

        Only real portfolios are exported (never "All"), and only the
        institutions those portfolios reference.
        """
        portfolios: list[Portfolio] = PortfolioService.list_portfolios(db, user_id)
        portfolio_ids = [p.id for p in portfolios]

        transactions: list[Transaction] = []
        if portfolio_ids:
            transactions = (
                db.query(Transaction)
                .filter(Transaction.portfolio_id.in_(portfolio_ids))
                .order_by(Transaction.date, Transaction.id)
                .all()
            )

        institution_ids = {p.institution_id for p in portfolios if p.institution_id is not None}
        institutions: list[Institution] = []
        if institution_ids:
            institutions = (
                db.query(Institution)
                .filter(Institution.id.in_(institution_ids))
                .order_by(Institution.id)
                .all()
            )

        logger.info(
            "Export for user %s: %d portfolios, %d transactions, %d institutions",
            user_id, len(portfolios), len(transactions), len(institutions),
        )
        return {
            "portfolios": portfolios,
            "transactions": transactions,
            "institutions": institutions,
        }

    @staticmethod
    def transactions_csv(db: Session, user_id: int, portfolio_id: int | None = None) -> str:
        """Render the user's transactions as CSV, oldest first.

        Amounts are in the owning portfolio's currency. Housekeeping cash
        legs are left out; a one-off shows ``One-time`` as its recurrence.

        Raises:
            ValueError: If ``portfolio_id`` is not one of the user's portfolios.
        """
        portfolios = {p.id: p for p in PortfolioService.list_portfolios(db, user_id)}
        if portfolio_id is not None and portfolio_id not in portfolios:
            raise ValueError(f"Portfolio {portfolio_id} not found")
        ids = [portfolio_id] if portfolio_id is not None else list(portfolios)

        transactions: list[Transaction] = []
        if ids:
            transactions = (
                db.query(Transaction)
                .filter(Transaction.portfolio_id.in_(ids), Transaction.is_housekeeping.is_(False))
                .order_by(Transaction.date, Transaction.id)
                .all()
            )

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for tx in transactions:
            portfolio = portfolios[tx.portfolio_id]
            quantity = Decimal(str(tx.quantity))
            price = Decimal(str(tx.price))
            writer.writerow([
                ensure_utc(tx.date).date().isoformat(),
                portfolio.name,
                portfolio.institution.name if portfolio.institution else "",
                tx.type,
                tx.asset_symbol,
                _number(quantity),
                _number(price),
                _number(quantity * price),
                _number(tx.commission),
                _number(tx.tax),
                portfolio.currency.code,
                tx.tags or "",
                tx.recurrence or "One-time",
                tx.notes or "",
            ])
        logger.info("CSV export for user %s: %d transactions", user_id, len(transactions))
        return buffer.getvalue()
