"""Transaction management: validated writes, cash legs and recurring templates.

A Buy, Sell or Dividend that names a different ``target_portfolio_id`` is
settled in cash by that portfolio: a housekeeping Withdraw (for a Buy) or
Deposit (for a Sell or Dividend) is written alongside it in the same
database transaction. Templates get a template cash leg with the same
recurrence, so virtual occurrences stay balanced too.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from itertools import islice

from sqlalchemy.orm import Session

from config import settings
from models import Portfolio, RecurrenceRun, Transaction
from services.asset_service import AssetService
from services.currency_service import CurrencyService
from services.exceptions import OverdraftSell, WalletError
from services.ledger_service import (
    ALL_PORTFOLIO_ID,
    CASH_TYPES,
    ConcreteTransaction,
    RecurringTemplate,
    TransactionType,
    from_row,
)
from services.portfolio_service import PortfolioService
from services.recurrence_service import validate_recurrence
from utils.dates import ensure_utc, to_naive_utc, utc_now
from utils.ticker import CASH_SYMBOL, is_cash_symbol, normalize_symbol

logger = logging.getLogger(__name__)

FUNDED_TYPES = frozenset({TransactionType.BUY, TransactionType.SELL, TransactionType.DIVIDEND})

DEFAULT_SCHEDULE_DAYS = 90
MAX_SCHEDULE_OCCURRENCES = 500
MAX_MATERIALIZE_OCCURRENCES = 1000

# Fields a caller may set on a transaction
EDITABLE_FIELDS = (
    "portfolio_id",
    "target_portfolio_id",
    "date",
    "type",
    "asset_symbol",
    "quantity",
    "price",
    "commission",
    "tax",
    "recurrence",
    "tags",
    "notes",
)


class TransactionService:
    """Service for transaction CRUD and recurring template operations."""

    @staticmethod
    def get_transaction(db: Session, user_id: int, transaction_id: int) -> Transaction | None:
        """Get a transaction owned (through its portfolio) by ``user_id``."""
        return (
            db.query(Transaction)
            .join(Portfolio, Transaction.portfolio_id == Portfolio.id)
            .filter(Transaction.id == transaction_id, Portfolio.user_id == user_id)
            .first()
        )

    @staticmethod
    def list_transactions(
        db: Session,
        user_id: int,
        portfolio_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        types: set[TransactionType] | None = None,
        include_housekeeping: bool = False,
    ) -> list[Transaction]:
        """Stored rows (templates included), ordered by date then id."""
        query = (
            db.query(Transaction)
            .join(Portfolio, Transaction.portfolio_id == Portfolio.id)
            .filter(Portfolio.user_id == user_id)
        )
        if portfolio_id is not None and portfolio_id != ALL_PORTFOLIO_ID:
            query = query.filter(Transaction.portfolio_id == portfolio_id)
        if start is not None:
            query = query.filter(Transaction.date >= to_naive_utc(start))
        if end is not None:
            query = query.filter(Transaction.date <= to_naive_utc(end))
        if types:
            query = query.filter(Transaction.type.in_([t.value for t in types]))
        if not include_housekeeping:
            query = query.filter(Transaction.is_housekeeping.is_(False))
        return query.order_by(Transaction.date, Transaction.id).all()

    # -- writes -----------------------------------------------------------

    @staticmethod
    def validate(db: Session, user_id: int, data: dict) -> dict:
        """Normalize and validate a full transaction payload.

        Nothing is written; every error is raised before any mutation.

        Raises:
            ValueError: On a malformed payload or a foreign portfolio.
            InvalidRecurrence: If ``recurrence`` is set but invalid.
        """
        clean = {key: data.get(key) for key in EDITABLE_FIELDS}

        tx_type = TransactionType(clean["type"])
        clean["type"] = tx_type

        if PortfolioService.get_portfolio(db, user_id, clean["portfolio_id"]) is None:
            raise ValueError(f"Portfolio {clean['portfolio_id']} not found")

        target_id = clean.get("target_portfolio_id")
        if target_id == clean["portfolio_id"]:
            target_id = None
        if tx_type == TransactionType.TRANSFER and target_id is None:
            raise ValueError("A transfer needs a target portfolio different from its source")
        if tx_type in CASH_TYPES and target_id is not None:
            raise ValueError(f"A {tx_type.value} cannot name a target portfolio")
        if target_id is not None and PortfolioService.get_portfolio(db, user_id, target_id) is None:
            raise ValueError(f"Target portfolio {target_id} not found")
        clean["target_portfolio_id"] = target_id

        symbol = (clean.get("asset_symbol") or "").strip()
        if tx_type in CASH_TYPES:
            symbol = CASH_SYMBOL
        elif not symbol:
            raise ValueError(f"A {tx_type.value} needs an asset symbol")
        elif is_cash_symbol(symbol) and tx_type != TransactionType.TRANSFER:
            raise ValueError(f"A {tx_type.value} cannot trade {CASH_SYMBOL}")
        clean["asset_symbol"] = normalize_symbol(symbol)

        for key in ("quantity", "price", "commission", "tax"):
            value = Decimal(str(clean.get(key) or 0))
            if value < 0:
                raise ValueError(f"{key} must not be negative")
            clean[key] = value
        if clean["quantity"] <= 0:
            raise ValueError("quantity must be positive")

        if clean.get("date") is None:
            raise ValueError("date is required")
        clean["date"] = ensure_utc(clean["date"])

        recurrence = (clean.get("recurrence") or "").strip()
        clean["recurrence"] = validate_recurrence(recurrence) if recurrence else None

        clean["tags"] = clean.get("tags") or ""
        clean["notes"] = clean.get("notes") or ""
        return clean

    @staticmethod
    def create_transaction(
        db: Session, user_id: int, data: dict, *, check_overdraft: bool = True, **links
    ) -> Transaction:
        """Validate and store a transaction plus its cash leg, if any.

        Raises:
            ValueError, InvalidRecurrence: On an invalid payload.
            OverdraftSell: If a Sell/Transfer exceeds the quantity held at
                its date (unless short positions are allowed).
            UnknownCurrency: If the cash leg cannot be converted.
        """
        clean = TransactionService.validate(db, user_id, data)
        if check_overdraft:
            TransactionService._check_overdraft(db, user_id, clean)
        factor = TransactionService._cash_leg_factor(db, clean)

        transaction = Transaction(**TransactionService._row_fields(clean), **links)
        db.add(transaction)
        db.flush()
        TransactionService._create_cash_leg(db, transaction, factor)
        logger.info(
            "Transaction created: %s %s %s (id=%s, portfolio=%s)",
            transaction.type, transaction.quantity, transaction.asset_symbol,
            transaction.id, transaction.portfolio_id,
        )
        return transaction

    @staticmethod
    def update_transaction(db: Session, user_id: int, transaction: Transaction, changes: dict) -> Transaction:
        """Apply a partial update; the merged payload is re-validated.

        An existing cash leg is updated in place so that materialized legs
        keep pointing at it.

        Raises:
            ValueError, InvalidRecurrence: On an invalid merged payload.
            OverdraftSell: If the edited Sell/Transfer exceeds what the
                portfolio holds without it.
        """
        if transaction.is_housekeeping:
            raise ValueError("Housekeeping transactions are managed with the trade they settle")

        merged = {key: getattr(transaction, key) for key in EDITABLE_FIELDS}
        merged.update({key: value for key, value in changes.items() if key in EDITABLE_FIELDS})
        clean = TransactionService.validate(db, user_id, merged)
        TransactionService._check_overdraft(db, user_id, clean, exclude_id=transaction.id)
        factor = TransactionService._cash_leg_factor(db, clean)

        for key, value in TransactionService._row_fields(clean).items():
            setattr(transaction, key, value)
        db.flush()
        TransactionService._sync_cash_leg(db, transaction, factor)
        logger.info("Transaction updated: id=%s", transaction.id)
        return transaction

    @staticmethod
    def delete_transaction(db: Session, transaction: Transaction) -> None:
        if transaction.is_housekeeping and transaction.settles_transaction_id is not None:
            raise ValueError("Housekeeping transactions are deleted with the trade they settle")
        TransactionService._delete_cash_legs(db, transaction)
        logger.info("Deleting transaction id=%s", transaction.id)
        db.delete(transaction)
        db.flush()

    @staticmethod
    def duplicate_transaction(
        db: Session, user_id: int, source: Transaction, date: datetime | None = None
    ) -> Transaction:
        """Copy a transaction as a one-off (recurrence cleared)."""
        if source.is_housekeeping:
            raise ValueError("Housekeeping transactions cannot be duplicated")
        data = {key: getattr(source, key) for key in EDITABLE_FIELDS}
        data["recurrence"] = None
        if date is not None:
            data["date"] = date
        return TransactionService.create_transaction(db, user_id, data, duplicate_of_id=source.id)

    # -- recurring templates ----------------------------------------------

    @staticmethod
    def list_recurring(db: Session, user_id: int, portfolio_id: int | None = None) -> list[Transaction]:
        """Templates owned by the user, optionally for one portfolio (-1 = all)."""
        query = (
            db.query(Transaction)
            .join(Portfolio, Transaction.portfolio_id == Portfolio.id)
            .filter(
                Portfolio.user_id == user_id,
                Transaction.recurrence.isnot(None),
                Transaction.recurrence != "",
                Transaction.is_housekeeping.is_(False),
            )
        )
        if portfolio_id is not None and portfolio_id != ALL_PORTFOLIO_ID:
            query = query.filter(Transaction.portfolio_id == portfolio_id)
        return query.order_by(Transaction.date, Transaction.id).all()

    @staticmethod
    def schedule(
        db: Session,
        template_row: Transaction,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = MAX_SCHEDULE_OCCURRENCES,
    ) -> list[ConcreteTransaction]:
        """Upcoming virtual occurrences of a template in ``[start, end]``.

        Occurrences already materialized are left out.
        """
        template = TransactionService._as_template(template_row)
        start = ensure_utc(start) if start is not None else utc_now()
        end = ensure_utc(end) if end is not None else start + timedelta(days=DEFAULT_SCHEDULE_DAYS)
        if start > end:
            raise ValueError("start must be on or before end")

        done = TransactionService._materialized_dates(db, template_row.id)
        occurrences = (when for when in template.occurrences(start, end) if when not in done)
        return [template.occurrence(when) for when in islice(occurrences, limit)]

    @staticmethod
    def next_occurrence(template_row: Transaction, after: datetime | None = None) -> datetime | None:
        template = TransactionService._as_template(template_row)
        start = ensure_utc(after) if after is not None else utc_now()
        return next(iter(template.occurrences(start, start + timedelta(days=366 * 5))), None)

    @staticmethod
    def materialize(
        db: Session, user_id: int, template_row: Transaction, until: datetime | None = None
    ) -> list[RecurrenceRun]:
        """Persist every pending occurrence up to ``until`` (default now).

        Each occurrence becomes a stored row pointing at its template via
        ``recurrence_of_id``, with its own cash leg. Every attempt is
        logged as a RecurrenceRun; an occurrence rejected by validation
        writes nothing and is logged as ``failed``.
        """
        template = TransactionService._as_template(template_row)
        until = ensure_utc(until) if until is not None else utc_now()
        done = TransactionService._materialized_dates(db, template_row.id)
        leg_template = (
            db.query(Transaction)
            .filter(Transaction.settles_transaction_id == template_row.id)
            .first()
        )

        pending = (when for when in template.occurrences(None, until) if when not in done)
        runs = []
        for when in islice(pending, MAX_MATERIALIZE_OCCURRENCES):
            data = {key: getattr(template_row, key) for key in EDITABLE_FIELDS}
            data.update(date=when, recurrence=None)
            try:
                occurrence = TransactionService.create_transaction(
                    db, user_id, data, check_overdraft=False, recurrence_of_id=template_row.id
                )
                if leg_template is not None:
                    for leg in TransactionService._cash_legs(db, occurrence.id):
                        leg.recurrence_of_id = leg_template.id
                run = RecurrenceRun(transaction_id=template_row.id, occurrence=to_naive_utc(when), status="completed")
            except (WalletError, ValueError) as e:
                logger.warning("Materializing template %s at %s failed: %s", template_row.id, when, e)
                run = RecurrenceRun(
                    transaction_id=template_row.id,
                    occurrence=to_naive_utc(when),
                    status="failed",
                    error_message=str(e)[:255],
                )
            db.add(run)
            runs.append(run)

        db.flush()
        logger.info(
            "Materialized template %s: %d completed, %d failed",
            template_row.id,
            sum(1 for r in runs if r.status == "completed"),
            sum(1 for r in runs if r.status == "failed"),
        )
        return runs

    @staticmethod
    def list_runs(db: Session, template_row: Transaction) -> list[RecurrenceRun]:
        return (
            db.query(RecurrenceRun)
            .filter(RecurrenceRun.transaction_id == template_row.id)
            .order_by(RecurrenceRun.occurrence, RecurrenceRun.id)
            .all()
        )

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _as_template(row: Transaction) -> RecurringTemplate:
        item = from_row(row)
        if not isinstance(item, RecurringTemplate):
            raise ValueError(f"Transaction {row.id} is not recurring")
        return item

    @staticmethod
    def _materialized_dates(db: Session, template_id: int) -> set[datetime]:
        rows = db.query(Transaction.date).filter(Transaction.recurrence_of_id == template_id).all()
        return {ensure_utc(row.date) for row in rows}

    @staticmethod
    def _row_fields(clean: dict) -> dict:
        fields = dict(clean)
        fields["type"] = clean["type"].value
        fields["date"] = to_naive_utc(clean["date"])
        return fields

    @staticmethod
    def _check_overdraft(db: Session, user_id: int, clean: dict, exclude_id: int | None = None) -> None:
        if settings.ALLOW_SHORT_POSITIONS or clean["recurrence"]:
            return
        if clean["type"] not in (TransactionType.SELL, TransactionType.TRANSFER):
            return
        if is_cash_symbol(clean["asset_symbol"]):
            return
        held = PortfolioService.held_quantity(
            db, user_id, clean["portfolio_id"], clean["asset_symbol"], clean["date"], exclude_id=exclude_id
        )
        if clean["quantity"] > held:
            raise OverdraftSell(
                clean["asset_symbol"],
                clean["quantity"],
                held,
                portfolio_id=clean["portfolio_id"],
                date=clean["date"],
            )

    @staticmethod
    def _cash_legs(db: Session, transaction_id: int) -> list[Transaction]:
        return db.query(Transaction).filter(Transaction.settles_transaction_id == transaction_id).all()

    @staticmethod
    def _delete_cash_legs(db: Session, transaction: Transaction) -> None:
        for leg in TransactionService._cash_legs(db, transaction.id):
            db.delete(leg)

    @staticmethod
    def _cash_leg_factor(db: Session, clean: dict) -> Decimal:
        """Rate from the asset's currency into the settling portfolio's currency."""
        if clean["type"] not in FUNDED_TYPES or clean["target_portfolio_id"] is None:
            return Decimal("1")
        asset = AssetService.get_asset(db, clean["asset_symbol"])
        if asset is None or not asset.currency:
            return Decimal("1")
        target = db.get(Portfolio, clean["target_portfolio_id"])
        table = CurrencyService.build_table(db)
        return table.convert_code(Decimal("1"), asset.currency, table.get(target.currency_id).code)

    @staticmethod
    def _cash_leg_fields(transaction: Transaction, factor: Decimal) -> dict | None:
        tx_type = TransactionType(transaction.type)
        if tx_type not in FUNDED_TYPES or transaction.target_portfolio_id is None:
            return None
        return {
            "portfolio_id": transaction.target_portfolio_id,
            "date": transaction.date,
            "type": (TransactionType.WITHDRAW if tx_type == TransactionType.BUY else TransactionType.DEPOSIT).value,
            "asset_symbol": CASH_SYMBOL,
            "quantity": transaction.quantity,
            "price": Decimal(str(transaction.price)) * factor,
            "commission": Decimal(str(transaction.commission)) * factor,
            "tax": Decimal(str(transaction.tax)) * factor,
            "recurrence": transaction.recurrence,
            "notes": f"Cash settlement for {tx_type.value} of {transaction.asset_symbol}",
        }

    @staticmethod
    def _create_cash_leg(db: Session, transaction: Transaction, factor: Decimal) -> Transaction | None:
        """Write the housekeeping cash leg for a cross-portfolio funded trade."""
        fields = TransactionService._cash_leg_fields(transaction, factor)
        if fields is None:
            return None
        leg = Transaction(**fields, is_housekeeping=True, settles_transaction_id=transaction.id)
        db.add(leg)
        db.flush()
        return leg

    @staticmethod
    def _sync_cash_leg(db: Session, transaction: Transaction, factor: Decimal) -> Transaction | None:
        """Bring the cash leg in line with an edited trade, keeping its id."""
        fields = TransactionService._cash_leg_fields(transaction, factor)
        legs = TransactionService._cash_legs(db, transaction.id)
        if fields is None:
            for leg in legs:
                db.delete(leg)
            db.flush()
            return None
        if not legs:
            return TransactionService._create_cash_leg(db, transaction, factor)

        leg, extra = legs[0], legs[1:]
        for key, value in fields.items():
            setattr(leg, key, value)
        for stale in extra:
            db.delete(stale)
        db.flush()
        return leg
