"""Transaction ledger: stored transactions merged with recurring occurrences.

Stored rows are split into two distinct types before anything else sees
them. ``ConcreteTransaction`` is a dated event that may be summed into
holdings; ``RecurringTemplate`` only produces ``ConcreteTransaction``
occurrences through its recurrence and is never summed itself.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from models import Transaction
from services.recurrence_service import expand
from utils.dates import ensure_utc, utc_now

logger = logging.getLogger(__name__)

ALL_PORTFOLIO_ID = -1

ZERO = Decimal("0")


class TransactionType(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    TRANSFER = "Transfer"


CASH_TYPES = frozenset({TransactionType.DEPOSIT, TransactionType.WITHDRAW})
ASSET_TYPES = frozenset({
    TransactionType.BUY,
    TransactionType.SELL,
    TransactionType.DIVIDEND,
    TransactionType.TRANSFER,
})


@dataclass(frozen=True)
class ConcreteTransaction:
    """A dated transaction that contributes to holdings.

    ``id`` is None for virtual occurrences; ``template_id`` links a virtual
    or materialized occurrence back to its template.
    """

    portfolio_id: int
    type: TransactionType
    asset_symbol: str
    date: datetime
    quantity: Decimal
    price: Decimal = ZERO
    commission: Decimal = ZERO
    tax: Decimal = ZERO
    id: int | None = None
    target_portfolio_id: int | None = None
    is_housekeeping: bool = False
    template_id: int | None = None
    tags: str = ""
    notes: str = ""

    @property
    def is_virtual(self) -> bool:
        return self.id is None

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER and self.target_portfolio_id is not None

    @property
    def gross_amount(self) -> Decimal:
        return self.quantity * self.price

    @property
    def fees(self) -> Decimal:
        return self.commission + self.tax


@dataclass(frozen=True)
class RecurringTemplate:
    """A recurring transaction definition anchored at ``date``."""

    id: int
    portfolio_id: int
    type: TransactionType
    asset_symbol: str
    date: datetime
    recurrence: str
    quantity: Decimal
    price: Decimal = ZERO
    commission: Decimal = ZERO
    tax: Decimal = ZERO
    target_portfolio_id: int | None = None
    is_housekeeping: bool = False
    tags: str = ""
    notes: str = ""

    def occurrences(self, start: datetime | None, end: datetime) -> Iterable[datetime]:
        """Occurrence timestamps in ``[max(start, anchor), end]``."""
        window_start = self.date if start is None else max(ensure_utc(start), self.date)
        window_end = ensure_utc(end)
        if window_start > window_end:
            return iter(())
        return expand(self.recurrence, window_start, window_end)

    def occurrence(self, when: datetime) -> ConcreteTransaction:
        """Copy of the template dated ``when``, without its recurrence."""
        return ConcreteTransaction(
            id=None,
            template_id=self.id,
            portfolio_id=self.portfolio_id,
            type=self.type,
            asset_symbol=self.asset_symbol,
            date=ensure_utc(when),
            quantity=self.quantity,
            price=self.price,
            commission=self.commission,
            tax=self.tax,
            target_portfolio_id=self.target_portfolio_id,
            is_housekeeping=self.is_housekeeping,
            tags=self.tags,
            notes=self.notes,
        )


def from_row(row: Transaction) -> ConcreteTransaction | RecurringTemplate:
    """Convert a stored row into its ledger type."""
    common = dict(
        portfolio_id=row.portfolio_id,
        type=TransactionType(row.type),
        asset_symbol=row.asset_symbol,
        date=ensure_utc(row.date),
        quantity=Decimal(str(row.quantity)),
        price=Decimal(str(row.price or 0)),
        commission=Decimal(str(row.commission or 0)),
        tax=Decimal(str(row.tax or 0)),
        target_portfolio_id=row.target_portfolio_id,
        is_housekeeping=bool(row.is_housekeeping),
        tags=row.tags or "",
        notes=row.notes or "",
    )
    if row.is_template:
        return RecurringTemplate(id=row.id, recurrence=row.recurrence.strip(), **common)
    return ConcreteTransaction(id=row.id, template_id=row.recurrence_of_id, **common)


@dataclass(frozen=True)
class LedgerEntry:
    """A transaction as seen from one portfolio's point of view.

    ``signed_quantity`` is the effect on the viewed portfolio's position in
    ``asset_symbol`` (cash for Deposit/Withdraw): positive for inflows,
    negative for outflows, zero for dividends and for transfers seen from
    the "All" portfolio.
    """

    portfolio_id: int
    transaction: ConcreteTransaction
    signed_quantity: Decimal

    @property
    def direction(self) -> str:
        if self.signed_quantity > 0:
            return "in"
        if self.signed_quantity < 0:
            return "out"
        return "none"

    @property
    def is_virtual(self) -> bool:
        return self.transaction.is_virtual


def _sort_key(tx: ConcreteTransaction) -> tuple:
    # Stored rows before virtual occurrences at the same instant
    if tx.is_virtual:
        return (tx.date, 1, tx.template_id or 0)
    return (tx.date, 0, tx.id)


class TransactionLedger:
    """Ordered view over stored transactions and recurring occurrences.

    Args:
        transactions: Stored concrete transactions.
        templates: Recurring templates to expand.
        as_of: Upper bound for expanding templates when no end is given
            (defaults to now).
    """

    def __init__(
        self,
        transactions: Iterable[ConcreteTransaction] = (),
        templates: Iterable[RecurringTemplate] = (),
        as_of: datetime | None = None,
    ):
        self.transactions = sorted(transactions, key=_sort_key)
        self.templates = sorted(templates, key=lambda t: t.id)
        self.as_of = ensure_utc(as_of) if as_of is not None else None
        self._materialized = {
            (tx.template_id, tx.date) for tx in self.transactions if tx.template_id is not None
        }

    @classmethod
    def from_rows(cls, rows: Iterable[Transaction], as_of: datetime | None = None) -> "TransactionLedger":
        transactions: list[ConcreteTransaction] = []
        templates: list[RecurringTemplate] = []
        for row in rows:
            item = from_row(row)
            if isinstance(item, RecurringTemplate):
                templates.append(item)
            else:
                transactions.append(item)
        return cls(transactions, templates, as_of=as_of)

    def virtual_occurrences(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        templates: Iterable[RecurringTemplate] | None = None,
    ) -> list[ConcreteTransaction]:
        """Expand templates over ``[start, end]``, skipping materialized ones."""
        window_end = ensure_utc(end) if end is not None else (self.as_of or utc_now())
        occurrences = []
        for template in self.templates if templates is None else templates:
            for when in template.occurrences(start, window_end):
                if (template.id, when) in self._materialized:
                    continue
                occurrences.append(template.occurrence(when))
        return occurrences

    def concrete_transactions(
        self, end: datetime | None = None, include_housekeeping: bool = True
    ) -> list[ConcreteTransaction]:
        """Every stored and virtual transaction up to ``end``, in ledger order."""
        window_end = ensure_utc(end) if end is not None else (self.as_of or utc_now())
        merged = [tx for tx in self.transactions if tx.date <= window_end]
        merged.extend(self.virtual_occurrences(None, window_end))
        if not include_housekeeping:
            merged = [tx for tx in merged if not tx.is_housekeeping]
        return sorted(merged, key=_sort_key)

    def list_for_portfolio(
        self,
        portfolio_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        include_housekeeping: bool = False,
        types: set[TransactionType] | None = None,
    ) -> list[LedgerEntry]:
        """Entries touching ``portfolio_id`` (or every portfolio for "All").

        A transfer is listed as an outflow in its source portfolio and as an
        inflow in its target; in "All" it appears once with no net effect.
        """
        start = ensure_utc(start) if start is not None else None
        window_end = ensure_utc(end) if end is not None else (self.as_of or utc_now())
        is_all = portfolio_id == ALL_PORTFOLIO_ID

        def touches(tx) -> bool:
            if is_all:
                return True
            return tx.portfolio_id == portfolio_id or (
                tx.type == TransactionType.TRANSFER and tx.target_portfolio_id == portfolio_id
            )

        stored = [
            tx for tx in self.transactions
            if touches(tx) and tx.date <= window_end and (start is None or tx.date >= start)
        ]
        virtual = self.virtual_occurrences(
            start, window_end, templates=[t for t in self.templates if touches(t)]
        )

        entries = []
        for tx in sorted(stored + virtual, key=_sort_key):
            if tx.is_housekeeping and not include_housekeeping:
                continue
            if types is not None and tx.type not in types:
                continue
            entries.append(LedgerEntry(
                portfolio_id=portfolio_id,
                transaction=tx,
                signed_quantity=self._signed_quantity(tx, portfolio_id),
            ))
        return entries

    @staticmethod
    def _signed_quantity(tx: ConcreteTransaction, portfolio_id: int) -> Decimal:
        if tx.type == TransactionType.TRANSFER:
            if portfolio_id == ALL_PORTFOLIO_ID and tx.target_portfolio_id is not None:
                return ZERO
            if tx.portfolio_id == portfolio_id or portfolio_id == ALL_PORTFOLIO_ID:
                return -tx.quantity
            return tx.quantity
        if tx.type in (TransactionType.BUY, TransactionType.DEPOSIT):
            return tx.quantity
        if tx.type in (TransactionType.SELL, TransactionType.WITHDRAW):
            return -tx.quantity
        return ZERO
