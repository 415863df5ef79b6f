"""Pydantic schemas for transactions, recurring templates and ledger views."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from services.ledger_service import TransactionType


class TransactionCreate(BaseModel):
    """Schema for creating a transaction (or a recurring template)."""

    portfolio_id: int
    target_portfolio_id: int | None = None
    date: datetime
    type: TransactionType
    asset_symbol: str = ""
    quantity: Decimal = Field(gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    commission: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    recurrence: str | None = None
    tags: str = ""
    notes: str = ""


class TransactionUpdate(BaseModel):
    """Schema for updating a transaction; omitted fields are unchanged."""

    portfolio_id: int | None = None
    target_portfolio_id: int | None = None
    date: datetime | None = None
    type: TransactionType | None = None
    asset_symbol: str | None = None
    quantity: Decimal | None = Field(default=None, gt=0)
    price: Decimal | None = Field(default=None, ge=0)
    commission: Decimal | None = Field(default=None, ge=0)
    tax: Decimal | None = Field(default=None, ge=0)
    recurrence: str | None = None
    tags: str | None = None
    notes: str | None = None


class TransactionResponse(BaseModel):
    """Schema for a stored Transaction."""

    id: int
    portfolio_id: int
    target_portfolio_id: int | None = None
    date: datetime
    type: str
    asset_symbol: str
    quantity: Decimal
    price: Decimal
    commission: Decimal
    tax: Decimal
    recurrence: str | None = None
    tags: str = ""
    notes: str = ""
    is_housekeeping: bool = False
    duplicate_of_id: int | None = None
    recurrence_of_id: int | None = None
    settles_transaction_id: int | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DuplicateRequest(BaseModel):
    date: datetime | None = None


class RecurringTemplateResponse(TransactionResponse):
    """A template with its human-readable recurrence and next occurrence."""

    description: str
    next_occurrence: datetime | None = None


class OccurrenceResponse(BaseModel):
    """A virtual (not yet stored) occurrence of a template."""

    template_id: int | None
    portfolio_id: int
    target_portfolio_id: int | None = None
    date: datetime
    type: TransactionType
    asset_symbol: str
    quantity: Decimal
    price: Decimal
    commission: Decimal
    tax: Decimal

    model_config = ConfigDict(from_attributes=True)


class RecurrenceRunResponse(BaseModel):
    id: int
    transaction_id: int
    occurrence: datetime
    status: str
    error_message: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RecurrenceBuildRequest(BaseModel):
    """Recurrence picker settings to turn into a cron expression."""

    period: str
    hour: int = 9
    minute: int = 0
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)


class RecurrenceDescription(BaseModel):
    cron: str
    description: str


class LedgerEntryResponse(BaseModel):
    """A transaction as seen from one portfolio (virtual occurrences have no id)."""

    id: int | None = None
    template_id: int | None = None
    portfolio_id: int
    target_portfolio_id: int | None = None
    date: datetime
    type: TransactionType
    asset_symbol: str
    quantity: Decimal
    signed_quantity: Decimal
    direction: str
    price: Decimal
    commission: Decimal
    tax: Decimal
    is_housekeeping: bool
    is_virtual: bool
    tags: str = ""
    notes: str = ""
