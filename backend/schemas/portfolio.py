"""Pydantic schemas for portfolios, institutions and holdings reports."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class InstitutionCreate(BaseModel):
    """Schema for creating an Institution."""

    name: str = Field(min_length=1)
    website: str | None = None
    api_url: str | None = None
    is_default: bool = False


class InstitutionResponse(BaseModel):
    """Schema for Institution API response."""

    id: int
    name: str
    is_default: bool
    website: str | None = None
    api_url: str | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PortfolioCreate(BaseModel):
    """Schema for creating a Portfolio."""

    name: str
    currency_id: int
    institution_id: int | None = None
    type: str = "Investment"
    symbol: str | None = None
    tags: str = ""
    cash_balance: Decimal = Decimal("0")


class PortfolioUpdate(BaseModel):
    """Schema for updating a Portfolio."""

    name: str | None = None
    currency_id: int | None = None
    institution_id: int | None = None
    type: str | None = None
    symbol: str | None = None
    tags: str | None = None
    cash_balance: Decimal | None = None


class PortfolioResponse(BaseModel):
    """Schema for Portfolio API response.

    The virtual "All" portfolio is returned with id -1 and ``is_virtual``.
    """

    id: int
    name: str
    currency_id: int
    currency_code: str | None = None
    institution_id: int | None = None
    type: str | None = None
    symbol: str | None = None
    tags: str = ""
    cash_balance: Decimal = Decimal("0")
    created_at: datetime | None = None
    is_virtual: bool = False
    selected: bool = False

    model_config = ConfigDict(from_attributes=True)


class HoldingResponse(BaseModel):
    """A single position of a holdings report."""

    symbol: str
    quantity: Decimal
    average_cost: Decimal
    cost_basis: Decimal
    price: Decimal | None = None
    current_value: Decimal | None = None
    unrealized_gain_loss: Decimal | None = None
    realized_gain_loss: Decimal
    dividend_income: Decimal
    fees: Decimal
    value_error: str | None = None

    model_config = ConfigDict(from_attributes=True)


class HoldingsReportResponse(BaseModel):
    """Holdings and totals for one portfolio, in its reporting currency."""

    portfolio_id: int
    currency_id: int
    currency_code: str
    as_of: datetime | None = None
    holdings: list[HoldingResponse]
    cash_balance: Decimal
    holdings_value: Decimal
    total_value: Decimal
    has_unknown_values: bool
    realized_gain_loss: Decimal
    dividend_income: Decimal
    fees: Decimal
    errors: list[dict] = []
