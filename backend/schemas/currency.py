"""Pydantic schemas for currencies and conversion."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CurrencyResponse(BaseModel):
    """Schema for Currency API response."""

    id: int
    code: str
    name: str
    symbol: str
    exchange_rate: Decimal
    is_default: bool
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CurrencyCreate(BaseModel):
    code: str = Field(min_length=3, max_length=3)
    name: str
    symbol: str = ""
    exchange_rate: Decimal = Field(gt=0)


class SetDefaultCurrencyRequest(BaseModel):
    """Schema for choosing the reporting currency."""

    currency_id: int


class UpdateRatesRequest(BaseModel):
    """Exchange rates keyed by currency code, relative to the reference currency."""

    rates: dict[str, Decimal]


class RefreshRatesResponse(BaseModel):
    updated: list[str]
    failed: list[str]


class ConversionResponse(BaseModel):
    amount: Decimal
    from_currency: str
    to_currency: str
    converted: Decimal
