"""Pydantic schemas for assets and quote provider results."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class AssetResponse(BaseModel):
    """Schema for Asset API response (quotes omitted)."""

    id: int
    symbol: str
    currency: str
    exchange_name: str | None = None
    full_exchange_name: str | None = None
    instrument_type: str | None = None
    timezone: str | None = None
    exchange_timezone_name: str | None = None
    long_name: str | None = None
    short_name: str | None = None
    is_from_api: bool
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class AssetDetailResponse(AssetResponse):
    """Asset with its cached quotes and corporate events."""

    quotes: list[dict] = []
    events: dict = {}


class QuoteInput(BaseModel):
    """One hand-entered quote for a manual asset."""

    date: str
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float
    adjclose: float | None = None
    volume: int | None = None


class ManualAssetCreate(BaseModel):
    """Schema for creating a manually maintained asset."""

    symbol: str = Field(min_length=1, max_length=20)
    currency: str = Field(min_length=3, max_length=3)
    long_name: str | None = None
    instrument_type: str | None = None
    quotes: list[QuoteInput] = []


class SymbolMatchResponse(BaseModel):
    symbol: str
    name: str | None = None
    exchange: str | None = None
    instrument_type: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PricePointResponse(BaseModel):
    date: datetime
    open: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None
    close: Decimal | None = None
    adjclose: Decimal | None = None
    volume: int | None = None

    model_config = ConfigDict(from_attributes=True)


class HistoryResponse(BaseModel):
    symbol: str
    interval: str
    currency: str | None = None
    points: list[PricePointResponse]


class RefreshAllResponse(BaseModel):
    refreshed: list[str]
    failed: list[str]
    skipped: list[str] = []
