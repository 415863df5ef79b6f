"""Quote provider protocol definitions.

Defines the interface the asset/quote cache uses to reach an external
market-data source: symbol search, a latest quote snapshot, and a historical
price series with its corporate events.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from utils.dates import to_epoch_ms

VALID_INTERVALS = (
    "1m", "2m", "5m", "15m", "30m", "60m", "90m", "1h", "1d", "5d", "1wk", "1mo", "3mo",
)

INTRADAY_INTERVALS = frozenset({"1m", "2m", "5m", "15m", "30m", "60m", "90m", "1h"})


@dataclass
class SymbolMatch:
    """A candidate symbol returned by a search."""

    symbol: str
    name: str | None = None
    exchange: str | None = None
    instrument_type: str | None = None


@dataclass
class AssetMetadata:
    """Descriptive fields of an instrument as reported by the provider."""

    currency: str | None = None
    exchange_name: str | None = None
    full_exchange_name: str | None = None
    instrument_type: str | None = None
    timezone: str | None = None
    exchange_timezone_name: str | None = None
    long_name: str | None = None
    short_name: str | None = None


@dataclass
class QuoteSnapshot:
    """Latest price for a symbol."""

    symbol: str
    price: Decimal
    currency: str | None = None
    as_of: datetime | None = None


@dataclass
class PricePoint:
    """One OHLCV bar of a historical series."""

    date: datetime
    open: Decimal | None
    high: Decimal | None
    low: Decimal | None
    close: Decimal | None
    adjclose: Decimal | None = None
    volume: int | None = None

    def to_quote(self, intraday: bool = False) -> dict:
        """Serialize to the stored quote shape (ISO-8601 date, float prices)."""
        if intraday:
            date_text = self.date.strftime("%Y-%m-%dT%H:%M:%S.000Z")
        else:
            date_text = self.date.date().isoformat()
        return {
            "date": date_text,
            "open": _as_float(self.open),
            "high": _as_float(self.high),
            "low": _as_float(self.low),
            "close": _as_float(self.close),
            "adjclose": _as_float(self.adjclose),
            "volume": self.volume,
        }


@dataclass
class DividendEvent:
    date: datetime
    amount: Decimal

    def to_event(self) -> dict:
        return {"date": to_epoch_ms(self.date), "amount": float(self.amount)}


@dataclass
class SplitEvent:
    """A stock split; holders receive ``numerator`` shares per ``denominator`` held."""

    date: datetime
    numerator: int
    denominator: int

    def to_event(self) -> dict:
        return {
            "date": to_epoch_ms(self.date),
            "numerator": self.numerator,
            "denominator": self.denominator,
            "splitRatio": f"{self.numerator}:{self.denominator}",
        }


@dataclass
class HistoricalSeries:
    """A price series plus the corporate events inside its window."""

    symbol: str
    interval: str
    metadata: AssetMetadata = field(default_factory=AssetMetadata)
    points: list[PricePoint] = field(default_factory=list)
    dividends: list[DividendEvent] = field(default_factory=list)
    splits: list[SplitEvent] = field(default_factory=list)


class QuoteProvider(Protocol):
    """Protocol for quote providers.

    Implementations raise ``ProviderError`` subclasses on failure; the
    MarketDataService turns those into ``QuoteUnavailable``.
    """

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'yahoo')."""
        ...

    def search(self, query: str) -> list[SymbolMatch]:
        """Return candidate symbols matching a free-text query."""
        ...

    def quote(self, symbol: str) -> QuoteSnapshot:
        """Return the latest price snapshot for a symbol."""
        ...

    def historical_series(
        self, symbol: str, start: datetime, end: datetime, interval: str
    ) -> HistoricalSeries:
        """Return ordered price points (and events) for ``[start, end]``.

        Args:
            symbol: Ticker symbol.
            start: Window start (inclusive).
            end: Window end (inclusive).
            interval: One of VALID_INTERVALS.
        """
        ...


def _as_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)
