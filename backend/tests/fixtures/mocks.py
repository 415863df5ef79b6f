"""Mock implementations for external services."""

from datetime import date, datetime, timezone
from decimal import Decimal

from integrations.exceptions import ProviderConnectionError, ProviderDataError
from integrations.market_data_protocol import (
    AssetMetadata,
    DividendEvent,
    HistoricalSeries,
    PricePoint,
    QuoteSnapshot,
    SplitEvent,
    SymbolMatch,
)
from utils.dates import ensure_utc


def make_series(
    symbol: str,
    closes: list[tuple[date, str]],
    currency: str = "USD",
    dividends: list[tuple[date, str]] | None = None,
    splits: list[tuple[date, int, int]] | None = None,
    interval: str = "1d",
) -> HistoricalSeries:
    """Build a daily HistoricalSeries from ``(date, close)`` pairs."""

    def at_midnight(day: date) -> datetime:
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

    return HistoricalSeries(
        symbol=symbol,
        interval=interval,
        metadata=AssetMetadata(
            currency=currency,
            exchange_name="NMS",
            full_exchange_name="NasdaqGS",
            instrument_type="EQUITY",
            timezone="EST",
            exchange_timezone_name="America/New_York",
            long_name=f"{symbol} Inc.",
            short_name=symbol,
        ),
        points=[
            PricePoint(
                date=at_midnight(day),
                open=Decimal(close),
                high=Decimal(close),
                low=Decimal(close),
                close=Decimal(close),
                adjclose=Decimal(close),
                volume=1000,
            )
            for day, close in closes
        ],
        dividends=[DividendEvent(at_midnight(day), Decimal(amount)) for day, amount in dividends or []],
        splits=[SplitEvent(at_midnight(day), num, den) for day, num, den in splits or []],
    )


class MockQuoteProvider:
    """Mock quote provider for testing.

    Serves canned series, snapshots and search matches; every call is
    recorded in ``calls`` as ``(method, symbol)``.
    """

    def __init__(
        self,
        series: dict[str, HistoricalSeries] | None = None,
        quotes: dict[str, Decimal] | None = None,
        matches: list[SymbolMatch] | None = None,
        should_fail: bool = False,
        failure_message: str = "Mock provider error",
    ):
        self._series = series or {}
        self._quotes = quotes or {}
        self._matches = matches or []
        self._should_fail = should_fail
        self._failure_message = failure_message
        self.calls: list[tuple[str, str]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    def search(self, query: str) -> list[SymbolMatch]:
        self.calls.append(("search", query))
        self._maybe_fail()
        needle = query.lower()
        return [
            m for m in self._matches
            if needle in m.symbol.lower() or needle in (m.name or "").lower()
        ]

    def quote(self, symbol: str) -> QuoteSnapshot:
        self.calls.append(("quote", symbol))
        self._maybe_fail()
        if symbol not in self._quotes:
            raise ProviderDataError(f"No quote for {symbol}", provider_name="mock")
        return QuoteSnapshot(symbol=symbol, price=self._quotes[symbol], currency="USD")

    def historical_series(
        self, symbol: str, start: datetime, end: datetime, interval: str
    ) -> HistoricalSeries:
        self.calls.append(("historical_series", symbol))
        self._maybe_fail()
        if symbol not in self._series:
            raise ProviderDataError(f"No data found for {symbol}", provider_name="mock")
        series = self._series[symbol]
        start = ensure_utc(start)
        end = ensure_utc(end)
        return HistoricalSeries(
            symbol=series.symbol,
            interval=interval,
            metadata=series.metadata,
            points=[p for p in series.points if start <= p.date <= end],
            dividends=[d for d in series.dividends if start <= d.date <= end],
            splits=[s for s in series.splits if start <= s.date <= end],
        )

    def _maybe_fail(self) -> None:
        if self._should_fail:
            raise ProviderConnectionError(self._failure_message, provider_name="mock")
