"""Yahoo Finance quote provider implementation."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from fractions import Fraction

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from config import settings
from integrations.exceptions import ProviderAPIError, ProviderConnectionError, ProviderDataError, ProviderError
from integrations.market_data_protocol import (
    INTRADAY_INTERVALS,
    AssetMetadata,
    DividendEvent,
    HistoricalSeries,
    PricePoint,
    QuoteSnapshot,
    SplitEvent,
    SymbolMatch,
)
from utils.dates import ensure_utc, start_of_day

logger = logging.getLogger(__name__)

PROVIDER_NAME = "yahoo"


class YahooFinanceClient:
    """Quote provider backed by the yfinance library.

    Every network call carries ``timeout``; yfinance failures and empty
    responses are raised as ProviderError subclasses.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.QUOTE_TIMEOUT_SECONDS

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    def search(self, query: str, max_results: int = 10) -> list[SymbolMatch]:
        """Search Yahoo Finance for symbols matching ``query``."""
        try:
            result = yf.Search(query, max_results=max_results, news_count=0, timeout=self.timeout)
            quotes = result.quotes or []
        except Exception as e:
            raise _request_error(f"Search failed for {query!r}", e) from e

        matches = []
        for item in quotes:
            symbol = item.get("symbol")
            if not symbol:
                continue
            matches.append(
                SymbolMatch(
                    symbol=symbol,
                    name=item.get("longname") or item.get("shortname"),
                    exchange=item.get("exchDisp") or item.get("exchange"),
                    instrument_type=item.get("quoteType"),
                )
            )
        logger.debug("Yahoo Finance: %d matches for %r", len(matches), query)
        return matches

    def quote(self, symbol: str) -> QuoteSnapshot:
        """Latest close from the last five trading days."""
        ticker = yf.Ticker(symbol)
        df = self._history(ticker, symbol, period="5d", interval="1d")
        closes = df["Close"].dropna() if "Close" in df.columns else pd.Series(dtype=float)
        if closes.empty:
            raise ProviderDataError(f"No recent close for {symbol}", PROVIDER_NAME)

        metadata = self._metadata(ticker)
        return QuoteSnapshot(
            symbol=symbol,
            price=_decimal(closes.iloc[-1]),
            currency=metadata.currency,
            as_of=ensure_utc(closes.index[-1].to_pydatetime()),
        )

    def historical_series(
        self, symbol: str, start: datetime, end: datetime, interval: str = "1d"
    ) -> HistoricalSeries:
        """Fetch OHLCV bars, dividends and splits for ``[start, end]``."""
        logger.info(
            "Yahoo Finance: fetching %s %s bars (%s to %s)",
            symbol, interval, start.date(), end.date(),
        )
        ticker = yf.Ticker(symbol)
        # yfinance end is exclusive, so add one day
        df = self._history(
            ticker,
            symbol,
            start=start.date().isoformat(),
            end=(end + timedelta(days=1)).date().isoformat(),
            interval=interval,
        )

        intraday = interval in INTRADAY_INTERVALS
        start_utc, end_utc = ensure_utc(start), ensure_utc(end)
        series = HistoricalSeries(symbol=symbol, interval=interval, metadata=self._metadata(ticker))

        for ts, row in df.iterrows():
            when = ensure_utc(ts.to_pydatetime()) if intraday else start_of_day(ts.date())
            if intraday and not start_utc <= when <= end_utc:
                continue

            close = _optional_decimal(row.get("Close"))
            if close is not None:
                series.points.append(
                    PricePoint(
                        date=when,
                        open=_optional_decimal(row.get("Open")),
                        high=_optional_decimal(row.get("High")),
                        low=_optional_decimal(row.get("Low")),
                        close=close,
                        adjclose=_optional_decimal(row.get("Adj Close")),
                        volume=None if pd.isna(row.get("Volume")) else int(row.get("Volume")),
                    )
                )

            dividend = row.get("Dividends")
            if dividend is not None and not pd.isna(dividend) and dividend > 0:
                series.dividends.append(DividendEvent(date=when, amount=_decimal(dividend)))

            split = row.get("Stock Splits")
            if split is not None and not pd.isna(split) and split > 0:
                ratio = Fraction(float(split)).limit_denominator(1000)
                series.splits.append(
                    SplitEvent(date=when, numerator=ratio.numerator, denominator=ratio.denominator)
                )

        return series

    def _history(self, ticker, symbol: str, **kwargs) -> pd.DataFrame:
        try:
            df = ticker.history(auto_adjust=False, actions=True, timeout=self.timeout, **kwargs)
        except Exception as e:
            raise _request_error(f"History request failed for {symbol}", e) from e
        if df is None or df.empty:
            raise ProviderDataError(f"No price data for {symbol}", PROVIDER_NAME)
        return df

    @staticmethod
    def _metadata(ticker) -> AssetMetadata:
        try:
            meta = ticker.history_metadata or {}
        except Exception:
            logger.debug("history_metadata unavailable", exc_info=True)
            meta = {}
        return AssetMetadata(
            currency=meta.get("currency"),
            exchange_name=meta.get("exchangeName"),
            full_exchange_name=meta.get("fullExchangeName"),
            instrument_type=meta.get("instrumentType"),
            timezone=meta.get("timezone"),
            exchange_timezone_name=meta.get("exchangeTimezoneName"),
            long_name=meta.get("longName"),
            short_name=meta.get("shortName"),
        )


def _request_error(message: str, error: Exception) -> ProviderError:
    """Map a yfinance failure to an API error when it carries an HTTP status."""
    if isinstance(error, YFRateLimitError):
        status = 429
    else:
        status = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(status, int):
        return ProviderAPIError(f"{message} (HTTP {status}): {error}", PROVIDER_NAME, status_code=status)
    return ProviderConnectionError(f"{message}: {error}", PROVIDER_NAME)


def _decimal(value) -> Decimal:
    return Decimal(str(round(float(value), 6)))


def _optional_decimal(value) -> Decimal | None:
    if value is None or pd.isna(value):
        return None
    return _decimal(value)
