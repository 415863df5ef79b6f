"""Market data service: a thin orchestrator over a quote provider."""

import logging
from datetime import datetime

from integrations.exceptions import ProviderAPIError, ProviderConnectionError, ProviderError
from integrations.market_data_protocol import (
    VALID_INTERVALS,
    HistoricalSeries,
    QuoteProvider,
    QuoteSnapshot,
    SymbolMatch,
)
from services.exceptions import QuoteUnavailable
from utils.dates import ensure_utc

logger = logging.getLogger(__name__)


class MarketDataService:
    """Fronts a pluggable QuoteProvider.

    Normalizes symbols, validates intervals, and turns every provider
    failure into ``QuoteUnavailable`` so callers only handle domain errors.
    """

    def __init__(self, provider: QuoteProvider | None = None):
        """Initialize with an optional provider for dependency injection.

        Args:
            provider: Quote provider. If None, a YahooFinanceClient is
                     created on first use.
        """
        self._provider = provider

    @property
    def provider(self) -> QuoteProvider:
        """Get the quote provider, creating the default if not provided."""
        if self._provider is None:
            from integrations.yahoo_finance_client import YahooFinanceClient

            self._provider = YahooFinanceClient()
        return self._provider

    def search(self, query: str) -> list[SymbolMatch]:
        query = query.strip()
        if not query:
            return []
        try:
            return self.provider.search(query)
        except ProviderError as e:
            logger.warning("Symbol search failed for %r: %s", query, e)
            raise QuoteUnavailable(query, str(e)) from e

    def quote(self, symbol: str) -> QuoteSnapshot:
        symbol = symbol.strip().upper()
        try:
            return self.provider.quote(symbol)
        except ProviderError as e:
            self._log_failure(symbol, e)
            raise QuoteUnavailable(symbol, str(e)) from e

    def historical_series(
        self, symbol: str, start: datetime, end: datetime, interval: str = "1d"
    ) -> HistoricalSeries:
        """Fetch a historical series.

        Raises:
            ValueError: If ``interval`` is not supported or start > end.
            QuoteUnavailable: If the provider fails.
        """
        if interval not in VALID_INTERVALS:
            raise ValueError(
                f"Invalid interval {interval!r}; expected one of {', '.join(VALID_INTERVALS)}"
            )
        start = ensure_utc(start)
        end = ensure_utc(end)
        if start > end:
            raise ValueError("start must be on or before end")

        symbol = symbol.strip().upper()
        try:
            return self.provider.historical_series(symbol, start, end, interval)
        except ProviderError as e:
            self._log_failure(symbol, e)
            raise QuoteUnavailable(symbol, str(e)) from e

    def _log_failure(self, symbol: str, error: ProviderError) -> None:
        if isinstance(error, ProviderConnectionError):
            logger.warning("%s unreachable for %s: %s", error.provider_name or "provider", symbol, error)
        elif isinstance(error, ProviderAPIError):
            logger.warning(
                "%s returned HTTP %s for %s: %s", error.provider_name or "provider", error.status_code, symbol, error
            )
        else:
            logger.info("No usable data for %s: %s", symbol, error)
