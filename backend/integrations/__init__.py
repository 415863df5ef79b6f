"""External API integrations.

This package contains:
- Quote provider protocol: Common interface for market-data sources
- Yahoo Finance client: Default quote provider, backed by yfinance
"""

from integrations.market_data_protocol import (
    HistoricalSeries,
    QuoteProvider,
    QuoteSnapshot,
    SymbolMatch,
)
from integrations.yahoo_finance_client import YahooFinanceClient

__all__ = [
    "HistoricalSeries",
    "QuoteProvider",
    "QuoteSnapshot",
    "SymbolMatch",
    "YahooFinanceClient",
]
