"""Unit tests for MarketDataService."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from integrations.market_data_protocol import SymbolMatch
from services.exceptions import QuoteUnavailable
from services.market_data_service import MarketDataService
from tests.fixtures.mocks import MockQuoteProvider, make_series

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 31, tzinfo=timezone.utc)


@pytest.fixture
def provider():
    return MockQuoteProvider(
        series={"AAPL": make_series("AAPL", [(date(2024, 1, 2), "185.64"), (date(2024, 2, 1), "186.86")])},
        quotes={"AAPL": Decimal("190.1")},
        matches=[SymbolMatch(symbol="AAPL", name="Apple Inc."), SymbolMatch(symbol="MSFT", name="Microsoft")],
    )


class TestHistoricalSeries:
    def test_symbol_is_normalized_and_window_applied(self, provider):
        service = MarketDataService(provider=provider)

        series = service.historical_series(" aapl ", START, END)

        assert provider.calls == [("historical_series", "AAPL")]
        assert [p.close for p in series.points] == [Decimal("185.64")]

    def test_naive_bounds_are_accepted(self, provider):
        series = MarketDataService(provider=provider).historical_series("AAPL", datetime(2024, 1, 1), END)

        assert len(series.points) == 1

    def test_invalid_interval(self, provider):
        with pytest.raises(ValueError, match="Invalid interval"):
            MarketDataService(provider=provider).historical_series("AAPL", START, END, "2d")

        assert provider.calls == []

    def test_start_after_end(self, provider):
        with pytest.raises(ValueError):
            MarketDataService(provider=provider).historical_series("AAPL", END, START)

    def test_provider_errors_become_quote_unavailable(self, provider):
        with pytest.raises(QuoteUnavailable) as exc_info:
            MarketDataService(provider=provider).historical_series("ZZZZ", START, END)

        assert exc_info.value.symbol == "ZZZZ"

    def test_connection_failure(self):
        service = MarketDataService(provider=MockQuoteProvider(should_fail=True, failure_message="timed out"))

        with pytest.raises(QuoteUnavailable, match="timed out"):
            service.historical_series("AAPL", START, END)


class TestQuoteAndSearch:
    def test_quote(self, provider):
        snapshot = MarketDataService(provider=provider).quote("aapl")

        assert snapshot.price == Decimal("190.1")

    def test_quote_unknown_symbol(self, provider):
        with pytest.raises(QuoteUnavailable):
            MarketDataService(provider=provider).quote("MSFT")

    def test_search(self, provider):
        matches = MarketDataService(provider=provider).search("micro")

        assert [m.symbol for m in matches] == ["MSFT"]

    def test_blank_search_skips_provider(self, provider):
        assert MarketDataService(provider=provider).search("   ") == []
        assert provider.calls == []

    def test_search_failure(self):
        service = MarketDataService(provider=MockQuoteProvider(should_fail=True))

        with pytest.raises(QuoteUnavailable):
            service.search("apple")

    def test_default_provider_is_yahoo(self):
        assert MarketDataService().provider.provider_name == "yahoo"
