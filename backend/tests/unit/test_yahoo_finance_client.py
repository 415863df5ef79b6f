"""Unit tests for YahooFinanceClient (mocked yfinance)."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
from yfinance.exceptions import YFRateLimitError

from integrations.exceptions import ProviderAPIError, ProviderConnectionError, ProviderDataError
from integrations.yahoo_finance_client import YahooFinanceClient

METADATA = {
    "currency": "USD",
    "exchangeName": "NMS",
    "fullExchangeName": "NasdaqGS",
    "instrumentType": "EQUITY",
    "timezone": "EST",
    "exchangeTimezoneName": "America/New_York",
    "longName": "Apple Inc.",
    "shortName": "Apple",
}


@pytest.fixture
def client():
    return YahooFinanceClient(timeout=3)


def _make_df(rows: list[dict], dates: list[str], tz: str = "America/New_York") -> pd.DataFrame:
    """Build a DataFrame with a tz-aware DatetimeIndex, mimicking Ticker.history output."""
    index = pd.DatetimeIndex(dates).tz_localize(tz)
    columns = ["Open", "High", "Low", "Close", "Adj Close", "Volume", "Dividends", "Stock Splits"]
    return pd.DataFrame(rows, index=index, columns=columns)


def _bar(close, dividend=0.0, split=0.0, volume=1000) -> dict:
    return {
        "Open": close,
        "High": close,
        "Low": close,
        "Close": close,
        "Adj Close": close,
        "Volume": volume,
        "Dividends": dividend,
        "Stock Splits": split,
    }


def _mock_ticker(df: pd.DataFrame | None = None, error: Exception | None = None) -> MagicMock:
    ticker = MagicMock()
    if error is not None:
        ticker.history.side_effect = error
    else:
        ticker.history.return_value = df
    ticker.history_metadata = METADATA
    return ticker


class TestHistoricalSeries:
    def test_daily_bars_are_dated_midnight_utc(self, client):
        df = _make_df([_bar(150.25), _bar(151.5)], ["2024-01-15", "2024-01-16"])
        ticker = _mock_ticker(df)

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=ticker):
            series = client.historical_series(
                "AAPL",
                datetime(2024, 1, 15, tzinfo=timezone.utc),
                datetime(2024, 1, 16, tzinfo=timezone.utc),
                "1d",
            )

        assert [p.date for p in series.points] == [
            datetime(2024, 1, 15, tzinfo=timezone.utc),
            datetime(2024, 1, 16, tzinfo=timezone.utc),
        ]
        assert series.points[0].close == Decimal("150.25")
        assert series.points[0].volume == 1000
        assert series.metadata.currency == "USD"
        assert series.metadata.long_name == "Apple Inc."

    def test_end_is_made_inclusive(self, client):
        ticker = _mock_ticker(_make_df([_bar(1.0)], ["2024-01-15"]))

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=ticker):
            client.historical_series(
                "AAPL",
                datetime(2024, 1, 10, tzinfo=timezone.utc),
                datetime(2024, 1, 15, tzinfo=timezone.utc),
                "1d",
            )

        kwargs = ticker.history.call_args.kwargs
        assert kwargs["start"] == "2024-01-10"
        assert kwargs["end"] == "2024-01-16"
        assert kwargs["interval"] == "1d"
        assert kwargs["timeout"] == 3
        assert kwargs["actions"] is True

    def test_dividends_and_splits_are_extracted(self, client):
        df = _make_df(
            [_bar(180.0), _bar(181.0, dividend=0.24), _bar(90.0, split=2.0), _bar(45.0, split=0.5)],
            ["2024-02-08", "2024-02-09", "2024-02-12", "2024-02-13"],
        )

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=_mock_ticker(df)):
            series = client.historical_series(
                "AAPL",
                datetime(2024, 2, 8, tzinfo=timezone.utc),
                datetime(2024, 2, 13, tzinfo=timezone.utc),
            )

        assert [(d.date.day, d.amount) for d in series.dividends] == [(9, Decimal("0.24"))]
        assert [(s.date.day, s.numerator, s.denominator) for s in series.splits] == [(12, 2, 1), (13, 1, 2)]

    def test_rows_without_close_are_skipped(self, client):
        df = _make_df([_bar(10.0), _bar(float("nan"))], ["2024-01-15", "2024-01-16"])

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=_mock_ticker(df)):
            series = client.historical_series(
                "AAPL", datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 1, 16, tzinfo=timezone.utc)
            )

        assert len(series.points) == 1

    def test_intraday_bars_outside_window_are_dropped(self, client):
        df = _make_df(
            [_bar(1.0), _bar(2.0), _bar(3.0)],
            ["2024-01-15 09:30", "2024-01-15 10:30", "2024-01-15 11:30"],
        )

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=_mock_ticker(df)):
            series = client.historical_series(
                "AAPL",
                datetime(2024, 1, 15, 15, 0, tzinfo=timezone.utc),
                datetime(2024, 1, 15, 16, 0, tzinfo=timezone.utc),
                "1h",
            )

        assert [p.close for p in series.points] == [Decimal("2.0")]
        assert series.points[0].date == datetime(2024, 1, 15, 15, 30, tzinfo=timezone.utc)

    def test_empty_frame_is_a_data_error(self, client):
        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=_mock_ticker(pd.DataFrame())):
            with pytest.raises(ProviderDataError):
                client.historical_series(
                    "FAKE", datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 1, 16, tzinfo=timezone.utc)
                )

    def test_network_failure_is_a_connection_error(self, client):
        ticker = _mock_ticker(error=TimeoutError("read timed out"))

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=ticker):
            with pytest.raises(ProviderConnectionError, match="timed out"):
                client.historical_series(
                    "AAPL", datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 1, 16, tzinfo=timezone.utc)
                )

    def test_http_status_failure_is_an_api_error(self, client):
        error = Exception("Service Unavailable")
        error.response = MagicMock(status_code=503)
        ticker = _mock_ticker(error=error)

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=ticker):
            with pytest.raises(ProviderAPIError) as exc_info:
                client.historical_series(
                    "AAPL", datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 1, 16, tzinfo=timezone.utc)
                )

        assert exc_info.value.status_code == 503
        assert exc_info.value.retriable is True

    def test_rate_limit_is_a_429(self, client):
        ticker = _mock_ticker(error=YFRateLimitError())

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=ticker):
            with pytest.raises(ProviderAPIError) as exc_info:
                client.historical_series(
                    "AAPL", datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 1, 16, tzinfo=timezone.utc)
                )

        assert exc_info.value.status_code == 429


class TestQuote:
    def test_latest_close(self, client):
        df = _make_df([_bar(148.0), _bar(149.5)], ["2024-01-11", "2024-01-12"])

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=_mock_ticker(df)):
            snapshot = client.quote("AAPL")

        assert snapshot.symbol == "AAPL"
        assert snapshot.price == Decimal("149.5")
        assert snapshot.currency == "USD"
        assert snapshot.as_of.date().isoformat() == "2024-01-12"

    def test_no_close_is_a_data_error(self, client):
        df = _make_df([_bar(float("nan"))], ["2024-01-12"])

        with patch("integrations.yahoo_finance_client.yf.Ticker", return_value=_mock_ticker(df)):
            with pytest.raises(ProviderDataError):
                client.quote("AAPL")


class TestSearch:
    def test_matches_are_mapped(self, client):
        search = MagicMock()
        search.quotes = [
            {"symbol": "AAPL", "longname": "Apple Inc.", "exchDisp": "NASDAQ", "quoteType": "EQUITY"},
            {"shortname": "no symbol"},
            {"symbol": "APLE", "shortname": "Apple Hospitality", "exchange": "NYQ", "quoteType": "EQUITY"},
        ]

        with patch("integrations.yahoo_finance_client.yf.Search", return_value=search) as mock_search:
            matches = client.search("apple")

        assert [m.symbol for m in matches] == ["AAPL", "APLE"]
        assert matches[0].name == "Apple Inc."
        assert matches[1].exchange == "NYQ"
        assert mock_search.call_args.kwargs["timeout"] == 3

    def test_search_failure(self, client):
        with patch("integrations.yahoo_finance_client.yf.Search", side_effect=ConnectionError("dns")):
            with pytest.raises(ProviderConnectionError):
                client.search("apple")

    def test_provider_name(self, client):
        assert client.provider_name == "yahoo"
