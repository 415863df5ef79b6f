"""Unit tests for the provider exception hierarchy and domain errors."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from integrations.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
)
from services.exceptions import (
    InvalidRecurrence,
    NoDataBefore,
    OverdraftSell,
    QuoteUnavailable,
    UnknownCurrency,
    WalletError,
)


class TestExceptionHierarchy:
    """All provider exceptions are caught by except ProviderError."""

    def test_catch_all_provider_errors(self):
        exceptions = [
            ProviderConnectionError("conn", provider_name="yahoo"),
            ProviderAPIError("api", provider_name="yahoo", status_code=400),
            ProviderDataError("data", provider_name="yahoo"),
        ]
        for exc in exceptions:
            with pytest.raises(ProviderError):
                raise exc

    def test_str_is_the_message(self):
        assert str(ProviderDataError("No data found for ZZZZ", provider_name="yahoo")) == "No data found for ZZZZ"
        assert ProviderDataError("x", provider_name="yahoo").provider_name == "yahoo"


class TestRetriable:
    @pytest.mark.parametrize("status,expected", [(429, True), (500, True), (503, True), (400, False), (404, False)])
    def test_api_error_retriable_by_status(self, status, expected):
        assert ProviderAPIError("err", status_code=status).retriable is expected

    def test_none_status_is_not_retriable(self):
        assert ProviderAPIError("unknown").retriable is False

    def test_connection_error_retriable_default_and_override(self):
        assert ProviderConnectionError("timeout").retriable is True
        assert ProviderConnectionError("permanent", retriable=False).retriable is False


class TestDomainErrors:
    def test_all_domain_errors_share_a_base(self):
        when = datetime(2024, 1, 2, tzinfo=timezone.utc)
        for exc in (
            InvalidRecurrence("bogus"),
            UnknownCurrency("ZZZ"),
            NoDataBefore("AAPL", when),
            OverdraftSell("AAPL", Decimal("5"), Decimal("3")),
            QuoteUnavailable("AAPL"),
        ):
            assert isinstance(exc, WalletError)

    def test_context_carries_non_empty_fields(self):
        when = datetime(2024, 1, 2, tzinfo=timezone.utc)
        exc = OverdraftSell("AAPL", Decimal("5"), Decimal("3"), portfolio_id=7, date=when)

        assert exc.context() == {"symbol": "AAPL", "date": when.isoformat(), "portfolio_id": 7}
        assert "only 3 held" in str(exc)

    def test_invalid_recurrence_message(self):
        exc = InvalidRecurrence("0 9 * *", "expected 5 fields")

        assert exc.spec == "0 9 * *"
        assert str(exc) == "Invalid recurrence '0 9 * *': expected 5 fields"
        assert exc.context() == {}
