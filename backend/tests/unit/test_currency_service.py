"""Tests for the currency conversion table and CurrencyService."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from models import Currency
from services.currency_service import CurrencyRate, CurrencyService, CurrencyTable, fx_symbol
from services.exceptions import UnknownCurrency
from services.market_data_service import MarketDataService
from tests.fixtures.mocks import MockQuoteProvider


@pytest.fixture
def table() -> CurrencyTable:
    return CurrencyTable([
        CurrencyRate(id=1, code="USD", rate=Decimal("1")),
        CurrencyRate(id=2, code="EUR", rate=Decimal("1.10"), is_default=True),
        CurrencyRate(id=3, code="GBP", rate=Decimal("1.25")),
        CurrencyRate(id=4, code="XXX", rate=Decimal("0")),
    ])


class TestCurrencyTable:
    def test_same_currency_is_identity(self, table):
        assert table.convert(Decimal("42"), 2, 2) == Decimal("42")

    def test_convert_through_reference(self, table):
        assert table.convert(Decimal("100"), 2, 1) == Decimal("110.00")
        assert table.convert(Decimal("110"), 1, 2) == Decimal("100")

    def test_cross_rate(self, table):
        assert table.convert(Decimal("125"), 3, 2) == Decimal("156.25") / Decimal("1.10")

    def test_round_trip_is_close_to_original(self, table):
        amount = Decimal("1234.56")
        there = table.convert(amount, 3, 2)
        back = table.convert(there, 2, 3)
        assert abs(back - amount) < Decimal("0.0000001")

    def test_unknown_id(self, table):
        with pytest.raises(UnknownCurrency):
            table.convert(Decimal("1"), 1, 99)

    def test_non_positive_rate_is_unknown(self, table):
        with pytest.raises(UnknownCurrency):
            table.convert(Decimal("1"), 4, 1)

    def test_convert_code_is_case_insensitive(self, table):
        assert table.convert_code(Decimal("10"), "eur", "USD") == Decimal("11.00")
        assert table.convert_code(Decimal("10"), "zzz", "ZZZ") == Decimal("10")

    def test_by_code_unknown(self, table):
        with pytest.raises(UnknownCurrency):
            table.by_code("JPY")

    def test_default_currency(self, table):
        assert table.default_currency.code == "EUR"
        assert table.to_default(Decimal("110"), 1) == Decimal("100")

    def test_default_falls_back_to_reference(self):
        table = CurrencyTable([
            CurrencyRate(id=1, code="USD", rate=Decimal("1")),
            CurrencyRate(id=2, code="EUR", rate=Decimal("1.10")),
        ])
        assert table.default_currency.code == "USD"

    def test_contains(self, table):
        assert 1 in table
        assert 99 not in table


class TestFxSymbol:
    def test_builds_provider_pair(self):
        assert fx_symbol("EUR") == "EURUSD=X"


class TestCurrencyService:
    def test_seed_defaults_once(self, db: Session):
        created = CurrencyService.seed_defaults(db)

        assert created > 0
        assert CurrencyService.seed_defaults(db) == 0
        usd = CurrencyService.get_by_code(db, "usd")
        assert usd.exchange_rate == Decimal("1")
        assert usd.is_default is True

    def test_get_default_falls_back_to_reference(self, db: Session, currencies):
        for currency in currencies.values():
            currency.is_default = False
        db.flush()

        assert CurrencyService.get_default(db).code == "USD"

    def test_set_default_only_moves_the_flag(self, db: Session, currencies):
        rates_before = {c.code: c.exchange_rate for c in CurrencyService.list_currencies(db)}

        CurrencyService.set_default(db, currencies["EUR"].id)

        assert CurrencyService.get_default(db).code == "EUR"
        assert db.query(Currency).filter(Currency.is_default.is_(True)).count() == 1
        assert {c.code: c.exchange_rate for c in CurrencyService.list_currencies(db)} == rates_before

    def test_set_default_unknown(self, db: Session, currencies):
        with pytest.raises(UnknownCurrency):
            CurrencyService.set_default(db, 9999)

    def test_update_rates(self, db: Session, currencies):
        CurrencyService.update_rates(db, {"EUR": Decimal("1.2"), "gbp": Decimal("1.3")})

        assert CurrencyService.get_by_code(db, "EUR").exchange_rate == Decimal("1.2")
        assert CurrencyService.get_by_code(db, "GBP").exchange_rate == Decimal("1.3")

    def test_update_rates_validates_everything_first(self, db: Session, currencies):
        original = CurrencyService.get_by_code(db, "EUR").exchange_rate

        with pytest.raises(ValueError):
            CurrencyService.update_rates(db, {"EUR": Decimal("2"), "GBP": Decimal("0")})

        assert CurrencyService.get_by_code(db, "EUR").exchange_rate == original

    def test_update_rates_unknown_code(self, db: Session, currencies):
        with pytest.raises(UnknownCurrency):
            CurrencyService.update_rates(db, {"ZZZ": Decimal("1")})

    def test_reference_rate_is_fixed(self, db: Session, currencies):
        with pytest.raises(ValueError, match="reference"):
            CurrencyService.update_rates(db, {"USD": Decimal("2")})

    def test_create_currency(self, db: Session, currencies):
        currency = CurrencyService.create_currency(db, "sek", "Swedish Krona", Decimal("0.095"), symbol="kr")

        assert currency.code == "SEK"
        with pytest.raises(ValueError, match="already exists"):
            CurrencyService.create_currency(db, "SEK", "Swedish Krona", Decimal("0.095"))

    def test_refresh_from_provider(self, db: Session, currencies):
        provider = MockQuoteProvider(quotes={"EURUSD=X": Decimal("1.15")})
        service = MarketDataService(provider=provider)

        result = CurrencyService.refresh_from_provider(db, service)

        assert result["updated"] == ["EUR"]
        assert "GBP" in result["failed"]
        assert "USD" not in result["failed"]
        assert CurrencyService.get_by_code(db, "EUR").exchange_rate == Decimal("1.15")
