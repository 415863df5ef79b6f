"""Currency conversion table and currency management.

Every stored ``exchange_rate`` converts one unit of its currency into the
fixed reference currency (``settings.REFERENCE_CURRENCY``). Conversion
between any two currencies routes through that reference, so changing which
currency is the reporting default never touches a stored rate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from config import settings
from models import Currency
from services.exceptions import QuoteUnavailable, UnknownCurrency

logger = logging.getLogger(__name__)

# (code, name, symbol, approximate units of reference per unit) seeded on an
# empty database; the reference currency itself is always seeded at rate 1.
DEFAULT_CURRENCIES = [
    ("USD", "US Dollar", "$", Decimal("1")),
    ("EUR", "Euro", "€", Decimal("1.08")),
    ("GBP", "British Pound", "£", Decimal("1.27")),
    ("CHF", "Swiss Franc", "CHF", Decimal("1.12")),
    ("JPY", "Japanese Yen", "¥", Decimal("0.0067")),
    ("CAD", "Canadian Dollar", "C$", Decimal("0.74")),
]


@dataclass(frozen=True)
class CurrencyRate:
    """An immutable snapshot of one currency row."""

    id: int
    code: str
    rate: Decimal
    is_default: bool = False


class CurrencyTable:
    """In-memory conversion table built from a snapshot of currency rows."""

    def __init__(self, rates: list[CurrencyRate]):
        self._by_id: dict[int, CurrencyRate] = {r.id: r for r in rates}
        self._by_code: dict[str, CurrencyRate] = {r.code.upper(): r for r in rates}

    @classmethod
    def from_rows(cls, currencies: list[Currency]) -> "CurrencyTable":
        return cls([
            CurrencyRate(
                id=c.id,
                code=c.code,
                rate=Decimal(str(c.exchange_rate)),
                is_default=bool(c.is_default),
            )
            for c in currencies
        ])

    def __contains__(self, currency_id: int) -> bool:
        return currency_id in self._by_id

    def get(self, currency_id: int) -> CurrencyRate:
        try:
            return self._by_id[currency_id]
        except KeyError:
            raise UnknownCurrency(currency_id) from None

    def by_code(self, code: str) -> CurrencyRate:
        try:
            return self._by_code[code.strip().upper()]
        except (KeyError, AttributeError):
            raise UnknownCurrency(code) from None

    def rate(self, currency_id: int) -> Decimal:
        """Rate converting 1 unit of the currency into the reference currency."""
        return self._checked_rate(self.get(currency_id))

    @property
    def default_currency(self) -> CurrencyRate:
        """The reporting currency (the row flagged ``is_default``).

        Falls back to the reference currency when no row is flagged.
        """
        for entry in self._by_id.values():
            if entry.is_default:
                return entry
        return self.by_code(settings.REFERENCE_CURRENCY)

    def convert(self, amount: Decimal, from_currency_id: int, to_currency_id: int) -> Decimal:
        """Convert ``amount`` between two currencies by id.

        Raises:
            UnknownCurrency: If either id is missing or has an unusable rate.
        """
        source = self.get(from_currency_id)
        target = self.get(to_currency_id)
        return self._convert(amount, source, target)

    def convert_code(self, amount: Decimal, from_code: str, to_code: str) -> Decimal:
        """Convert ``amount`` between two currencies by ISO code."""
        if from_code.strip().upper() == to_code.strip().upper():
            return amount
        return self._convert(amount, self.by_code(from_code), self.by_code(to_code))

    def to_default(self, amount: Decimal, currency_id: int) -> Decimal:
        return self.convert(amount, currency_id, self.default_currency.id)

    def _convert(self, amount: Decimal, source: CurrencyRate, target: CurrencyRate) -> Decimal:
        if source.id == target.id:
            return amount
        in_reference = amount * self._checked_rate(source)
        return in_reference / self._checked_rate(target)

    @staticmethod
    def _checked_rate(entry: CurrencyRate) -> Decimal:
        if entry.rate is None or entry.rate <= 0:
            raise UnknownCurrency(entry.code)
        return entry.rate


def fx_symbol(code: str) -> str:
    """Quote provider symbol for the rate of ``code`` in the reference currency."""
    return f"{code.upper()}{settings.REFERENCE_CURRENCY}=X"


class CurrencyService:
    """Service for reading and mutating currency rows."""

    @staticmethod
    def list_currencies(db: Session) -> list[Currency]:
        return db.query(Currency).order_by(Currency.code).all()

    @staticmethod
    def get_by_code(db: Session, code: str) -> Currency:
        currency = db.query(Currency).filter(Currency.code == code.strip().upper()).first()
        if currency is None:
            raise UnknownCurrency(code)
        return currency

    @staticmethod
    def get_default(db: Session) -> Currency:
        currency = db.query(Currency).filter(Currency.is_default.is_(True)).first()
        if currency is None:
            currency = CurrencyService.get_by_code(db, settings.REFERENCE_CURRENCY)
        return currency

    @staticmethod
    def build_table(db: Session) -> CurrencyTable:
        return CurrencyTable.from_rows(CurrencyService.list_currencies(db))

    @staticmethod
    def seed_defaults(db: Session) -> int:
        """Insert the default currency set into an empty table.

        Returns:
            Number of rows created (0 when currencies already exist).
        """
        if db.query(Currency).first() is not None:
            return 0

        seeds = list(DEFAULT_CURRENCIES)
        if settings.REFERENCE_CURRENCY not in {code for code, *_ in seeds}:
            seeds.insert(0, (settings.REFERENCE_CURRENCY, settings.REFERENCE_CURRENCY, "", Decimal("1")))

        reference_rate = next(rate for code, _, _, rate in seeds if code == settings.REFERENCE_CURRENCY)
        for code, name, symbol, rate in seeds:
            db.add(Currency(
                code=code,
                name=name,
                symbol=symbol,
                exchange_rate=rate / reference_rate,
                is_default=code == settings.REFERENCE_CURRENCY,
            ))
        db.flush()
        logger.info("Seeded %d currencies (reference %s)", len(seeds), settings.REFERENCE_CURRENCY)
        return len(seeds)

    @staticmethod
    def create_currency(
        db: Session, code: str, name: str, exchange_rate: Decimal, symbol: str = ""
    ) -> Currency:
        code = code.strip().upper()
        if db.query(Currency).filter(Currency.code == code).first() is not None:
            raise ValueError(f"Currency {code} already exists")
        if exchange_rate <= 0:
            raise ValueError("Exchange rate must be positive")
        currency = Currency(code=code, name=name, symbol=symbol, exchange_rate=exchange_rate)
        db.add(currency)
        db.flush()
        return currency

    @staticmethod
    def set_default(db: Session, currency_id: int) -> Currency:
        """Flag ``currency_id`` as the reporting default.

        Only the ``is_default`` flags change; stored rates stay relative to
        the reference currency.
        """
        currency = db.get(Currency, currency_id)
        if currency is None:
            raise UnknownCurrency(currency_id)

        db.query(Currency).filter(
            Currency.is_default.is_(True), Currency.id != currency_id
        ).update({Currency.is_default: False}, synchronize_session="fetch")
        currency.is_default = True
        db.flush()
        logger.info("Default currency set to %s", currency.code)
        return currency

    @staticmethod
    def update_rates(db: Session, rates: dict[str, Decimal]) -> list[Currency]:
        """Overwrite exchange rates keyed by currency code.

        All codes and values are validated before any row is modified.

        Raises:
            UnknownCurrency: If a code is not present.
            ValueError: If a rate is not positive, or the reference
                currency's rate is not 1.
        """
        updates: list[tuple[Currency, Decimal]] = []
        for code, rate in rates.items():
            currency = CurrencyService.get_by_code(db, code)
            rate = Decimal(str(rate))
            if rate <= 0:
                raise ValueError(f"Exchange rate for {currency.code} must be positive")
            if currency.code == settings.REFERENCE_CURRENCY and rate != 1:
                raise ValueError(f"Exchange rate for reference currency {currency.code} is fixed at 1")
            updates.append((currency, rate))

        now = datetime.now(timezone.utc)
        for currency, rate in updates:
            currency.exchange_rate = rate
            currency.updated_at = now
        db.flush()
        return [currency for currency, _ in updates]

    @staticmethod
    def refresh_from_provider(db: Session, market_data) -> dict[str, list[str]]:
        """Refresh every non-reference rate from the quote provider.

        Codes whose quote cannot be fetched keep their previous rate.

        Returns:
            ``{"updated": [...codes], "failed": [...codes]}``
        """
        updated: list[str] = []
        failed: list[str] = []
        now = datetime.now(timezone.utc)

        for currency in CurrencyService.list_currencies(db):
            if currency.code == settings.REFERENCE_CURRENCY:
                continue
            try:
                snapshot = market_data.quote(fx_symbol(currency.code))
            except QuoteUnavailable as e:
                logger.warning("Rate refresh failed for %s: %s", currency.code, e)
                failed.append(currency.code)
                continue
            if snapshot.price is None or snapshot.price <= 0:
                failed.append(currency.code)
                continue
            currency.exchange_rate = snapshot.price
            currency.updated_at = now
            updated.append(currency.code)

        db.flush()
        logger.info("Refreshed %d currency rates (%d failed)", len(updated), len(failed))
        return {"updated": updated, "failed": failed}
