"""Test fixtures and sample data."""
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from models import Asset, AuthSession, Currency, Institution, Portfolio, Transaction, User
from services.currency_service import CurrencyService
from sqlalchemy.orm import Session


def add_asset(
    db: Session,
    symbol: str,
    closes: list[tuple[date, float]],
    currency: str = "USD",
    dividends: list[tuple[date, float]] | None = None,
    splits: list[tuple[date, int, int]] | None = None,
    is_from_api: bool = True,
) -> Asset:
    """Store an asset with daily closes and corporate events.

    This is a helper function (not a fixture) for tests that need several
    assets with different price histories.
    """

    def epoch_ms(day: date) -> str:
        return str(int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp() * 1000))

    asset = Asset(
        symbol=symbol,
        currency=currency,
        long_name=f"{symbol} Inc.",
        instrument_type="EQUITY",
        quotes=[
            {
                "date": day.isoformat(),
                "open": close,
                "high": close,
                "low": close,
                "close": close,
                "adjclose": close,
                "volume": 1000,
            }
            for day, close in closes
        ],
        events={
            "dividends": [{"date": epoch_ms(day), "amount": amount} for day, amount in dividends or []],
            "splits": [
                {"date": epoch_ms(day), "numerator": num, "denominator": den, "splitRatio": f"{num}:{den}"}
                for day, num, den in splits or []
            ],
        },
        is_from_api=is_from_api,
    )
    db.add(asset)
    db.flush()
    return asset


def add_transaction(
    db: Session,
    portfolio: Portfolio,
    type: str,
    symbol: str,
    when: datetime,
    quantity: str,
    price: str = "0",
    commission: str = "0",
    tax: str = "0",
    **fields,
) -> Transaction:
    """Store a transaction row directly, bypassing validation and cash legs."""
    tx = Transaction(
        portfolio_id=portfolio.id,
        type=type,
        asset_symbol=symbol,
        date=when.replace(tzinfo=None),
        quantity=Decimal(quantity),
        price=Decimal(price),
        commission=Decimal(commission),
        tax=Decimal(tax),
        **fields,
    )
    db.add(tx)
    db.flush()
    return tx


@pytest.fixture
def currencies(db: Session) -> dict[str, Currency]:
    """Seed the default currency set, keyed by code."""
    CurrencyService.seed_defaults(db)
    db.commit()
    return {c.code: c for c in db.query(Currency).all()}


@pytest.fixture
def user(db: Session) -> User:
    """Create a test user."""
    u = User(username="alice", email="alice@example.com")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def other_user(db: Session) -> User:
    """Create a second user whose data must stay invisible to ``user``."""
    u = User(username="bob")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def auth_session(db: Session, user: User) -> AuthSession:
    """Create a valid bearer session for ``user``."""
    session = AuthSession(
        user_id=user.id,
        token="test-token",
        expires_at=(datetime.now(timezone.utc) + timedelta(days=1)).replace(tzinfo=None),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


@pytest.fixture
def auth_headers(auth_session: AuthSession) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_session.token}"}


@pytest.fixture
def institution(db: Session) -> Institution:
    """Create a test institution."""
    inst = Institution(name="Test Brokerage", website="https://broker.example.com")
    db.add(inst)
    db.commit()
    db.refresh(inst)
    return inst


@pytest.fixture
def portfolio(db: Session, user: User, currencies: dict[str, Currency], institution: Institution) -> Portfolio:
    """Create a USD investment portfolio."""
    p = Portfolio(
        user_id=user.id,
        name="Brokerage",
        currency_id=currencies["USD"].id,
        institution_id=institution.id,
        type="Investment",
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def second_portfolio(db: Session, user: User, currencies: dict[str, Currency]) -> Portfolio:
    """Create a second USD portfolio, used as a transfer target or cash account."""
    p = Portfolio(
        user_id=user.id,
        name="Savings",
        currency_id=currencies["USD"].id,
        type="Saving",
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def eur_portfolio(db: Session, user: User, currencies: dict[str, Currency]) -> Portfolio:
    """Create a EUR current account."""
    p = Portfolio(
        user_id=user.id,
        name="Euro Account",
        currency_id=currencies["EUR"].id,
        type="Current",
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def aapl(db: Session) -> Asset:
    """AAPL with a few daily closes in January 2024."""
    asset = add_asset(
        db,
        "AAPL",
        [
            (date(2024, 1, 2), 100.0),
            (date(2024, 1, 3), 110.0),
            (date(2024, 1, 4), 120.0),
            (date(2024, 1, 5), 125.0),
        ],
    )
    db.commit()
    return asset
