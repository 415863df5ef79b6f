"""Unit tests for SQLAlchemy models."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from models import Asset, Currency, RecurrenceRun, Transaction, User


def test_portfolio_creation(portfolio, institution):
    """Test Portfolio model creation and relationships."""
    assert portfolio.name == "Brokerage"
    assert portfolio.currency.code == "USD"
    assert portfolio.institution.name == "Test Brokerage"
    assert portfolio.cash_balance == Decimal("0")
    assert portfolio.created_at is not None
    assert institution.portfolios == [portfolio]


def test_asset_defaults(db):
    """Test Asset JSON column defaults."""
    asset = Asset(symbol="XYZ", currency="USD")
    db.add(asset)
    db.commit()
    db.refresh(asset)

    assert asset.quotes == []
    assert asset.events == {"dividends": [], "splits": []}
    assert asset.is_from_api is False


def test_transaction_is_template(db, portfolio):
    """Only a non-blank recurrence makes a template."""
    rows = [
        Transaction(portfolio_id=portfolio.id, date=datetime(2024, 1, 1), type="Deposit",
                    asset_symbol="Cash", quantity=Decimal("1"), recurrence=recurrence)
        for recurrence in (None, "", "   ", "monthly")
    ]

    assert [row.is_template for row in rows] == [False, False, False, True]


def test_transaction_defaults(db, portfolio):
    tx = Transaction(
        portfolio_id=portfolio.id,
        date=datetime(2024, 1, 2),
        type="Buy",
        asset_symbol="AAPL",
        quantity=Decimal("10"),
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)

    assert tx.price == Decimal("0")
    assert tx.tags == ""
    assert tx.is_housekeeping is False
    assert portfolio.transactions == [tx]


def test_negative_quantity_rejected(db, portfolio):
    db.add(Transaction(
        portfolio_id=portfolio.id,
        date=datetime(2024, 1, 2),
        type="Buy",
        asset_symbol="AAPL",
        quantity=Decimal("-1"),
    ))

    with pytest.raises(IntegrityError):
        db.commit()


def test_currency_code_unique(db, currencies):
    db.add(Currency(code="USD", name="Duplicate", exchange_rate=Decimal("1")))

    with pytest.raises(IntegrityError):
        db.commit()


def test_recurrence_runs_cascade(db, portfolio):
    template = Transaction(
        portfolio_id=portfolio.id,
        date=datetime(2024, 1, 1, 9),
        type="Deposit",
        asset_symbol="Cash",
        quantity=Decimal("1"),
        recurrence="monthly",
    )
    db.add(template)
    db.flush()
    db.add(RecurrenceRun(transaction_id=template.id, occurrence=datetime(2024, 1, 1, 9), status="completed"))
    db.commit()

    db.delete(template)
    db.commit()

    assert db.query(RecurrenceRun).count() == 0


def test_user_sessions_relationship(user, auth_session):
    assert user.sessions == [auth_session]
    assert isinstance(auth_session.user, User)
