"""SQLAlchemy ORM models."""

from .asset import Asset
from .currency import Currency
from .institution import Institution
from .portfolio import PORTFOLIO_TYPES, Portfolio
from .recurrence_run import RecurrenceRun
from .transaction import Transaction
from .user import AuthSession, User

__all__ = [
    "Asset",
    "AuthSession",
    "Currency",
    "Institution",
    "PORTFOLIO_TYPES",
    "Portfolio",
    "RecurrenceRun",
    "Transaction",
    "User",
]
