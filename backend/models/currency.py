"""Currency model - exchange rates relative to the reference currency."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String

from database import Base


class Currency(Base):
    """A currency and its rate into the configured reference currency.

    ``exchange_rate`` converts 1 unit of this currency into the reference
    currency (settings.REFERENCE_CURRENCY), which always has a rate of 1.
    ``is_default`` only picks the reporting currency; flipping it never
    rewrites any rate.
    """

    __tablename__ = "currencies"
    __table_args__ = (
        CheckConstraint("exchange_rate > 0", name="ck_currency_exchange_rate_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(10), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    symbol = Column(String(10), nullable=False, default="")
    exchange_rate = Column(Numeric(24, 12), nullable=False, default=Decimal("1"))
    is_default = Column(Boolean, default=False, nullable=False, index=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
