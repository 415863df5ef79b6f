"""Portfolio model - a user's account holding assets in one currency."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from database import Base

PORTFOLIO_TYPES = ("Current", "Saving", "Investment")


class Portfolio(Base):
    """A real portfolio owned by a user.

    Real portfolios always have ids >= 1. The virtual "All" aggregate is
    never stored; it is addressed with the sentinel id -1.
    """

    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=True)
    symbol = Column(String(255), nullable=True)
    type = Column(String(50), nullable=False, default="Investment")
    cash_balance = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    tags = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="portfolios")
    currency = relationship("Currency")
    institution = relationship("Institution", back_populates="portfolios")
    transactions = relationship(
        "Transaction",
        back_populates="portfolio",
        foreign_keys="Transaction.portfolio_id",
        cascade="all, delete-orphan",
    )
