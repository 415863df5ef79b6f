"""Transaction model - a recorded event or a recurring template."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from database import Base


class Transaction(Base):
    """A stored transaction row.

    A row with a non-empty ``recurrence`` is a template: it is never summed
    into holdings, only its expanded occurrences are. Rows created by
    materializing an occurrence point back at their template through
    ``recurrence_of_id``.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_transaction_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_transaction_price_non_negative"),
        CheckConstraint("commission >= 0", name="ck_transaction_commission_non_negative"),
        CheckConstraint("tax >= 0", name="ck_transaction_tax_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    portfolio_id = Column(
        Integer, ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_portfolio_id = Column(
        Integer, ForeignKey("portfolios.id", ondelete="SET NULL"), nullable=True, index=True
    )
    date = Column(DateTime, nullable=False, index=True)
    type = Column(String(20), nullable=False)  # "Buy" / "Sell" / "Dividend" / "Deposit" / "Withdraw" / "Transfer"
    asset_symbol = Column(String(20), nullable=False, index=True)
    quantity = Column(Numeric(18, 8), nullable=False)
    price = Column(Numeric(18, 6), nullable=False, default=Decimal("0"))
    commission = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    tax = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    recurrence = Column(String(50), nullable=True)
    tags = Column(String(500), nullable=False, default="")
    notes = Column(String(500), nullable=False, default="")
    is_housekeeping = Column(Boolean, default=False, nullable=False)
    duplicate_of_id = Column(Integer, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True)
    recurrence_of_id = Column(
        Integer, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Set on a housekeeping cash leg: the trade it settles
    settles_transaction_id = Column(
        Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    portfolio = relationship("Portfolio", back_populates="transactions", foreign_keys=[portfolio_id])
    target_portfolio = relationship("Portfolio", foreign_keys=[target_portfolio_id])
    runs = relationship("RecurrenceRun", back_populates="transaction", cascade="all, delete-orphan")

    @property
    def is_template(self) -> bool:
        return bool(self.recurrence and self.recurrence.strip())
