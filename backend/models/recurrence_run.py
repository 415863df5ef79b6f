"""RecurrenceRun model - log of template occurrence materializations."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class RecurrenceRun(Base):
    """One attempt at materializing a template occurrence into a stored row."""

    __tablename__ = "recurrence_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(
        Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    occurrence = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="completed")  # "completed" | "failed"
    error_message = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    transaction = relationship("Transaction", back_populates="runs")
