"""Institution model - the bank or broker a portfolio is held at."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class Institution(Base):
    """A financial institution (e.g., "Interactive Brokers")."""

    __tablename__ = "institutions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    website = Column(String(255), nullable=True)
    api_url = Column(String(255), nullable=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    portfolios = relationship("Portfolio", back_populates="institution")
