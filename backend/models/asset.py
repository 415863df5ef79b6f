"""Asset model - an instrument with its cached quotes and corporate events."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from database import Base


class Asset(Base):
    """A tradable instrument, either fetched from the quote provider or manual.

    ``quotes`` is a list of ``{date, open, high, low, close, adjclose, volume}``
    dicts ordered by ISO-8601 ``date``. ``events`` holds ``dividends`` and
    ``splits`` lists whose ``date`` values are epoch milliseconds as strings.
    Manual assets (``is_from_api`` false) are never refreshed from the provider.
    """

    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(20), nullable=False, unique=True)
    currency = Column(String(10), nullable=False)
    exchange_name = Column(String(50), nullable=True)
    full_exchange_name = Column(String(100), nullable=True)
    instrument_type = Column(String(20), nullable=True)
    timezone = Column(String(10), nullable=True)
    exchange_timezone_name = Column(String(50), nullable=True)
    long_name = Column(String(255), nullable=True)
    short_name = Column(String(255), nullable=True)
    quotes = Column(JSON, nullable=False, default=list)
    events = Column(JSON, nullable=False, default=lambda: {"dividends": [], "splits": []})
    is_from_api = Column(Boolean, default=False, nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
