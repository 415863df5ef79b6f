"""Datetime helpers shared by the ledger, the quote cache and the API."""

from datetime import date, datetime, time, timezone


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime.

    Naive values are taken to be UTC already (SQLite drops tzinfo on the way
    back from the database).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """Convert to a naive UTC datetime for storage."""
    return ensure_utc(value).replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day(value: date) -> datetime:
    """Midnight UTC at the start of ``value``."""
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def end_of_day(value: date) -> datetime:
    """Last representable instant of ``value`` in UTC."""
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


def parse_quote_date(value: str) -> datetime:
    """Parse an ISO-8601 quote date (``2024-01-15`` or ``2024-01-15T14:30:00.000Z``)."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return ensure_utc(parsed)


def parse_epoch_ms(value: str | int | float) -> datetime:
    """Parse an epoch-milliseconds event date (stored as a string)."""
    return datetime.fromtimestamp(int(float(value)) / 1000, tz=timezone.utc)


def to_epoch_ms(value: datetime) -> str:
    """Format a datetime as epoch milliseconds in a string."""
    return str(int(ensure_utc(value).timestamp() * 1000))
