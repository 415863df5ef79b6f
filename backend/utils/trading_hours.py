"""Exchange trading hours, used to skip quote refreshes that cannot return anything new.

Holidays are not modelled; a weekday is always a trading day.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from utils.dates import ensure_utc, utc_now

# Data fetched within this window of an open session counts as fresh
OPEN_MARKET_MAX_AGE = timedelta(minutes=15)

WEEKDAYS = frozenset(range(5))


@dataclass(frozen=True)
class MarketHours:
    timezone: str
    sessions: tuple[tuple[time, time], ...]
    trading_days: frozenset[int] = WEEKDAYS

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _hours(timezone: str, *sessions: tuple[str, str]) -> MarketHours:
    return MarketHours(
        timezone=timezone,
        sessions=tuple((time.fromisoformat(start), time.fromisoformat(end)) for start, end in sessions),
    )


_US = _hours("America/New_York", ("09:30", "16:00"))
_LONDON = _hours("Europe/London", ("08:00", "16:30"))
_TOKYO = _hours("Asia/Tokyo", ("09:00", "11:30"), ("12:30", "15:25"))
_SHANGHAI = _hours("Asia/Shanghai", ("09:30", "11:30"), ("13:00", "14:57"))
_HONG_KONG = _hours("Asia/Hong_Kong", ("09:30", "12:00"), ("13:00", "16:00"))
_PARIS = _hours("Europe/Paris", ("09:00", "17:30"))
_INDIA = _hours("Asia/Kolkata", ("09:15", "15:30"))
_TORONTO = _hours("America/Toronto", ("09:30", "16:00"))
_SYDNEY = _hours("Australia/Sydney", ("10:00", "16:00"))
_FRANKFURT = _hours("Europe/Berlin", ("08:00", "22:00"))

# Keyed by the exchange codes the quote provider reports
MARKET_HOURS: dict[str, MarketHours] = {
    "NYSE": _US,
    "NASDAQ": _US,
    "NMS": _US,
    "NYQ": _US,
    "NGM": _US,
    "NCM": _US,
    "LSE": _LONDON,
    "LON": _LONDON,
    "TSE": _TOKYO,
    "JPX": _TOKYO,
    "SSE": _SHANGHAI,
    "SHH": _SHANGHAI,
    "SZSE": _SHANGHAI,
    "SHZ": _SHANGHAI,
    "HKEX": _HONG_KONG,
    "HKG": _HONG_KONG,
    "EPA": _PARIS,
    "PAR": _PARIS,
    "BRU": _hours("Europe/Brussels", ("09:00", "17:30")),
    "AMS": _hours("Europe/Amsterdam", ("09:00", "17:30")),
    "MIL": _hours("Europe/Rome", ("09:00", "17:30")),
    "NSE": _INDIA,
    "NSI": _INDIA,
    "BSE": _INDIA,
    "TSX": _TORONTO,
    "TOR": _TORONTO,
    "ASX": _SYDNEY,
    "AUS": _SYDNEY,
    "FRA": _FRANKFURT,
    "XETRA": _FRANKFURT,
    "GER": _FRANKFURT,
}

# Fallback when the exchange code is unknown but its timezone is not
TIMEZONE_MARKETS: dict[str, MarketHours] = {
    "America/New_York": _US,
    "Europe/London": _LONDON,
    "Asia/Tokyo": _TOKYO,
    "Asia/Shanghai": _SHANGHAI,
    "Asia/Hong_Kong": _HONG_KONG,
    "Europe/Paris": _PARIS,
    "Asia/Kolkata": _INDIA,
    "America/Toronto": _TORONTO,
    "Australia/Sydney": _SYDNEY,
    "Europe/Berlin": _FRANKFURT,
}


@dataclass(frozen=True)
class FetchDecision:
    should_fetch: bool
    reason: str


def market_hours(exchange_name: str | None, timezone: str | None = None) -> MarketHours | None:
    """Hours of an exchange, looked up by code and then by timezone."""
    hours = MARKET_HOURS.get((exchange_name or "").strip().upper())
    if hours is None and timezone:
        hours = TIMEZONE_MARKETS.get(timezone)
    return hours


def is_trading_day(exchange_name: str | None, timezone: str | None = None, when: datetime | None = None) -> bool:
    """Whether ``when`` (default now) falls on a trading day in the exchange's timezone.

    Unknown exchanges are treated as always trading.
    """
    hours = market_hours(exchange_name, timezone)
    if hours is None:
        return True
    local = ensure_utc(when or utc_now()).astimezone(hours.zone)
    return local.weekday() in hours.trading_days


def is_market_open(exchange_name: str | None, timezone: str | None = None, when: datetime | None = None) -> bool:
    """Whether ``when`` (default now) is inside one of the exchange's sessions."""
    hours = market_hours(exchange_name, timezone)
    if hours is None:
        return True
    local = ensure_utc(when or utc_now()).astimezone(hours.zone)
    if local.weekday() not in hours.trading_days:
        return False
    now = local.time()
    return any(start <= now <= end for start, end in hours.sessions)


def last_market_close(hours: MarketHours, when: datetime) -> datetime | None:
    """The most recent end of a trading day at or before ``when``, in UTC."""
    local = ensure_utc(when).astimezone(hours.zone)
    closing = hours.sessions[-1][1]
    for days_back in range(8):
        day = local.date() - timedelta(days=days_back)
        if day.weekday() not in hours.trading_days:
            continue
        close = datetime.combine(day, closing, tzinfo=hours.zone)
        if close <= local:
            return ensure_utc(close)
    return None


def should_fetch_data(
    exchange_name: str | None,
    timezone: str | None = None,
    last_updated: datetime | None = None,
    force: bool = False,
    now: datetime | None = None,
) -> FetchDecision:
    """Decide whether a quote refresh can return anything new.

    While the market is open, data older than ``OPEN_MARKET_MAX_AGE`` is
    refetched. While it is closed, data is refetched only if it predates
    the last session close.
    """
    if force:
        return FetchDecision(True, "forced")
    hours = market_hours(exchange_name, timezone)
    if hours is None:
        return FetchDecision(True, "unknown market")
    if last_updated is None:
        return FetchDecision(True, "no previous data")

    now = ensure_utc(now or utc_now())
    last_updated = ensure_utc(last_updated)
    if is_market_open(exchange_name, timezone, now):
        if now - last_updated >= OPEN_MARKET_MAX_AGE:
            return FetchDecision(True, "market open, data stale")
        return FetchDecision(False, "market open, data fresh")

    last_close = last_market_close(hours, now)
    if last_close is None or last_updated < last_close:
        return FetchDecision(True, "market closed, missing last close")
    return FetchDecision(False, "market closed, have post-close data")
