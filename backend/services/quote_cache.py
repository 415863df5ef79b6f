"""In-memory asset/quote cache used by the portfolio aggregator.

Built once per request from Asset rows. Prices are looked up with bisection
over the ascending quote dates; split and dividend events are kept sorted so
corporate actions can be applied cumulatively in chronological order.
"""

import bisect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from models import Asset
from services.exceptions import NoDataBefore, QuoteUnavailable
from utils.dates import ensure_utc, parse_epoch_ms, parse_quote_date

logger = logging.getLogger(__name__)


@dataclass
class _AssetSeries:
    symbol: str
    currency: str
    is_from_api: bool = True
    dates: list[datetime] = field(default_factory=list)
    closes: list[Decimal] = field(default_factory=list)
    splits: list[tuple[datetime, Decimal]] = field(default_factory=list)
    dividends: list[tuple[datetime, Decimal]] = field(default_factory=list)


class AssetQuoteCache:
    """Symbol -> price series, currency and corporate events."""

    def __init__(self):
        self._series: dict[str, _AssetSeries] = {}

    @classmethod
    def from_assets(cls, assets: list[Asset]) -> "AssetQuoteCache":
        cache = cls()
        for asset in assets:
            cache.load(
                asset.symbol,
                asset.currency,
                asset.quotes or [],
                asset.events or {},
                is_from_api=bool(asset.is_from_api),
            )
        return cache

    def load(
        self,
        symbol: str,
        currency: str,
        quotes: list[dict],
        events: dict | None = None,
        is_from_api: bool = True,
    ) -> None:
        """Register (or replace) the series for ``symbol``.

        Quotes without a close are skipped. Rows are re-sorted by date and
        duplicate dates keep the last value seen.
        """
        by_date: dict[datetime, Decimal] = {}
        for quote in quotes:
            close = _to_decimal(quote.get("close"))
            if close is None or not quote.get("date"):
                continue
            by_date[parse_quote_date(quote["date"])] = close

        events = events or {}
        series = _AssetSeries(symbol=symbol, currency=currency, is_from_api=is_from_api)
        for when in sorted(by_date):
            series.dates.append(when)
            series.closes.append(by_date[when])

        for split in events.get("splits") or []:
            numerator = _to_decimal(split.get("numerator"))
            denominator = _to_decimal(split.get("denominator"))
            if not numerator or not denominator:
                logger.warning("Ignoring malformed split for %s: %s", symbol, split)
                continue
            series.splits.append((parse_epoch_ms(split["date"]), numerator / denominator))
        series.splits.sort(key=lambda item: item[0])

        for dividend in events.get("dividends") or []:
            amount = _to_decimal(dividend.get("amount"))
            if amount is None:
                continue
            series.dividends.append((parse_epoch_ms(dividend["date"]), amount))
        series.dividends.sort(key=lambda item: item[0])

        self._series[symbol] = series

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._series

    def symbols(self) -> list[str]:
        return sorted(self._series)

    def currency_of(self, symbol: str) -> str | None:
        series = self._series.get(symbol)
        return series.currency if series else None

    def latest_price(self, symbol: str) -> Decimal:
        """Close of the most recent quote.

        Raises:
            QuoteUnavailable: If the symbol is unknown or has no quotes.
        """
        series = self._get(symbol)
        if not series.closes:
            raise QuoteUnavailable(symbol, "no quotes cached")
        return series.closes[-1]

    def historical_price(self, symbol: str, as_of: datetime) -> Decimal:
        """Close of the quote at or immediately before ``as_of``.

        Raises:
            QuoteUnavailable: If the symbol is unknown.
            NoDataBefore: If no quote exists at or before ``as_of``.
        """
        series = self._get(symbol)
        as_of = ensure_utc(as_of)
        index = bisect.bisect_right(series.dates, as_of) - 1
        if index < 0:
            raise NoDataBefore(symbol, as_of)
        return series.closes[index]

    def apply_corporate_actions(
        self,
        symbol: str,
        quantity: Decimal,
        average_cost: Decimal,
        since: datetime | None,
        as_of: datetime,
    ) -> tuple[Decimal, Decimal]:
        """Apply every split in ``(since, as_of]`` to a position.

        Each split multiplies quantity by its ratio and divides average cost
        by the same ratio, so ``quantity * average_cost`` is preserved.
        """
        for _, factor in self.splits_between(symbol, since, as_of):
            quantity = quantity * factor
            average_cost = average_cost / factor
        return quantity, average_cost

    def splits_between(
        self, symbol: str, start: datetime | None, end: datetime
    ) -> list[tuple[datetime, Decimal]]:
        """Splits in ``(start, end]`` as ``(date, factor)`` pairs."""
        return _between(self._get(symbol).splits, start, end)

    def dividends_between(
        self, symbol: str, start: datetime | None, end: datetime
    ) -> list[tuple[datetime, Decimal]]:
        """Per-share dividends in ``(start, end]`` as ``(date, amount)`` pairs."""
        return _between(self._get(symbol).dividends, start, end)

    def _get(self, symbol: str) -> _AssetSeries:
        try:
            return self._series[symbol]
        except KeyError:
            raise QuoteUnavailable(symbol, "unknown symbol") from None


def _between(events, start: datetime | None, end: datetime):
    end = ensure_utc(end)
    start = ensure_utc(start) if start is not None else None
    return [
        (when, value)
        for when, value in events
        if (start is None or when > start) and when <= end
    ]


def _to_decimal(value) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
