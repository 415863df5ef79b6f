"""Service for assets: provider lookups, manual entry, and quote refresh."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from integrations.market_data_protocol import HistoricalSeries
from models import Asset
from services.exceptions import QuoteUnavailable
from services.market_data_service import MarketDataService
from services.quote_cache import AssetQuoteCache
from utils.dates import parse_quote_date
from utils.trading_hours import FetchDecision, should_fetch_data
from utils.ticker import is_cash_symbol, normalize_symbol

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 5 * 365


def merge_quotes(existing: list[dict], incoming: list[dict]) -> list[dict]:
    """Merge two quote lists into one with strictly increasing dates.

    Incoming quotes replace existing ones on the same date.
    """
    by_date: dict[datetime, dict] = {}
    for quote in list(existing) + list(incoming):
        if not quote.get("date"):
            continue
        by_date[parse_quote_date(quote["date"])] = quote
    return [by_date[when] for when in sorted(by_date)]


def merge_events(existing: list[dict], incoming: list[dict]) -> list[dict]:
    """Merge event lists keyed by their epoch-ms ``date``, sorted ascending."""
    by_date: dict[int, dict] = {}
    for event in list(existing) + list(incoming):
        by_date[int(float(event["date"]))] = event
    return [by_date[key] for key in sorted(by_date)]


class AssetService:
    """Service for resolving, creating and refreshing assets."""

    @staticmethod
    def get_asset(db: Session, symbol: str) -> Asset | None:
        return db.query(Asset).filter(Asset.symbol == normalize_symbol(symbol)).first()

    @staticmethod
    def list_assets(db: Session) -> list[Asset]:
        return db.query(Asset).order_by(Asset.symbol).all()

    @staticmethod
    def build_cache(db: Session, symbols: set[str] | None = None) -> AssetQuoteCache:
        query = db.query(Asset)
        if symbols is not None:
            if not symbols:
                return AssetQuoteCache()
            query = query.filter(Asset.symbol.in_(symbols))
        return AssetQuoteCache.from_assets(query.all())

    @staticmethod
    def get_or_fetch(
        db: Session,
        symbol: str,
        market_data: MarketDataService,
        start: datetime | None = None,
    ) -> Asset:
        """Return the stored asset, fetching it from the provider on first use.

        Raises:
            QuoteUnavailable: If the symbol is not stored and the provider
                cannot supply it.
        """
        symbol = normalize_symbol(symbol)
        asset = AssetService.get_asset(db, symbol)
        if asset is not None:
            return asset

        end = datetime.now(timezone.utc)
        start = start or end - timedelta(days=DEFAULT_HISTORY_DAYS)
        series = market_data.historical_series(symbol, start, end, "1d")
        if not series.metadata.currency:
            raise QuoteUnavailable(symbol, "provider did not report a currency")

        asset = Asset(symbol=symbol, is_from_api=True, quotes=[], events={"dividends": [], "splits": []})
        AssetService._apply_series(asset, series)
        db.add(asset)
        db.flush()
        logger.info("Fetched asset %s with %d quotes", symbol, len(asset.quotes))
        return asset

    @staticmethod
    def create_manual(
        db: Session,
        symbol: str,
        currency: str,
        quotes: list[dict] | None = None,
        long_name: str | None = None,
        instrument_type: str | None = None,
    ) -> Asset:
        """Create a manually maintained asset.

        Raises:
            ValueError: If the symbol exists, is the cash pseudo-symbol, or
                the quotes carry an unparseable date.
        """
        symbol = normalize_symbol(symbol)
        if is_cash_symbol(symbol):
            raise ValueError(f"{symbol} is reserved for cash movements")
        if AssetService.get_asset(db, symbol) is not None:
            raise ValueError(f"Asset {symbol} already exists")

        try:
            merged = merge_quotes([], quotes or [])
        except ValueError as e:
            raise ValueError(f"Invalid quote date for {symbol}: {e}") from e

        asset = Asset(
            symbol=symbol,
            currency=currency.strip().upper(),
            long_name=long_name,
            short_name=long_name,
            instrument_type=instrument_type or "MANUAL",
            quotes=merged,
            events={"dividends": [], "splits": []},
            is_from_api=False,
        )
        db.add(asset)
        db.flush()
        logger.info("Created manual asset %s (%d quotes)", symbol, len(merged))
        return asset

    @staticmethod
    def add_manual_quotes(db: Session, symbol: str, quotes: list[dict]) -> Asset:
        """Merge hand-entered quotes into a manual asset."""
        asset = AssetService.get_asset(db, symbol)
        if asset is None:
            raise ValueError(f"Asset {symbol} not found")
        if asset.is_from_api:
            raise ValueError(f"Asset {asset.symbol} is provider-sourced; refresh it instead")
        asset.quotes = merge_quotes(asset.quotes or [], quotes)
        db.flush()
        return asset

    @staticmethod
    def refresh(
        db: Session,
        symbol: str,
        market_data: MarketDataService,
        force: bool = False,
        now: datetime | None = None,
    ) -> Asset:
        """Fetch quotes newer than the last cached one and merge them in.

        Unless ``force`` is set, the provider is skipped when the asset is
        already current for its exchange (see ``should_fetch_data``).

        Raises:
            ValueError: If the asset does not exist or is manual.
            QuoteUnavailable: If the provider fails.
        """
        asset = AssetService.get_asset(db, symbol)
        if asset is None:
            raise ValueError(f"Asset {symbol} not found")
        if not asset.is_from_api:
            raise ValueError(f"Asset {asset.symbol} is manual and is never refreshed")

        decision = AssetService.fetch_decision(asset, force=force, now=now)
        if not decision.should_fetch:
            logger.debug("Skipping refresh of %s: %s", asset.symbol, decision.reason)
            return asset

        end = datetime.now(timezone.utc)
        quotes = asset.quotes or []
        if quotes:
            start = parse_quote_date(quotes[-1]["date"])
        else:
            start = end - timedelta(days=DEFAULT_HISTORY_DAYS)

        series = market_data.historical_series(asset.symbol, min(start, end), end, "1d")
        before = len(quotes)
        AssetService._apply_series(asset, series)
        db.flush()
        logger.info("Refreshed %s: %d new quotes", asset.symbol, len(asset.quotes) - before)
        return asset

    @staticmethod
    def refresh_all(
        db: Session, market_data: MarketDataService, force: bool = False, now: datetime | None = None
    ) -> dict[str, list[str]]:
        """Refresh every provider-sourced asset; manual assets are ignored.

        Assets whose data is already current for their market are reported
        under ``skipped``.
        """
        refreshed: list[str] = []
        failed: list[str] = []
        skipped: list[str] = []
        assets = db.query(Asset).filter(Asset.is_from_api.is_(True)).order_by(Asset.symbol).all()
        for asset in assets:
            if not AssetService.fetch_decision(asset, force=force, now=now).should_fetch:
                skipped.append(asset.symbol)
                continue
            try:
                AssetService.refresh(db, asset.symbol, market_data, force=True)
                refreshed.append(asset.symbol)
            except QuoteUnavailable as e:
                logger.warning("Refresh failed for %s: %s", asset.symbol, e)
                failed.append(asset.symbol)
        logger.info(
            "Refreshed %d assets (%d failed, %d skipped)", len(refreshed), len(failed), len(skipped)
        )
        return {"refreshed": refreshed, "failed": failed, "skipped": skipped}

    @staticmethod
    def fetch_decision(asset: Asset, force: bool = False, now: datetime | None = None) -> FetchDecision:
        return should_fetch_data(
            asset.exchange_name,
            asset.exchange_timezone_name,
            last_updated=asset.updated_at,
            force=force,
            now=now,
        )

    @staticmethod
    def _apply_series(asset: Asset, series: HistoricalSeries) -> None:
        meta = series.metadata
        asset.currency = meta.currency or asset.currency
        asset.exchange_name = meta.exchange_name or asset.exchange_name
        asset.full_exchange_name = meta.full_exchange_name or asset.full_exchange_name
        asset.instrument_type = meta.instrument_type or asset.instrument_type
        asset.timezone = meta.timezone or asset.timezone
        asset.exchange_timezone_name = meta.exchange_timezone_name or asset.exchange_timezone_name
        asset.long_name = meta.long_name or asset.long_name
        asset.short_name = meta.short_name or asset.short_name

        # Reassign JSON columns so the change is tracked
        asset.quotes = merge_quotes(asset.quotes or [], [p.to_quote() for p in series.points])
        events = asset.events or {}
        asset.events = {
            "dividends": merge_events(events.get("dividends", []), [d.to_event() for d in series.dividends]),
            "splits": merge_events(events.get("splits", []), [s.to_event() for s in series.splits]),
        }
