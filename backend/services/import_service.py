"""Import of a Ghostfolio export into portfolios, institutions and transactions.

Mapping:
    platforms  -> institutions (reused when the name already exists)
    accounts   -> portfolios (excluded accounts are skipped)
    activities -> transactions (BUY -> Buy, SELL -> Sell, anything else ->
                  Dividend; ``fee`` becomes the commission)

Rows that fail are reported in ``errors`` and do not stop the import.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.orm import Session

from models import Currency
from schemas.transfer import GhostfolioExport
from services.asset_service import AssetService
from services.exceptions import WalletError
from services.ledger_service import TransactionType
from services.portfolio_service import PortfolioService
from services.transaction_service import TransactionService
from utils.dates import ensure_utc
from utils.ticker import normalize_symbol

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = {
    "BUY": TransactionType.BUY,
    "SELL": TransactionType.SELL,
}

PROVIDER_DATA_SOURCE = "YAHOO"


@dataclass
class ImportResult:
    portfolios: int = 0
    institutions: int = 0
    transactions: int = 0
    assets: int = 0
    errors: list[str] = field(default_factory=list)


class ImportService:
    """Imports Ghostfolio exports for one user."""

    @staticmethod
    def import_ghostfolio(db: Session, user_id: int, payload: GhostfolioExport) -> ImportResult:
        result = ImportResult()
        institution_map: dict[str, int] = {}
        portfolio_map: dict[str, int] = {}

        for platform in payload.platforms:
            try:
                institution, created = PortfolioService.get_or_create_institution(
                    db, platform.name, website=platform.url
                )
            except ValueError as e:
                result.errors.append(f"Error processing institution {platform.name!r}: {e}")
                continue
            institution_map[platform.id] = institution.id
            if created:
                result.institutions += 1

        currencies = {c.code.upper(): c for c in db.query(Currency).all()}
        for account in payload.accounts:
            if account.isExcluded:
                logger.info("Skipping excluded account %s", account.name)
                continue
            currency = currencies.get(account.currency.upper())
            if currency is None:
                result.errors.append(
                    f"Currency {account.currency!r} not found for account {account.name!r}"
                )
                continue
            institution_id = institution_map.get(account.platformId) if account.platformId else None
            if account.platformId and institution_id is None:
                result.errors.append(
                    f"Institution not found for account {account.name!r} (platformId: {account.platformId})"
                )
                continue
            try:
                portfolio = PortfolioService.create_portfolio(
                    db,
                    user_id,
                    name=account.name,
                    currency_id=currency.id,
                    institution_id=institution_id,
                    type="Investment",
                    tags=account.comment or "",
                    cash_balance=Decimal(str(account.balance or 0)),
                )
            except (ValueError, WalletError) as e:
                result.errors.append(f"Error creating portfolio {account.name!r}: {e}")
                continue
            portfolio_map[account.id] = portfolio.id
            result.portfolios += 1

        # Chronological order so sells find the shares bought before them
        for activity in sorted(payload.activities, key=lambda a: ensure_utc(a.date)):
            portfolio_id = portfolio_map.get(activity.accountId)
            if portfolio_id is None:
                result.errors.append(
                    f"Portfolio not found for activity {activity.symbol} (accountId: {activity.accountId})"
                )
                continue
            try:
                if activity.dataSource != PROVIDER_DATA_SOURCE and ImportService._ensure_manual_asset(
                    db, activity.symbol, activity.currency
                ):
                    result.assets += 1
                TransactionService.create_transaction(
                    db,
                    user_id,
                    {
                        "portfolio_id": portfolio_id,
                        "date": activity.date,
                        "type": ACTIVITY_TYPES.get(activity.type.upper(), TransactionType.DIVIDEND),
                        "asset_symbol": activity.symbol,
                        "quantity": activity.quantity,
                        "price": activity.unitPrice,
                        "commission": activity.fee or 0,
                        "tax": 0,
                        "tags": ", ".join(activity.tags or []),
                        "notes": activity.comment or "",
                    },
                )
            except (ValueError, WalletError) as e:
                result.errors.append(f"Error creating transaction for {activity.symbol}: {e}")
                continue
            result.transactions += 1

        logger.info(
            "Ghostfolio import: %d institutions, %d portfolios, %d transactions, %d errors",
            result.institutions, result.portfolios, result.transactions, len(result.errors),
        )
        return result

    @staticmethod
    def _ensure_manual_asset(db: Session, symbol: str, currency: str | None) -> bool:
        """Create an empty manual asset for a non-provider symbol if missing."""
        if not currency or AssetService.get_asset(db, symbol) is not None:
            return False
        AssetService.create_manual(db, normalize_symbol(symbol), currency)
        return True
