"""Portfolio aggregator: replays the ledger into holdings and valuations.

Every real portfolio is replayed in one chronological pass over the whole
ledger, so a transfer reads its source position exactly as it stood at the
transfer date. The "All" portfolio is then the symbol-wise sum of the real
portfolios, reported in the default currency.

Averaging uses the weighted-average-cost method. Buy commission and tax are
accumulated in ``fees`` and kept out of the average cost; sell fees reduce
realized P&L.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from config import settings
from services.currency_service import CurrencyTable
from services.exceptions import NoDataBefore, OverdraftSell, QuoteUnavailable, UnknownCurrency, WalletError
from services.ledger_service import (
    ALL_PORTFOLIO_ID,
    ZERO,
    ConcreteTransaction,
    TransactionLedger,
    TransactionType,
)
from services.quote_cache import AssetQuoteCache
from utils.dates import ensure_utc, utc_now
from utils.ticker import is_cash_symbol

logger = logging.getLogger(__name__)


@dataclass
class HoldingReport:
    """A single position as of the report date, in the reporting currency."""

    symbol: str
    quantity: Decimal
    average_cost: Decimal
    cost_basis: Decimal
    current_value: Decimal | None
    unrealized_gain_loss: Decimal | None
    realized_gain_loss: Decimal = ZERO
    dividend_income: Decimal = ZERO
    fees: Decimal = ZERO
    price: Decimal | None = None
    value_error: str | None = None


@dataclass
class PortfolioReport:
    """Holdings and totals for one portfolio (or the "All" aggregate)."""

    portfolio_id: int
    currency_id: int
    currency_code: str
    as_of: datetime | None
    holdings: dict[str, HoldingReport] = field(default_factory=dict)
    cash_balance: Decimal = ZERO
    realized_gain_loss: Decimal = ZERO
    dividend_income: Decimal = ZERO
    fees: Decimal = ZERO
    errors: list[dict] = field(default_factory=list)

    @property
    def holdings_value(self) -> Decimal:
        """Sum of the known holding values."""
        return sum(
            (h.current_value for h in self.holdings.values() if h.current_value is not None),
            ZERO,
        )

    @property
    def total_value(self) -> Decimal:
        return self.cash_balance + self.holdings_value

    @property
    def has_unknown_values(self) -> bool:
        return any(h.current_value is None for h in self.holdings.values())


@dataclass
class _Position:
    symbol: str
    quantity: Decimal = ZERO
    average_cost: Decimal = ZERO
    realized_gain_loss: Decimal = ZERO
    dividend_income: Decimal = ZERO
    fees: Decimal = ZERO
    # Corporate actions have been applied up to this instant
    adjusted_to: datetime | None = None

    def add(self, quantity: Decimal, unit_cost: Decimal) -> None:
        new_quantity = self.quantity + quantity
        if new_quantity == 0:
            self.average_cost = ZERO
        elif self.quantity <= 0:
            self.average_cost = unit_cost
        else:
            self.average_cost = (self.quantity * self.average_cost + quantity * unit_cost) / new_quantity
        self.quantity = new_quantity


@dataclass
class _PortfolioState:
    portfolio_id: int
    currency_id: int
    cash_balance: Decimal = ZERO
    positions: dict[str, _Position] = field(default_factory=dict)
    errors: list[dict] = field(default_factory=list)

    def position(self, symbol: str) -> _Position:
        if symbol not in self.positions:
            self.positions[symbol] = _Position(symbol=symbol)
        return self.positions[symbol]


class PortfolioAggregator:
    """Computes holdings for a user's portfolios from a ledger snapshot.

    Args:
        ledger: The user's transaction ledger.
        quotes: Quote cache covering the traded symbols.
        currencies: Currency conversion table.
        portfolio_currencies: Real portfolio id -> reporting currency id.
        opening_cash: Real portfolio id -> opening cash balance.
        allow_short: Let sells and transfers exceed the held quantity.
        include_asset_dividends: Credit cached dividend events to holders.
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        quotes: AssetQuoteCache,
        currencies: CurrencyTable,
        portfolio_currencies: dict[int, int],
        opening_cash: dict[int, Decimal] | None = None,
        allow_short: bool | None = None,
        include_asset_dividends: bool | None = None,
    ):
        self.ledger = ledger
        self.quotes = quotes
        self.currencies = currencies
        self.portfolio_currencies = dict(portfolio_currencies)
        self.opening_cash = opening_cash or {}
        self.allow_short = settings.ALLOW_SHORT_POSITIONS if allow_short is None else allow_short
        self.include_asset_dividends = (
            settings.INCLUDE_ASSET_DIVIDENDS if include_asset_dividends is None else include_asset_dividends
        )

    def compute_holdings(self, portfolio_id: int, as_of: datetime | None = None) -> PortfolioReport:
        """Holdings of one real portfolio, or of "All" for ``ALL_PORTFOLIO_ID``.

        Raises:
            ValueError: If ``portfolio_id`` is not one of the known portfolios.
        """
        as_of = ensure_utc(as_of) if as_of is not None else None
        if portfolio_id != ALL_PORTFOLIO_ID and portfolio_id not in self.portfolio_currencies:
            raise ValueError(f"Portfolio {portfolio_id} not found")

        states = self._replay(as_of)
        if portfolio_id == ALL_PORTFOLIO_ID:
            return self._combine(states, as_of)
        return self._report(states[portfolio_id], as_of)

    def compute_all(self, as_of: datetime | None = None) -> dict[int, PortfolioReport]:
        """Reports for every real portfolio plus "All", from a single replay."""
        as_of = ensure_utc(as_of) if as_of is not None else None
        states = self._replay(as_of)
        reports = {pid: self._report(state, as_of) for pid, state in states.items()}
        reports[ALL_PORTFOLIO_ID] = self._combine(states, as_of)
        return reports

    # -- replay -----------------------------------------------------------

    def _replay(self, as_of: datetime | None) -> dict[int, _PortfolioState]:
        states = {
            pid: _PortfolioState(
                portfolio_id=pid,
                currency_id=currency_id,
                cash_balance=Decimal(str(self.opening_cash.get(pid, ZERO))),
            )
            for pid, currency_id in self.portfolio_currencies.items()
        }

        transactions = self.ledger.concrete_transactions(end=as_of)
        for tx in transactions:
            state = states.get(tx.portfolio_id)
            if state is None:
                continue
            try:
                self._apply(states, state, tx)
            except (OverdraftSell, UnknownCurrency) as e:
                logger.info("Skipping transaction %s in portfolio %s: %s", tx.id, tx.portfolio_id, e)
                state.errors.append(_error_entry(tx, e))

        cutoff = as_of or utc_now()
        for state in states.values():
            for position in state.positions.values():
                self._roll_forward(state, position, cutoff)

        logger.debug("Replayed %d transactions over %d portfolios", len(transactions), len(states))
        return states

    def _apply(self, states: dict[int, _PortfolioState], state: _PortfolioState, tx: ConcreteTransaction) -> None:
        if tx.type == TransactionType.DEPOSIT:
            state.cash_balance += tx.gross_amount - tx.fees
            return
        if tx.type == TransactionType.WITHDRAW:
            state.cash_balance -= tx.gross_amount + tx.fees
            return
        if tx.type == TransactionType.TRANSFER and is_cash_symbol(tx.asset_symbol):
            target = states.get(tx.target_portfolio_id) if tx.target_portfolio_id is not None else None
            if target is not None:
                target.cash_balance += self.currencies.convert(
                    tx.quantity, state.currency_id, target.currency_id
                )
            state.cash_balance -= tx.quantity
            return

        # Validate and convert before touching any position
        price = self._to_portfolio(tx.price, tx.asset_symbol, state)
        fees = self._to_portfolio(tx.fees, tx.asset_symbol, state)
        position = state.positions.get(tx.asset_symbol) or _Position(symbol=tx.asset_symbol)
        self._roll_forward(state, position, tx.date)

        if tx.type == TransactionType.BUY:
            position.add(tx.quantity, price)
            position.fees += fees
        elif tx.type == TransactionType.SELL:
            self._check_quantity(position, tx)
            position.realized_gain_loss += tx.quantity * (price - position.average_cost) - fees
            position.quantity -= tx.quantity
        elif tx.type == TransactionType.DIVIDEND:
            position.dividend_income += tx.quantity * price - fees
        elif tx.type == TransactionType.TRANSFER:
            self._transfer(states, state, position, tx)

        if position.adjusted_to is None:
            position.adjusted_to = tx.date
        state.positions[tx.asset_symbol] = position

    def _transfer(
        self,
        states: dict[int, _PortfolioState],
        source: _PortfolioState,
        position: _Position,
        tx: ConcreteTransaction,
    ) -> None:
        self._check_quantity(position, tx)
        target = states.get(tx.target_portfolio_id) if tx.target_portfolio_id is not None else None
        unit_cost = position.average_cost
        if target is not None and target.currency_id != source.currency_id:
            unit_cost = self.currencies.convert(unit_cost, source.currency_id, target.currency_id)

        position.quantity -= tx.quantity
        if target is None:
            return
        target_position = target.position(tx.asset_symbol)
        self._roll_forward(target, target_position, tx.date)
        target_position.add(tx.quantity, unit_cost)
        if target_position.adjusted_to is None:
            target_position.adjusted_to = tx.date

    def _check_quantity(self, position: _Position, tx: ConcreteTransaction) -> None:
        if self.allow_short or tx.quantity <= position.quantity:
            return
        raise OverdraftSell(
            tx.asset_symbol,
            tx.quantity,
            position.quantity,
            portfolio_id=tx.portfolio_id,
            date=tx.date,
        )

    def _roll_forward(self, state: _PortfolioState, position: _Position, until: datetime) -> None:
        """Apply splits (and asset dividends, if enabled) up to ``until``."""
        if position.adjusted_to is None or position.symbol not in self.quotes:
            return
        if until <= position.adjusted_to:
            return

        since = position.adjusted_to
        if self.include_asset_dividends:
            for paid_at, amount in self.quotes.dividends_between(position.symbol, since, until):
                position.quantity, position.average_cost = self.quotes.apply_corporate_actions(
                    position.symbol, position.quantity, position.average_cost, since, paid_at
                )
                since = paid_at
                if position.quantity > 0:
                    try:
                        income = self._to_portfolio(amount, position.symbol, state) * position.quantity
                    except UnknownCurrency as e:
                        state.errors.append({"type": type(e).__name__, "message": str(e), **e.context()})
                        continue
                    position.dividend_income += income

        position.quantity, position.average_cost = self.quotes.apply_corporate_actions(
            position.symbol, position.quantity, position.average_cost, since, until
        )
        position.adjusted_to = until

    def _to_portfolio(self, amount: Decimal, symbol: str, state: _PortfolioState) -> Decimal:
        asset_currency = self.quotes.currency_of(symbol)
        if asset_currency is None:
            return amount
        target = self.currencies.get(state.currency_id)
        return self.currencies.convert_code(amount, asset_currency, target.code)

    # -- reporting --------------------------------------------------------

    def _report(self, state: _PortfolioState, as_of: datetime | None) -> PortfolioReport:
        currency = self.currencies.get(state.currency_id)
        report = PortfolioReport(
            portfolio_id=state.portfolio_id,
            currency_id=currency.id,
            currency_code=currency.code,
            as_of=as_of,
            cash_balance=state.cash_balance,
            errors=list(state.errors),
        )
        for symbol in sorted(state.positions):
            position = state.positions[symbol]
            holding = self._holding(
                symbol,
                position.quantity,
                position.quantity * position.average_cost,
                currency.code,
                as_of,
                realized=position.realized_gain_loss,
                dividends=position.dividend_income,
                fees=position.fees,
            )
            report.holdings[symbol] = holding
        self._add_totals(report)
        return report

    def _combine(self, states: dict[int, _PortfolioState], as_of: datetime | None) -> PortfolioReport:
        default = self.currencies.default_currency
        report = PortfolioReport(
            portfolio_id=ALL_PORTFOLIO_ID,
            currency_id=default.id,
            currency_code=default.code,
            as_of=as_of,
        )

        totals: dict[str, dict[str, Decimal]] = {}
        for state in states.values():
            report.errors.extend(state.errors)
            try:
                cash = self.currencies.convert(state.cash_balance, state.currency_id, default.id)
                converted = {
                    symbol: {
                        key: self.currencies.convert(amount, state.currency_id, default.id)
                        for key, amount in (
                            ("cost", position.quantity * position.average_cost),
                            ("realized", position.realized_gain_loss),
                            ("dividends", position.dividend_income),
                            ("fees", position.fees),
                        )
                    }
                    for symbol, position in state.positions.items()
                }
            except UnknownCurrency as e:
                report.errors.append({"type": type(e).__name__, "message": str(e), "portfolio_id": state.portfolio_id})
                continue

            report.cash_balance += cash
            for symbol, amounts in converted.items():
                bucket = totals.setdefault(
                    symbol, {"quantity": ZERO, "cost": ZERO, "realized": ZERO, "dividends": ZERO, "fees": ZERO}
                )
                bucket["quantity"] += state.positions[symbol].quantity
                for key, amount in amounts.items():
                    bucket[key] += amount

        for symbol in sorted(totals):
            bucket = totals[symbol]
            report.holdings[symbol] = self._holding(
                symbol,
                bucket["quantity"],
                bucket["cost"],
                default.code,
                as_of,
                realized=bucket["realized"],
                dividends=bucket["dividends"],
                fees=bucket["fees"],
            )
        self._add_totals(report)
        return report

    def _holding(
        self,
        symbol: str,
        quantity: Decimal,
        cost_basis: Decimal,
        currency_code: str,
        as_of: datetime | None,
        realized: Decimal,
        dividends: Decimal,
        fees: Decimal,
    ) -> HoldingReport:
        average_cost = cost_basis / quantity if quantity != 0 else ZERO
        holding = HoldingReport(
            symbol=symbol,
            quantity=quantity,
            average_cost=average_cost,
            cost_basis=cost_basis,
            current_value=None,
            unrealized_gain_loss=None,
            realized_gain_loss=realized,
            dividend_income=dividends,
            fees=fees,
        )
        if quantity == 0:
            holding.current_value = ZERO
            holding.unrealized_gain_loss = ZERO
            return holding

        try:
            price = self.quotes.latest_price(symbol) if as_of is None else self.quotes.historical_price(symbol, as_of)
            holding.price = self.currencies.convert_code(price, self.quotes.currency_of(symbol), currency_code)
        except (NoDataBefore, QuoteUnavailable, UnknownCurrency) as e:
            holding.value_error = str(e)
            return holding

        holding.current_value = quantity * holding.price
        holding.unrealized_gain_loss = holding.current_value - cost_basis
        return holding

    @staticmethod
    def _add_totals(report: PortfolioReport) -> None:
        for holding in report.holdings.values():
            report.realized_gain_loss += holding.realized_gain_loss
            report.dividend_income += holding.dividend_income
            report.fees += holding.fees


def _error_entry(tx: ConcreteTransaction, error: WalletError) -> dict:
    entry = {
        "transaction_id": tx.id,
        "template_id": tx.template_id,
        "type": type(error).__name__,
        "message": str(error),
    }
    entry.update(error.context())
    return entry
