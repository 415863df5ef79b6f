"""Domain exceptions raised by the aggregation and recurrence core.

Every error carries enough context (symbol, date, portfolio id) for the
API layer to render a user-facing message without leaking storage errors.
"""

from datetime import datetime


class WalletError(Exception):
    """Base exception for all domain errors."""

    def __init__(
        self,
        message: str,
        *,
        symbol: str | None = None,
        date: datetime | None = None,
        portfolio_id: int | None = None,
    ):
        self.symbol = symbol
        self.date = date
        self.portfolio_id = portfolio_id
        super().__init__(message)

    def context(self) -> dict:
        """Return the non-empty context fields as a JSON-friendly dict."""
        ctx: dict = {}
        if self.symbol is not None:
            ctx["symbol"] = self.symbol
        if self.date is not None:
            ctx["date"] = self.date.isoformat()
        if self.portfolio_id is not None:
            ctx["portfolio_id"] = self.portfolio_id
        return ctx


class InvalidRecurrence(WalletError):
    """Recurrence spec is neither a known shorthand nor a valid 5-field cron."""

    def __init__(self, spec: str, reason: str = ""):
        self.spec = spec
        message = f"Invalid recurrence {spec!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnknownCurrency(WalletError):
    """A currency id or code is not present in the conversion table."""

    def __init__(self, currency: int | str):
        self.currency = currency
        super().__init__(f"Unknown currency: {currency}")


class NoDataBefore(WalletError):
    """No quote exists at or before the requested instant."""

    def __init__(self, symbol: str, as_of: datetime):
        super().__init__(
            f"No price for {symbol} at or before {as_of.isoformat()}",
            symbol=symbol,
            date=as_of,
        )


class OverdraftSell(WalletError):
    """A Sell (or outgoing Transfer) exceeds the quantity currently held."""

    def __init__(self, symbol, requested, held, *, portfolio_id=None, date=None):
        self.requested = requested
        self.held = held
        super().__init__(
            f"Cannot remove {requested} {symbol}: only {held} held",
            symbol=symbol,
            date=date,
            portfolio_id=portfolio_id,
        )


class QuoteUnavailable(WalletError):
    """The quote provider or the cache has no usable price for a symbol."""

    def __init__(self, symbol: str, reason: str = ""):
        message = f"Quote unavailable for {symbol}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, symbol=symbol)


class Unauthorized(WalletError):
    """Missing, unknown or expired session credentials."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
