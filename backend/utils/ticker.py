"""Utility functions for handling asset symbols."""

CASH_SYMBOL = "Cash"


def normalize_symbol(symbol: str) -> str:
    """Normalize a user-entered symbol (strip, uppercase).

    The cash pseudo-symbol keeps its canonical spelling.
    """
    stripped = symbol.strip()
    if is_cash_symbol(stripped):
        return CASH_SYMBOL
    return stripped.upper()


def is_cash_symbol(symbol: str) -> bool:
    """Check if a symbol denotes the cash pseudo-asset used by Deposit/Withdraw."""
    return symbol.strip().lower() == CASH_SYMBOL.lower()
