"""Shared query parameter parsing utilities."""

from fastapi import HTTPException

from services.ledger_service import TransactionType


def parse_transaction_types(types: str | None) -> set[TransactionType] | None:
    """Parse a comma-separated list of transaction types.

    Args:
        types: e.g. ``"Buy,Sell"``, or None.

    Returns:
        Set of TransactionType members, or None if input is empty.

    Raises:
        HTTPException: If any value is not a known transaction type.
    """
    if not types:
        return None
    result = set()
    for raw in types.split(","):
        raw = raw.strip()
        if not raw:
            continue
        try:
            result.add(TransactionType(raw))
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid transaction type: {raw}",
            )
    return result if result else None
