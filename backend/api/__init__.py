"""API route handlers."""
from . import assets, auth, currencies, export, import_data, institutions, portfolios, transactions

__all__ = ["assets", "auth", "currencies", "export", "import_data", "institutions", "portfolios", "transactions"]
