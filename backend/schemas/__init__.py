"""Pydantic schemas for API request/response validation."""

from .asset import (
    AssetDetailResponse,
    AssetResponse,
    HistoryResponse,
    ManualAssetCreate,
    PricePointResponse,
    QuoteInput,
    RefreshAllResponse,
    SymbolMatchResponse,
)
from .currency import (
    ConversionResponse,
    CurrencyCreate,
    CurrencyResponse,
    RefreshRatesResponse,
    SetDefaultCurrencyRequest,
    UpdateRatesRequest,
)
from .portfolio import (
    HoldingResponse,
    HoldingsReportResponse,
    InstitutionCreate,
    InstitutionResponse,
    PortfolioCreate,
    PortfolioResponse,
    PortfolioUpdate,
)
from .transaction import (
    DuplicateRequest,
    LedgerEntryResponse,
    OccurrenceResponse,
    RecurrenceBuildRequest,
    RecurrenceDescription,
    RecurrenceRunResponse,
    RecurringTemplateResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from .transfer import ExportResponse, GhostfolioExport, ImportResponse
from .user import UserResponse

__all__ = [
    "AssetDetailResponse",
    "AssetResponse",
    "ConversionResponse",
    "CurrencyCreate",
    "CurrencyResponse",
    "DuplicateRequest",
    "ExportResponse",
    "GhostfolioExport",
    "HistoryResponse",
    "HoldingResponse",
    "HoldingsReportResponse",
    "ImportResponse",
    "InstitutionCreate",
    "InstitutionResponse",
    "LedgerEntryResponse",
    "ManualAssetCreate",
    "OccurrenceResponse",
    "PortfolioCreate",
    "PortfolioResponse",
    "PortfolioUpdate",
    "PricePointResponse",
    "QuoteInput",
    "RecurrenceBuildRequest",
    "RecurrenceDescription",
    "RecurrenceRunResponse",
    "RecurringTemplateResponse",
    "RefreshAllResponse",
    "RefreshRatesResponse",
    "SetDefaultCurrencyRequest",
    "SymbolMatchResponse",
    "TransactionCreate",
    "TransactionResponse",
    "TransactionUpdate",
    "UpdateRatesRequest",
    "UserResponse",
]
