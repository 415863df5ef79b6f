"""Pydantic schemas for data export and Ghostfolio import."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from schemas.portfolio import InstitutionResponse, PortfolioResponse
from schemas.transaction import TransactionResponse


class ExportResponse(BaseModel):
    """A user's data: real portfolios, their transactions and institutions."""

    portfolios: list[PortfolioResponse]
    transactions: list[TransactionResponse]
    institutions: list[InstitutionResponse]


class GhostfolioPlatform(BaseModel):
    id: str
    name: str
    url: str | None = None


class GhostfolioAccount(BaseModel):
    id: str
    name: str
    currency: str
    platformId: str | None = None
    balance: float = 0
    comment: str | None = None
    isExcluded: bool = False


class GhostfolioActivity(BaseModel):
    accountId: str
    type: str
    symbol: str
    date: datetime
    quantity: float
    unitPrice: float
    fee: float = 0
    currency: str | None = None
    dataSource: str | None = None
    comment: str | None = None
    tags: list[str] | None = None


class GhostfolioExport(BaseModel):
    """The subset of a Ghostfolio export the importer reads."""

    platforms: list[GhostfolioPlatform]
    accounts: list[GhostfolioAccount]
    activities: list[GhostfolioActivity]

    model_config = ConfigDict(extra="ignore")


class ImportResponse(BaseModel):
    success: bool
    message: str
    portfolios: int
    institutions: int
    transactions: int
    assets: int
    errors: list[str] = []
