"""Application configuration using pydantic-settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./wallet.db"

    # Currencies: every stored exchange rate converts 1 unit of a currency
    # into this fixed reference currency.
    REFERENCE_CURRENCY: str = "USD"

    # Recurring transactions
    RECURRENCE_TIMEZONE: str = "UTC"

    # Quote provider
    QUOTE_TIMEOUT_SECONDS: float = 10.0

    # Aggregation policy
    ALLOW_SHORT_POSITIONS: bool = False
    INCLUDE_ASSET_DIVIDENDS: bool = False

    # Identity
    SESSION_TTL_HOURS: int = 24 * 7

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    @field_validator("REFERENCE_CURRENCY", mode="before")
    @classmethod
    def normalize_reference_currency(cls, v: str) -> str:
        """Uppercase the reference currency and require a 3-letter ISO code."""
        normalized = str(v).strip().upper()
        if len(normalized) != 3 or not normalized.isalpha():
            raise ValueError(f"REFERENCE_CURRENCY must be a 3-letter ISO code, got {v!r}")
        return normalized

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
