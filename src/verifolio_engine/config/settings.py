"""Configuration settings for the Verifolio tool-call engine."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file.

    The ``fallback_*`` values are the documented defaults used when a
    company has not configured its own currency, tax rate or numbering
    patterns. They are never used to override a configured value.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage (Supabase / PostgREST)
    supabase_url: str = Field(
        default="http://localhost:54321", validation_alias="SUPABASE_URL"
    )
    supabase_service_key: SecretStr = Field(..., validation_alias="SUPABASE_SERVICE_KEY")
    store_timeout: float = Field(default=30.0, validation_alias="STORE_TIMEOUT")
    store_max_retries: int = Field(default=3, validation_alias="STORE_MAX_RETRIES")

    # Documented fallbacks for absent company settings
    fallback_currency: str = Field(default="EUR", validation_alias="FALLBACK_CURRENCY")
    fallback_tax_rate: Decimal = Field(
        default=Decimal("20"), validation_alias="FALLBACK_TAX_RATE"
    )
    fallback_quote_pattern: str = Field(
        default="DEV-{000}-{YY}", validation_alias="FALLBACK_QUOTE_PATTERN"
    )
    fallback_invoice_pattern: str = Field(
        default="FA-{000}-{YY}", validation_alias="FALLBACK_INVOICE_PATTERN"
    )
    fallback_delivery_note_pattern: str = Field(
        default="BL-{000}-{YY}", validation_alias="FALLBACK_DELIVERY_NOTE_PATTERN"
    )

    # Public links handed back to the planner
    public_proposal_path: str = Field(default="/p/", validation_alias="PUBLIC_PROPOSAL_PATH")
    public_brief_path: str = Field(default="/b/", validation_alias="PUBLIC_BRIEF_PATH")
    public_review_path: str = Field(default="/r/", validation_alias="PUBLIC_REVIEW_PATH")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
