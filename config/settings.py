"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Matcher values here feed MatcherConfig.from_settings().
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL"
    )
    supabase_key: Optional[str] = Field(
        None,
        description="Supabase anon/public key"
    )

    # ===================
    # TIER CONFIDENCE FLOORS
    # ===================
    tier1_confidence: float = Field(
        default=0.95,
        ge=0,
        le=1,
        description="Reference confidence for exact matches"
    )
    tier2_confidence: float = Field(
        default=0.85,
        ge=0,
        le=1,
        description="Reference confidence for country averages"
    )
    tier3_confidence: float = Field(
        default=0.75,
        ge=0,
        le=1,
        description="Reference confidence for EU averages"
    )
    tier4_confidence: float = Field(
        default=0.65,
        ge=0,
        le=1,
        description="Reference confidence for global sector averages"
    )

    # ===================
    # METHOD CONFIDENCE
    # ===================
    vat_lookup_confidence: float = Field(
        default=0.95,
        ge=0,
        le=1,
        description="Base confidence when the NACE code came from the VAT cache"
    )
    account_mapping_confidence: float = Field(
        default=0.85,
        ge=0,
        le=1,
        description="Base confidence for company account-code mappings"
    )
    supplier_mapping_confidence: float = Field(
        default=0.75,
        ge=0,
        le=1,
        description="Base confidence for learned supplier-name mappings"
    )

    # ===================
    # TIER PENALTIES
    # ===================
    tier2_penalty: float = Field(
        default=-0.10,
        ge=-1,
        le=0,
        description="Confidence adjustment for a country-average factor"
    )
    tier3_penalty: float = Field(
        default=-0.20,
        ge=-1,
        le=0,
        description="Confidence adjustment for an EU-average factor"
    )
    tier4_penalty: float = Field(
        default=-0.30,
        ge=-1,
        le=0,
        description="Confidence adjustment for a global sector average"
    )

    # ===================
    # LEARNING / CACHING
    # ===================
    enable_learning: bool = Field(
        default=True,
        description="Increment supplier mapping usage counters on match"
    )
    cache_vat: bool = Field(
        default=True,
        description="Consult the VAT registry cache during matching"
    )
    vat_cache_ttl_hours: int = Field(
        default=24,
        ge=1,
        le=24 * 365,
        description="Hours a VAT cache entry stays valid"
    )
    base_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency emission intensities are expressed in"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed browser origins (JSON list in env)"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase credentials are present."""
        return bool(self.supabase_url and self.supabase_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
