"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
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
    supabase_url: str = Field(
        default="http://localhost:54321",
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        default="",
        description="Supabase anon/public key"
    )

    # ===================
    # TENANCY
    # ===================
    default_tenant_id: Optional[str] = Field(
        None,
        description="Tenant used when a request carries no X-Tenant-Id header"
    )

    # ===================
    # ORDER IMPORT
    # ===================
    import_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        le=600,
        description="Seconds to wait for the bulk order write before giving up"
    )
    large_import_threshold: int = Field(
        default=1000,
        ge=1,
        description="Row count that requires explicit acknowledgment before import"
    )
    import_chunk_size: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Rows per upsert request during bulk import"
    )
    import_session_ttl_minutes: int = Field(
        default=30,
        ge=1,
        le=24 * 60,
        description="Minutes an import wizard session is kept in memory"
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

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


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
