"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "Storefront Sync API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (document store backend)
    database_url: str = "sqlite+aiosqlite:///./storefront_sync.db"
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_echo: bool = False

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Storefronts that hold replica products, e.g. "LUNERA,FIVESTARFINDS"
    storefronts_str: str = Field(default="LUNERA", alias="STOREFRONTS")

    @property
    def storefronts(self) -> List[str]:
        """Parse the configured storefront list."""
        return [s.strip() for s in self.storefronts_str.split(",") if s.strip()]

    # Shopify
    shopify_store_url: Optional[str] = None
    shopify_access_token: Optional[str] = None
    shopify_api_version: str = "2025-10"
    shopify_storefront_access_token: Optional[str] = None
    shopify_webhook_secret: Optional[str] = None
    shopify_request_timeout: float = 30.0

    # Admin endpoints
    admin_api_key: Optional[str] = None

    # Reconciliation
    cart_price_tolerance: float = 0.01
    default_delivery_estimate_days: str = "7-10"

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
