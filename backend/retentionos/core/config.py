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
    )

    # Application
    app_name: str = "RetentionOS API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (async SQLAlchemy URL; postgresql:// is upgraded to asyncpg)
    database_url: str = "postgresql+asyncpg://localhost:5432/retentionos"
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Security
    secret_key: str = Field(min_length=32)
    encryption_key: str = Field(min_length=32)
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Public origin of the dashboard, used for OAuth redirects
    site_url: str = "http://localhost:3000"

    # Shopify (optional for initial deployment - OAuth disabled without these)
    shopify_api_key: Optional[str] = None
    shopify_api_secret: Optional[str] = None
    shopify_scopes: str = "read_products,read_orders,read_customers,read_analytics"
    shopify_api_version: str = "2023-10"
    shopify_timeout_seconds: float = 30.0
    oauth_state_max_age: int = 600  # 10 minutes

    # Sync
    sync_page_size: int = Field(default=250, ge=1, le=250)
    sync_max_pages: int = Field(default=0, ge=0)  # 0 = follow every page

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
