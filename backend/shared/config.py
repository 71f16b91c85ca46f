"""
Centralized configuration for the vARY backend.

All settings are loaded from environment variables with sensible defaults.
Module-specific settings should be namespaced (e.g., STRIPE_*, SUPABASE_*).
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
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
    app_name: str = "vARY API"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Storage backend for ledger and access state: "memory" or "supabase"
    store_backend: str = "memory"

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    supabase_jwt_secret: str = ""
    supabase_db_url: str = ""

    # Stripe (loaded by billing module)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_light_price_id: str = ""
    stripe_heavy_price_id: str = ""
    light_monthly_credits: Decimal = Decimal("14.99")
    heavy_monthly_credits: Decimal = Decimal("19.99")

    # Credits
    max_credit_grant: Decimal = Decimal("1000")
    admin_free_generations: bool = True
    admin_emails: list[str] = []
    stale_charge_minutes: int = 30

    # Model catalog
    model_catalog_path: Path = Path(__file__).parent.parent / "config" / "models.yaml"
    model_cost_cache_ttl: int = 300  # seconds

    # Level progression
    level_unique_model_step: int = 5
    level_generation_step: int = 5
    max_level: int = 10

    # Generation provider API keys
    fal_api_key: str = ""
    replicate_api_token: str = ""
    google_ai_api_key: str = ""
    provider_timeout: float = 120.0

    # Frontend URLs (for redirects)
    frontend_url: str = "http://localhost:3000"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
