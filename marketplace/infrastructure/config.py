"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://marketplace:marketplace_dev_password@db:5432/marketplace"
    create_schema: bool = False

    # Authentication
    api_key: str = "dev-api-key-change-in-production"

    # Orders
    currency: str = "COP"
    reserve_stock_on_create: bool = False

    # Payment gateways
    stripe_api_key: str = ""
    stripe_api_url: str = "https://api.stripe.com"
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_api_url: str = "https://api-m.sandbox.paypal.com"
    gateway_timeout_seconds: float = 10.0

    # Order cache
    order_cache_enabled: bool = True
    order_cache_ttl_seconds: int = 300

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
