"""
Configuration management.
Simple .env based config for VPS deployment.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    app_url: str = ""  # Public base URL, used for OAuth redirects

    # Security
    session_secret: str = "change-me-in-production-use-random-string"
    admin_password_hash: str = ""  # bcrypt hash

    # Database
    database_path: str = "./data/app.db"

    # Logging
    log_level: str = "INFO"

    # StockX
    stockx_client_id: str = ""
    stockx_client_secret: str = ""
    stockx_api_key: str = ""
    stockx_api_url: str = "https://api.stockx.com/v2"
    stockx_auth_url: str = "https://accounts.stockx.com"
    stockx_currency: str = "EUR"
    token_backend: str = "file"  # "file" or "database"
    token_path: str = "/tmp/stockx_tokens.json"
    price_concurrency: int = 5

    # Shopify
    shopify_domain: str = ""
    shopify_access_token: str = ""  # Fallback when no stored session exists
    shopify_api_key: str = ""
    shopify_api_secret: str = ""  # Webhook HMAC verification
    shopify_scopes: str = "read_products,write_products,read_inventory,write_inventory"
    session_dir: str = "./sessions"

    # Catalog rules
    price_ending_offset: Decimal = Decimal("0.10")
    sync_tag: str = "stockx-sync"
    default_vendor: str = "StockX Import"
    product_type: str = "Sneakers"

    # Batch runs
    bulk_concurrency: int = 1
    bulk_item_delay: float = 0.5


# Global settings instance
settings = Settings()
