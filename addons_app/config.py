"""Application configuration."""
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App settings
    app_name: str = "Product Add-ons API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Public URL of this service (used for the OAuth redirect)
    app_url: str = "http://localhost:8000"

    # Database
    database_url: str = "sqlite:///./addons_app.db"

    # Shopify app credentials (from the Partner Dashboard)
    shopify_api_key: str = ""
    shopify_api_secret: str = ""
    shopify_scopes: str = "read_products,write_products,read_script_tags,write_script_tags"
    shopify_api_version: str = "2024-10"
    verify_oauth_hmac: bool = True

    # Storefront injection script; registered as a script tag on install when set
    storefront_script_url: str = ""

    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
