"""Storefront configuration."""
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorefrontSettings(BaseSettings):
    # Backend serving /api/addons
    app_host: str = "http://localhost:8000"

    # Hidden £0.01 product carrying the add-on price as quantity.
    # Create it in the Shopify admin and put its ids here.
    surrogate_product_id: str = "12237829308756"
    surrogate_variant_id: str = "52557455032660"
    surrogate_unit_price: Decimal = Decimal("0.01")
    surrogate_sku: str = "ADDON-PRICE-01"
    surrogate_title: str = "Product Add-on Price Adjustment"
    # Rows above this quantity priced at one unit are treated as the surrogate
    surrogate_min_quantity: int = 50

    # Session storage
    selections_key: str = "productAddons"
    processed_key: str = "cart_addon_processed"
    annotations_key: str = "cart_addon_annotations"
    selection_ttl_ms: int = 24 * 60 * 60 * 1000
    processed_window_ms: int = 5000

    # Fuzzy cart-line matching
    fuzzy_matching: bool = True
    fuzzy_threshold: float = 0.7

    # Re-sync scheduling (seconds)
    sync_debounce: float = 0.5
    sync_cooldown: float = 1.5

    currency_symbol: str = "£"
    http_timeout: float = 10.0

    model_config = SettingsConfigDict(env_prefix="ADDONS_", env_file=".env", extra="ignore")
