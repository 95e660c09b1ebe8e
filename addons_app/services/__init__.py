# Services package
from addons_app.services.addon_catalog import addon_catalog
from addons_app.services.session_service import session_service
from addons_app.services.shopify_service import shopify_service

__all__ = [
    "addon_catalog",
    "session_service",
    "shopify_service",
]
