"""Client for the add-on backend, as used from the storefront."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, parse_qs

import requests

from storefront.config import StorefrontSettings
from storefront.exceptions import AddonApiError
from storefront.page import Page

logger = logging.getLogger(__name__)

SCRIPT_NAME = "product-addons.js"


class AddonApiClient:
    def __init__(self, settings: Optional[StorefrontSettings] = None, http: Optional[requests.Session] = None):
        self.settings = settings or StorefrontSettings()
        self.http = http or requests.Session()

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.settings.app_host.rstrip('/')}{path}"
        try:
            response = self.http.get(url, params=params, timeout=self.settings.http_timeout)
        except requests.exceptions.RequestException as e:
            raise AddonApiError(f"GET {path} failed: {e}")
        if not response.ok:
            raise AddonApiError(f"GET {path} returned {response.status_code}")
        try:
            return response.json()
        except ValueError:
            raise AddonApiError(f"GET {path} returned a non-JSON body")

    def resolve_shop_domain(self, page: Page) -> str:
        """The shop's myshopify.com domain, from the most reliable source available."""
        shop = page.global_value("Shopify", "shop")
        if shop:
            return str(shop)

        if page.query.get("shop"):
            return page.query["shop"]

        script = page.soup.select_one(f'script[src*="{SCRIPT_NAME}"]')
        if script is not None:
            script_shop = parse_qs(urlparse(script["src"]).query).get("shop")
            if script_shop:
                return script_shop[0]

        if page.host.endswith(".myshopify.com"):
            return page.host

        try:
            data = self._get("/api/resolve-shop", {"domain": page.host})
            if isinstance(data, dict) and data.get("shop"):
                return data["shop"]
        except AddonApiError as e:
            logger.info("Could not resolve shop for %s: %s", page.host, e)
        return page.host

    def load_addons(self, product_id: str, shop: str) -> List[Dict[str, Any]]:
        """Active add-on definitions of a product."""
        addons = self._get(f"/api/addons/{product_id}", {"shop": shop})
        if addons is not None and not isinstance(addons, list):
            raise AddonApiError(f"Add-ons for product {product_id} are not a list")
        logger.debug("Loaded %d add-ons for product %s", len(addons or []), product_id)
        return addons or []
