"""Shopify service layer - OAuth token exchange and Admin REST passthrough."""
import hashlib
import hmac
import logging
import re
from typing import Optional, List, Dict, Any
from urllib.parse import urlencode

import requests

from addons_app.config import settings
from addons_app.exceptions import ValidationError, UpstreamError

logger = logging.getLogger(__name__)

SHOP_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.com$")


def normalize_shop_domain(shop: Optional[str]) -> str:
    """Turn 'mystore' or 'https://mystore.myshopify.com/' into 'mystore.myshopify.com'."""
    if not shop or not shop.strip():
        raise ValidationError("Missing shop parameter")

    shop = shop.strip().lower()
    shop = re.sub(r"^https?://", "", shop).rstrip("/")

    # Ensure shop domain is valid
    if "." not in shop:
        shop = f"{shop}.myshopify.com"
    if not SHOP_DOMAIN_RE.match(shop):
        raise ValidationError(f"Invalid shop domain: {shop}")
    return shop


def verify_shopify_hmac(query_params: Dict[str, str], secret: str) -> bool:
    """Verify the HMAC signature Shopify attaches to OAuth redirects."""
    hmac_to_verify = query_params.get("hmac", "")
    if not secret or not hmac_to_verify:
        return False

    # Build message from query params (excluding hmac and signature)
    filtered_params = {k: v for k, v in query_params.items()
                       if k not in ("hmac", "signature")}
    message = "&".join(f"{k}={v}" for k, v in sorted(filtered_params.items()))

    computed_hmac = hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(computed_hmac, hmac_to_verify)


class ShopifyService:
    """Service for talking to the Shopify Admin REST API."""

    def __init__(self, http: Optional[requests.Session] = None):
        self.api_version = settings.shopify_api_version
        self.http = http or requests.Session()

    def build_authorize_url(self, shop: str, redirect_uri: str, state: str) -> str:
        """URL the merchant is sent to for approving the app."""
        auth_params = {
            "client_id": settings.shopify_api_key,
            "scope": settings.shopify_scopes,
            "redirect_uri": redirect_uri,
            "state": state,
        }
        return f"https://{shop}/admin/oauth/authorize?{urlencode(auth_params)}"

    def exchange_token(self, shop: str, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for an offline access token."""
        token_url = f"https://{shop}/admin/oauth/access_token"
        token_data = {
            "client_id": settings.shopify_api_key,
            "client_secret": settings.shopify_api_secret,
            "code": code,
        }
        try:
            response = self.http.post(token_url, json=token_data, timeout=10)
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Failed to exchange token: {e}")

        if not response.ok:
            raise UpstreamError(
                f"Failed to exchange token: {response.status_code} {response.text}",
                upstream_status=response.status_code,
            )

        token_response = response.json()
        if not token_response.get("access_token"):
            raise UpstreamError("No access token received")
        return token_response

    def _rest_request(
        self,
        shop: str,
        token: str,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        """Make an Admin REST request and return the decoded body."""
        url = f"https://{shop}/admin/api/{self.api_version}/{path}"
        headers = {
            "X-Shopify-Access-Token": token,
            "Content-Type": "application/json",
        }
        try:
            response = self.http.request(
                method, url, params=params, json=json, headers=headers, timeout=30
            )
        except requests.exceptions.RequestException as e:
            logger.error("Shopify request %s %s failed: %s", method, path, e)
            raise UpstreamError(f"Shopify request failed: {e}")

        if not response.ok:
            logger.error("Shopify returned %s for %s %s: %s",
                         response.status_code, method, path, response.text[:500])
            raise UpstreamError(
                f"Shopify API error {response.status_code}: {response.text}",
                upstream_status=response.status_code,
            )
        return response.json() if response.content else {}

    def get_products(self, shop: str, token: str, limit: int = 250) -> List[dict]:
        """Product list passthrough."""
        data = self._rest_request(shop, token, "GET", "products.json", params={"limit": limit})
        return data.get("products", [])

    def get_shop(self, shop: str, token: str) -> dict:
        data = self._rest_request(shop, token, "GET", "shop.json")
        return data.get("shop", {})

    def ensure_script_tag(self, shop: str, token: str, src: str) -> dict:
        """Register the storefront script unless a tag with the same src exists."""
        data = self._rest_request(shop, token, "GET", "script_tags.json", params={"src": src})
        for tag in data.get("script_tags", []):
            if tag.get("src") == src:
                logger.info("Script tag already installed for %s", shop)
                return tag

        data = self._rest_request(
            shop, token, "POST", "script_tags.json",
            json={"script_tag": {"event": "onload", "src": src}},
        )
        logger.info("Installed script tag for %s: %s", shop, src)
        return data.get("script_tag", {})


# Singleton instance
shopify_service = ShopifyService()
