"""Storefront page model and page/product detection heuristics."""
from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlparse, parse_qs

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

PRODUCT_HANDLE_RE = re.compile(r"/products/([^/?#]+)")
CART_PATH_RE = re.compile(r"(^|/)cart(/|$)")
CHECKOUT_PATH_RE = re.compile(r"(^|/)checkouts?(/|$)")


class PageType(str, Enum):
    PRODUCT = "product"
    CART = "cart"
    CHECKOUT = "checkout"
    OTHER = "other"


class Page:
    """A rendered storefront page.

    ``window`` holds the script globals a theme exposes (``Shopify``,
    ``ShopifyAnalytics``, ``product``) as plain dicts.
    """

    def __init__(self, url: str, html: str, window: Optional[Dict[str, Any]] = None):
        self.url = url
        self.soup = BeautifulSoup(html, "html.parser")
        self.window = window or {}
        parsed = urlparse(url)
        self.host = parsed.hostname or ""
        self.path = parsed.path or "/"
        self.query = {k: v[0] for k, v in parse_qs(parsed.query).items()}

    def global_value(self, *path: str) -> Any:
        value: Any = self.window
        for name in path:
            if not isinstance(value, dict) or name not in value:
                return None
            value = value[name]
        return value

    def body_has_class(self, name: str) -> bool:
        body = self.soup.body
        return bool(body and name in (body.get("class") or []))

    def html(self) -> str:
        return str(self.soup)


class PageDetector:
    """Decides which kind of storefront page is showing."""

    def detect(self, page: Page) -> PageType:
        # URL first; theme markup is only consulted when the path says nothing
        if CHECKOUT_PATH_RE.search(page.path) or "checkout" in page.host:
            return PageType.CHECKOUT
        if CART_PATH_RE.search(page.path):
            return PageType.CART
        if "/products/" in page.path:
            return PageType.PRODUCT

        if self.is_checkout_page(page):
            return PageType.CHECKOUT
        if self.is_cart_page(page):
            return PageType.CART
        if self.is_product_page(page):
            return PageType.PRODUCT
        return PageType.OTHER

    def is_product_page(self, page: Page) -> bool:
        return bool(
            "/products/" in page.path
            or page.body_has_class("template-product")
            or page.soup.select_one("[data-product-id]")
            or page.soup.select_one('form[action*="/cart/add"]')
            or page.soup.select_one(".product-form")
            or page.global_value("ShopifyAnalytics", "meta", "product")
        )

    def is_cart_page(self, page: Page) -> bool:
        return bool(
            CART_PATH_RE.search(page.path)
            or page.body_has_class("template-cart")
            or page.soup.select_one(".cart-page, #cart-page, [data-cart-items]")
        )

    def is_checkout_page(self, page: Page) -> bool:
        return bool(
            CHECKOUT_PATH_RE.search(page.path)
            or "checkout" in page.host
            or page.body_has_class("template-checkout")
            or page.soup.select_one(".checkout, #checkout")
        )


class ProductDetector:
    """Finds the product id of a product page, trying the reliable sources first."""

    def get_product_id(self, page: Page) -> Optional[str]:
        soup = page.soup

        tag = soup.find("product-info", attrs={"data-product-id": True})
        if tag:
            return str(tag["data-product-id"])

        for script in soup.find_all("script", attrs={"type": "application/json"}):
            try:
                data = json.loads(script.string or "")
            except ValueError:
                continue
            if isinstance(data, dict) and isinstance(data.get("product"), dict) and data["product"].get("id"):
                return str(data["product"]["id"])

        for path in (("product", "id"), ("ShopifyAnalytics", "meta", "product", "id")):
            value = page.global_value(*path)
            if value:
                return str(value)

        for selector in ("[data-product-id]", "[data-product]", ".product[data-id]"):
            element = soup.select_one(selector)
            if element:
                value = element.get("data-product-id") or element.get("data-product") or element.get("data-id")
                if value:
                    return str(value)

        variant_id = self.get_variant_id(page)
        if variant_id:
            logger.debug("Using variant id %s as product id fallback", variant_id)
            return variant_id

        match = PRODUCT_HANDLE_RE.search(page.path)
        if match:
            return match.group(1)

        logger.info("Could not determine product id for %s", page.url)
        return None

    def get_variant_id(self, page: Page) -> Optional[str]:
        """Currently selected variant from the add-to-cart form."""
        field = page.soup.select_one('form[action*="/cart/add"] [name="id"]')
        if field is None:
            return None
        if field.name == "select":
            option = field.find("option", selected=True) or field.find("option")
            value = option.get("value") if option else None
        else:
            value = field.get("value")
        return str(value) if value else None

    def get_handle(self, page: Page) -> Optional[str]:
        match = PRODUCT_HANDLE_RE.search(page.path)
        return match.group(1) if match else None
