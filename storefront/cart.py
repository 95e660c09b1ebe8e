"""Shopify AJAX cart: line model and a client for /cart.js and friends."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import requests

from storefront.config import StorefrontSettings
from storefront.exceptions import CartError
from storefront.pricing import cents_to_decimal

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    key: str
    variant_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    title: str = ""
    handle: str = ""
    sku: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    # Text of the rendered cart row, when a page is available
    rendered_text: str = ""

    @property
    def line_price(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_json(cls, item: Dict[str, Any]) -> "CartLine":
        return cls(
            key=str(item.get("key", "")),
            variant_id=str(item.get("variant_id", item.get("id", ""))),
            product_id=str(item.get("product_id", "")),
            quantity=int(item.get("quantity", 0)),
            unit_price=cents_to_decimal(item.get("final_price", item.get("price", 0))),
            title=item.get("title") or item.get("product_title") or "",
            handle=item.get("handle") or "",
            sku=item.get("sku") or "",
            properties=dict(item.get("properties") or {}),
        )

    def match_text(self) -> str:
        """Text the fuzzy matcher searches: the rendered row, else title and properties."""
        if self.rendered_text:
            return self.rendered_text
        parts = [self.title]
        parts.extend(f"{name}: {value}" for name, value in self.properties.items()
                     if not str(name).startswith("_"))
        return "\n".join(p for p in parts if p)


def is_surrogate(line: CartLine, settings: StorefrontSettings) -> bool:
    """Whether a cart line is the hidden price adjustment product."""
    if line.product_id == settings.surrogate_product_id:
        return True
    if line.variant_id == settings.surrogate_variant_id:
        return True
    if settings.surrogate_sku and line.sku == settings.surrogate_sku:
        return True
    return (line.quantity > settings.surrogate_min_quantity
            and line.unit_price == settings.surrogate_unit_price)


@dataclass
class Cart:
    lines: List[CartLine] = field(default_factory=list)
    total_price: Decimal = Decimal("0")
    token: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Cart":
        return cls(
            lines=[CartLine.from_json(item) for item in data.get("items") or []],
            total_price=cents_to_decimal(data.get("total_price", 0)),
            token=data.get("token"),
        )

    def surrogate_lines(self, settings: StorefrontSettings) -> List[CartLine]:
        return [line for line in self.lines if is_surrogate(line, settings)]

    def surrogate_line(self, settings: StorefrontSettings) -> Optional[CartLine]:
        lines = self.surrogate_lines(settings)
        return lines[0] if lines else None

    def product_lines(self, settings: StorefrontSettings) -> List[CartLine]:
        return [line for line in self.lines if not is_surrogate(line, settings)]


class CartClient:
    """Client for the storefront cart endpoints of one shop."""

    def __init__(
        self,
        base_url: str,
        settings: Optional[StorefrontSettings] = None,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.settings = settings or StorefrontSettings()
        self.http = http or requests.Session()
        self._listeners: List[Callable[[str], None]] = []

    def add_listener(self, callback: Callable[[str], None]) -> None:
        """Call ``callback(kind)`` after every successful cart mutation."""
        self._listeners.append(callback)

    def _notify(self, kind: str) -> None:
        for callback in self._listeners:
            callback(kind)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, timeout=self.settings.http_timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise CartError(f"{method} {path} failed: {e}")
        if not response.ok:
            raise CartError(f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                            status_code=response.status_code)
        try:
            return response.json()
        except ValueError:
            raise CartError(f"{method} {path} returned a non-JSON body")

    def get_cart(self) -> Cart:
        return Cart.from_json(self._request("GET", "/cart.js"))

    def add_line(self, variant_id: str, quantity: int, properties: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Add a line; form-encoded like a theme's product form."""
        form = {"id": str(variant_id), "quantity": str(quantity)}
        for name, value in (properties or {}).items():
            form[f"properties[{name}]"] = str(value)
        result = self._request("POST", "/cart/add.js", data=form)
        logger.info("Added %s x variant %s to cart", quantity, variant_id)
        self._notify("add")
        return result

    def update_quantities(self, updates: Dict[str, int]) -> Cart:
        """Set line quantities by line key; 0 removes the line."""
        result = self._request("POST", "/cart/update.js", json={"updates": updates})
        logger.info("Updated cart quantities: %s", updates)
        self._notify("update")
        return Cart.from_json(result)
