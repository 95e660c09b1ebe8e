"""Cosmetic price rewrites on rendered storefront pages.

Nothing here feeds back into what the shopper is charged; the surrogate
line does that. These edits only make the visible numbers agree with it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from bs4 import Tag

from storefront.cart import CartLine
from storefront.config import StorefrontSettings
from storefront.page import Page
from storefront.pricing import format_money, money_symbol, parse_money, to_decimal

logger = logging.getLogger(__name__)

ROW_SELECTORS = [
    "[data-cart-item]",
    "[data-line-item]",
    ".cart-item",
    ".cart__row",
    ".line-item",
]
ROW_KEY_ATTRS = ["data-key", "data-line-key", "data-cart-item-key", "data-line-item-key"]
UNIT_PRICE_SELECTORS = [
    "[data-unit-price]",
    ".cart-item__price",
    ".line-item__price",
    ".product__price",
    ".price",
    ".money",
]
LINE_TOTAL_SELECTORS = [
    "[data-line-total]",
    ".cart-item__total",
    ".line-item__total",
    ".cart__final-price",
]
GRAND_TOTAL_SELECTORS = [
    "[data-cart-total]",
    "[data-checkout-total]",
    ".totals__total-value",
    ".totals__subtotal-value",
    ".cart__subtotal",
    ".cart-subtotal__price",
    ".order-summary__total",
    ".payment-due__price",
]
PRODUCT_PRICE_SELECTORS = [
    ".price-item--regular",
    ".product__price",
    ".product-price",
    ".price:not(.addon-price)",
    "[data-price]:not(.addon-price)",
    ".money:not(.addon-price)",
]

ORIGINAL_ATTR = "data-addon-original"


@dataclass
class LineAnnotation:
    """Add-on delta to show on one cart row."""

    line_key: str
    variant_id: str
    product_id: str
    delta: Decimal
    quantity: int
    # Index among the non-surrogate lines, for rows without key attributes
    position: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lineKey": self.line_key,
            "variantId": self.variant_id,
            "productId": self.product_id,
            "delta": str(self.delta),
            "quantity": self.quantity,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineAnnotation":
        return cls(
            line_key=str(data.get("lineKey", "")),
            variant_id=str(data.get("variantId", "")),
            product_id=str(data.get("productId", "")),
            delta=to_decimal(data.get("delta", 0)),
            quantity=int(data.get("quantity", 1)),
            position=data.get("position"),
        )


def cart_rows(page: Page) -> List[Tag]:
    """Cart line rows in document order, outermost matches only."""
    rows: List[Tag] = []
    for selector in ROW_SELECTORS:
        for row in page.soup.select(selector):
            if any(row is seen or any(d is row for d in seen.descendants) for seen in rows):
                continue
            rows.append(row)
        if rows:
            break
    return rows


def _row_text(row: Tag) -> str:
    return row.get_text(" ", strip=True)


def _row_quantity(row: Tag) -> Optional[int]:
    field = row.select_one('input[name^="updates"], input[name="quantity"], [data-quantity]')
    if field is None:
        return None
    raw = field.get("value") or field.get("data-quantity") or field.get_text(strip=True)
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _inside(element: Tag, others: Iterable[Optional[Tag]]) -> bool:
    for other in others:
        if other is None:
            continue
        if element is other or any(parent is other for parent in element.parents):
            return True
    return False


def _overlaps(element: Tag, others: Iterable[Tag]) -> bool:
    """Whether element nests with one of others, in either direction."""
    others = list(others)
    if _inside(element, others):
        return True
    return any(any(d is other for d in element.descendants) for other in others)


def _first_price(row: Tag, selectors: Iterable[str], exclude: Iterable[Optional[Tag]] = ()) -> Optional[Tag]:
    exclude = list(exclude)
    for selector in selectors:
        for element in row.select(selector):
            if _inside(element, exclude):
                continue
            if parse_money(element.get(ORIGINAL_ATTR) or element.get_text()) is not None:
                return element
    return None


def row_for_line(page: Page, line: CartLine, rows: Optional[List[Tag]] = None,
                 index: Optional[int] = None) -> Optional[Tag]:
    """The rendered row of a cart line: by line key, variant id, link, then position."""
    rows = cart_rows(page) if rows is None else rows
    for row in rows:
        for attr in ROW_KEY_ATTRS:
            if row.get(attr) and row.get(attr) == line.key:
                return row
    for row in rows:
        if row.get("data-variant-id") == line.variant_id:
            return row
    for row in rows:
        if row.select_one(f'a[href*="variant={line.variant_id}"]'):
            return row
    if index is not None and 0 <= index < len(rows):
        return rows[index]
    return None


class PriceAnnotator:
    """Rewrites price text nodes to include add-on amounts."""

    def __init__(self, settings: Optional[StorefrontSettings] = None):
        self.settings = settings or StorefrontSettings()

    def _is_surrogate_row(self, row: Tag) -> bool:
        s = self.settings
        if row.get("data-product-id") == s.surrogate_product_id or row.get("data-variant-id") == s.surrogate_variant_id:
            return True
        if row.select_one(f'a[href*="variant={s.surrogate_variant_id}"], [data-variant-id="{s.surrogate_variant_id}"]'):
            return True
        text = _row_text(row)
        if s.surrogate_sku and s.surrogate_sku in text:
            return True
        quantity = _row_quantity(row)
        price_el = _first_price(row, UNIT_PRICE_SELECTORS)
        unit = parse_money(price_el.get_text()) if price_el is not None else None
        return bool(quantity and quantity > s.surrogate_min_quantity and unit == s.surrogate_unit_price)

    def hide_surrogate_rows(self, page: Page) -> int:
        """Hide every row showing the surrogate product. Safe to repeat."""
        hidden = 0
        for row in cart_rows(page):
            if not self._is_surrogate_row(row):
                continue
            style = row.get("style") or ""
            if "display:none" not in style.replace(" ", ""):
                row["style"] = (style.rstrip("; ") + "; display: none").lstrip("; ")
            row["data-addon-surrogate"] = "true"
            hidden += 1
        if hidden:
            logger.debug("Hid %d surrogate cart rows", hidden)
        return hidden

    def _rewrite(self, element: Tag, amount: Decimal, label_delta: Decimal) -> bool:
        """Set ``element`` to original value + amount, remembering the original text."""
        original = element.get(ORIGINAL_ATTR)
        if original is None:
            original = element.get_text()
        current = parse_money(original)
        if current is None:
            return False
        symbol = money_symbol(original, self.settings.currency_symbol)
        element[ORIGINAL_ATTR] = original
        element.string = (f"{format_money(current + amount, symbol)} "
                          f"(incl. +{format_money(label_delta, symbol)} add-ons)")
        return True

    def annotate_cart(
        self,
        page: Page,
        annotations: List[LineAnnotation],
        grand_total: Optional[Decimal] = None,
    ) -> int:
        """Show add-on deltas on matched rows and on the cart total.

        Returns the number of rewritten elements.
        """
        rows = [row for row in cart_rows(page) if row.get("data-addon-surrogate") != "true"]
        rewritten = 0
        total_delta = Decimal("0")

        for annotation in annotations:
            if annotation.delta <= 0:
                continue
            line = CartLine(key=annotation.line_key, variant_id=annotation.variant_id,
                            product_id=annotation.product_id, quantity=annotation.quantity,
                            unit_price=Decimal("0"))
            row = row_for_line(page, line, rows, index=annotation.position)
            if row is None:
                logger.debug("No rendered row for cart line %s", annotation.line_key)
                continue

            total_el = _first_price(row, LINE_TOTAL_SELECTORS)
            unit_el = _first_price(row, UNIT_PRICE_SELECTORS, exclude=[total_el])
            if unit_el is not None:
                rewritten += self._rewrite(unit_el, annotation.delta, annotation.delta)
            if total_el is not None:
                line_delta = annotation.delta * annotation.quantity
                rewritten += self._rewrite(total_el, line_delta, line_delta)
            total_delta += annotation.delta

        if total_delta > 0:
            done: List[Tag] = []
            for selector in GRAND_TOTAL_SELECTORS:
                for element in page.soup.select(selector):
                    if _overlaps(element, done):
                        continue
                    original = element.get(ORIGINAL_ATTR, element.get_text())
                    if parse_money(original) is None:
                        continue
                    if grand_total is not None:
                        # The cart total already carries the surrogate line
                        symbol = money_symbol(original, self.settings.currency_symbol)
                        element[ORIGINAL_ATTR] = original
                        element.string = (f"{format_money(grand_total, symbol)} "
                                          f"(incl. +{format_money(total_delta, symbol)} add-ons)")
                        rewritten += 1
                        done.append(element)
                    elif self._rewrite(element, total_delta, total_delta):
                        rewritten += 1
                        done.append(element)
        return rewritten

    def update_product_price(self, page: Page, addon_total: Decimal) -> int:
        """Product page: show base price + selected add-ons in the price display."""
        container_id = "product-addons-container"
        updated: List[Tag] = []
        for selector in PRODUCT_PRICE_SELECTORS:
            for element in page.soup.select(selector):
                if element.find_parent(id=container_id) or _overlaps(element, updated):
                    continue
                original = element.get("data-original-price")
                if original is None:
                    price = parse_money(element.get_text())
                    if price is None or price <= 0:
                        continue
                    element["data-original-price"] = str(price)
                    element["data-original-symbol"] = money_symbol(element.get_text(), self.settings.currency_symbol)
                    original = str(price)
                symbol = element.get("data-original-symbol", self.settings.currency_symbol)
                element.string = format_money(to_decimal(original) + addon_total, symbol)
                updated.append(element)
        return len(updated)
