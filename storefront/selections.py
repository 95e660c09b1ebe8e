"""Shopper add-on selections, kept in session storage per product."""
from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern

from storefront.config import StorefrontSettings
from storefront.exceptions import MatchAmbiguous
from storefront.pricing import format_money, to_decimal
from storefront.storage import SessionStorage, load_json, save_json

logger = logging.getLogger(__name__)

# Line item property carrying the selection id from the add-to-cart form
SELECTION_PROPERTY = "_addon_selection"

# Checkbox values say nothing about which add-on they belong to
_GENERIC_VALUES = {"", "selected", "yes", "true", "on"}


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ChosenAddon:
    addon_id: str
    name: str
    value: str
    price: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChosenAddon":
        return cls(
            addon_id=str(data.get("addonId", data.get("addon_id", ""))),
            name=str(data.get("name", "")),
            value=str(data.get("value", "")),
            price=to_decimal(data.get("price", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "addonId": self.addon_id,
            "name": self.name,
            "value": self.value,
            "price": str(self.price),
        }


@dataclass
class Selection:
    product_id: str
    chosen_addons: List[ChosenAddon] = field(default_factory=list)
    variant_id: Optional[str] = None
    selection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: int = 0

    @property
    def total_price(self) -> Decimal:
        # Derived on every read so it can never drift from the add-ons
        return sum((addon.price for addon in self.chosen_addons), Decimal("0"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Selection":
        variant_id = data.get("variantId")
        return cls(
            product_id=str(data.get("productId", "")),
            chosen_addons=[ChosenAddon.from_dict(a) for a in data.get("addons") or []],
            variant_id=str(variant_id) if variant_id else None,
            selection_id=str(data.get("selectionId") or uuid.uuid4().hex),
            timestamp=int(data.get("timestamp") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "variantId": self.variant_id,
            "selectionId": self.selection_id,
            "addons": [addon.to_dict() for addon in self.chosen_addons],
            "totalPrice": str(self.total_price),
            "timestamp": self.timestamp,
        }


class SelectionStore:
    """Per-product add-on selections for one shopper session."""

    def __init__(
        self,
        storage: SessionStorage,
        settings: Optional[StorefrontSettings] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.storage = storage
        self.settings = settings or StorefrontSettings()
        self.clock = clock

    def _load(self) -> Dict[str, Dict[str, Any]]:
        data = load_json(self.storage, self.settings.selections_key, {})
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        save_json(self.storage, self.settings.selections_key, data)

    def record(
        self,
        product_id: str,
        selections: Iterable[Any],
        variant_id: Optional[str] = None,
    ) -> Selection:
        """Store the chosen add-ons of a product, replacing what was there."""
        product_id = str(product_id)
        chosen = [s if isinstance(s, ChosenAddon) else ChosenAddon.from_dict(s) for s in selections]

        data = self._load()
        previous = data.get(product_id)
        selection = Selection(
            product_id=product_id,
            chosen_addons=chosen,
            variant_id=str(variant_id) if variant_id else None,
            timestamp=self.clock(),
        )
        # Keep the id stable so lines already in the cart still point here
        if previous and previous.get("selectionId"):
            selection.selection_id = str(previous["selectionId"])

        data[product_id] = selection.to_dict()
        self._save(data)
        logger.debug("Stored %d add-ons for product %s, total %s",
                     len(chosen), product_id, selection.total_price)
        return selection

    def get(self, product_id: str) -> Optional[Selection]:
        entry = self._load().get(str(product_id))
        return Selection.from_dict(entry) if entry else None

    def all(self) -> List[Selection]:
        return [Selection.from_dict(entry) for entry in self._load().values()]

    def remove(self, product_id: str) -> None:
        data = self._load()
        if data.pop(str(product_id), None) is not None:
            self._save(data)

    def clear(self) -> None:
        self.storage.remove_item(self.settings.selections_key)

    def purge_expired(self, max_age_ms: Optional[int] = None) -> int:
        """Drop selections older than the TTL. Returns how many went."""
        max_age_ms = self.settings.selection_ttl_ms if max_age_ms is None else max_age_ms
        now = self.clock()
        data = self._load()
        expired = [key for key, entry in data.items()
                   if entry.get("timestamp") and now - int(entry["timestamp"]) > max_age_ms]
        for key in expired:
            del data[key]
        if expired:
            self._save(data)
            logger.info("Purged %d expired add-on selections", len(expired))
        return len(expired)

    def find_matching_cart_line(
        self,
        cart_line: Any,
        all_selections: Optional[List[Selection]] = None,
    ) -> Optional[Selection]:
        """Stored selection belonging to a cart line, if any.

        Priority: selection id line property, variant id, product id or
        handle, then a best-effort text match.
        """
        selections = self.all() if all_selections is None else all_selections
        if not selections:
            return None

        token = (cart_line.properties or {}).get(SELECTION_PROPERTY)
        if token:
            for selection in selections:
                if selection.selection_id == str(token):
                    return selection

        variant_id = str(cart_line.variant_id)
        for selection in selections:
            if selection.variant_id and selection.variant_id == variant_id:
                logger.debug("Matched cart line %s by variant %s", cart_line.key, variant_id)
                return selection

        product_keys = {str(cart_line.product_id)}
        if getattr(cart_line, "handle", None):
            product_keys.add(cart_line.handle)
        for selection in selections:
            if selection.product_id in product_keys:
                logger.debug("Matched cart line %s by product %s", cart_line.key, selection.product_id)
                return selection

        if not self.settings.fuzzy_matching:
            return None
        try:
            return self._fuzzy_match(cart_line.match_text(), selections)
        except MatchAmbiguous as e:
            logger.debug("No fuzzy match for cart line %s: %s", cart_line.key, e)
            return None

    def _addon_patterns(self, addon: ChosenAddon) -> List[Pattern[str]]:
        patterns = [re.compile(re.escape(addon.name))] if addon.name else []
        if addon.value.strip().lower() not in _GENERIC_VALUES:
            patterns.append(re.compile(re.escape(addon.value)))
        # "5.00" must not match inside "£25.00" or "5.005"
        amount = format_money(addon.price, "")
        patterns.append(re.compile(r"(?<![\d.,])" + re.escape(amount) + r"(?![\d])"))
        return patterns

    def _fuzzy_match(self, text: str, selections: List[Selection]) -> Selection:
        if not text:
            raise MatchAmbiguous("cart line has no text to match against")

        scored = []
        for selection in selections:
            if not selection.chosen_addons:
                continue
            hits = sum(
                1 for addon in selection.chosen_addons
                if any(pattern.search(text) for pattern in self._addon_patterns(addon))
            )
            score = hits / len(selection.chosen_addons)
            if hits and score >= self.settings.fuzzy_threshold:
                scored.append((score, selection))

        if not scored:
            raise MatchAmbiguous("no selection reaches the match threshold")

        scored.sort(key=lambda item: item[0], reverse=True)
        if len(scored) > 1 and scored[0][0] == scored[1][0]:
            raise MatchAmbiguous(
                f"{scored[0][1].product_id} and {scored[1][1].product_id} match equally well"
            )
        logger.info("Fuzzy-matched selection for product %s (score %.2f)",
                    scored[0][1].product_id, scored[0][0])
        return scored[0][1]
