"""Keeps the surrogate line's quantity equal to the add-on total of the cart.

One run per cart view:

    Idle -> Hiding -> CheckRecent -> Syncing -> Done

Hiding always runs. CheckRecent short-circuits to Done when a sync
succeeded within ``processed_window_ms``, because the cart write of that
sync re-renders the cart and would otherwise trigger another sync.
Syncing recomputes the needed surrogate quantity from scratch from the
current cart and the stored selections; nothing is maintained
incrementally. A failed cart call ends the run without writing the
processed marker, so the next page view tries again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Set

from storefront.annotator import LineAnnotation, PriceAnnotator, cart_rows, row_for_line
from storefront.cart import Cart, CartClient
from storefront.config import StorefrontSettings
from storefront.exceptions import CartError
from storefront.page import Page
from storefront.pricing import surrogate_quantity, to_decimal
from storefront.selections import SelectionStore, now_ms
from storefront.storage import load_json, save_json

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    IDLE = "idle"
    HIDING = "hiding"
    CHECK_RECENT = "check_recent"
    SYNCING = "syncing"
    DONE = "done"


@dataclass
class ReconcileResult:
    state: ReconcileState = ReconcileState.IDLE
    # skipped_recent, no_addons, added, updated, unchanged, removed, failed
    action: str = "none"
    needed_total: Decimal = Decimal("0")
    needed_quantity: int = 0
    hidden_rows: int = 0
    annotated: int = 0
    error: Optional[str] = None
    transitions: List[ReconcileState] = field(default_factory=lambda: [ReconcileState.IDLE])

    def enter(self, state: ReconcileState) -> None:
        self.state = state
        self.transitions.append(state)


class CartReconciler:
    def __init__(
        self,
        cart_client: CartClient,
        selection_store: SelectionStore,
        settings: Optional[StorefrontSettings] = None,
        annotator: Optional[PriceAnnotator] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.cart_client = cart_client
        self.selections = selection_store
        self.settings = settings or selection_store.settings
        self.annotator = annotator or PriceAnnotator(self.settings)
        self.clock = clock

    @property
    def storage(self):
        return self.selections.storage

    def recently_processed(self) -> bool:
        raw = self.storage.get_item(self.settings.processed_key)
        if raw is None:
            return False
        try:
            age = self.clock() - int(raw)
        except ValueError:
            age = None
        if age is not None and 0 <= age < self.settings.processed_window_ms:
            return True
        self.storage.remove_item(self.settings.processed_key)
        return False

    def mark_processed(self, annotations: List[LineAnnotation], grand_total: Optional[Decimal]) -> None:
        self.storage.set_item(self.settings.processed_key, str(self.clock()))
        save_json(self.storage, self.settings.annotations_key, {
            "lines": [a.to_dict() for a in annotations],
            "grandTotal": str(grand_total) if grand_total is not None else None,
        })

    def run(self, page: Optional[Page] = None) -> ReconcileResult:
        """One reconciliation pass for a cart or checkout page view."""
        result = ReconcileResult()

        result.enter(ReconcileState.HIDING)
        if page is not None:
            result.hidden_rows = self.annotator.hide_surrogate_rows(page)

        result.enter(ReconcileState.CHECK_RECENT)
        if self.recently_processed():
            logger.info("Cart processed moments ago, showing cached add-on prices")
            result.action = "skipped_recent"
            if page is not None:
                result.annotated = self._show_cached(page)
            result.enter(ReconcileState.DONE)
            return result

        result.enter(ReconcileState.SYNCING)
        try:
            self._sync(page, result)
        except CartError as e:
            logger.warning("Add-on cart sync aborted: %s", e, exc_info=True)
            result.action = "failed"
            result.error = str(e)

        result.enter(ReconcileState.DONE)
        return result

    def _show_cached(self, page: Page) -> int:
        cached = load_json(self.storage, self.settings.annotations_key, {})
        if not isinstance(cached, dict):
            return 0
        annotations = [LineAnnotation.from_dict(item) for item in cached.get("lines") or []]
        grand_total = cached.get("grandTotal")
        return self.annotator.annotate_cart(
            page, annotations, to_decimal(grand_total) if grand_total is not None else None
        )

    def _attach_row_text(self, page: Page, cart: Cart) -> None:
        rows = [row for row in cart_rows(page) if row.get("data-addon-surrogate") != "true"]
        lines = cart.product_lines(self.settings)
        # Position only means something when every line has a row
        aligned = len(rows) == len(lines)
        for index, line in enumerate(lines):
            row = row_for_line(page, line, rows, index=index if aligned else None)
            if row is not None:
                line.rendered_text = row.get_text(" ", strip=True)

    def _sync(self, page: Optional[Page], result: ReconcileResult) -> None:
        cart = self.cart_client.get_cart()
        if page is not None:
            self._attach_row_text(page, cart)

        stored = self.selections.all()
        needed_total = Decimal("0")
        annotations: List[LineAnnotation] = []
        counted: Set[str] = set()

        for position, line in enumerate(cart.product_lines(self.settings)):
            match = self.selections.find_matching_cart_line(line, stored)
            if match is None or match.selection_id in counted:
                continue
            counted.add(match.selection_id)
            if match.total_price <= 0:
                continue
            needed_total += match.total_price
            annotations.append(LineAnnotation(
                line_key=line.key,
                variant_id=line.variant_id,
                product_id=line.product_id,
                delta=match.total_price,
                quantity=line.quantity,
                position=position,
            ))
            logger.debug("Cart line %s carries %s in add-ons", line.key, match.total_price)

        result.needed_total = needed_total
        surrogates = cart.surrogate_lines(self.settings)
        # Only one adjustment line may exist; extras are zeroed in the same write
        primary = surrogates[0] if surrogates else None
        updates = {extra.key: 0 for extra in surrogates[1:]}

        if needed_total == 0:
            if surrogates:
                # Nothing left to carry: leftover adjustment lines go
                self.cart_client.update_quantities({line.key: 0 for line in surrogates})
                self.mark_processed([], None)
                result.action = "removed"
                logger.info("Removed %d stale add-on adjustment line(s)", len(surrogates))
            else:
                result.action = "no_addons"
            return

        needed_quantity = surrogate_quantity(needed_total, self.settings.surrogate_unit_price)
        result.needed_quantity = needed_quantity

        if primary is not None:
            if primary.quantity != needed_quantity:
                updates[primary.key] = needed_quantity
            if updates:
                self.cart_client.update_quantities(updates)
                result.action = "updated"
            else:
                result.action = "unchanged"
            if len(surrogates) > 1:
                logger.warning("Cart held %d adjustment lines, merged into %s",
                               len(surrogates), primary.key)
        else:
            self.cart_client.add_line(
                self.settings.surrogate_variant_id,
                needed_quantity,
                properties={
                    "_addon_adjustment": "true",
                    "_note": "Price adjustment for product add-ons",
                },
            )
            result.action = "added"
        logger.info("Add-on total %s -> adjustment quantity %d (%s)",
                    needed_total, needed_quantity, result.action)

        products_total = sum((line.line_price for line in cart.product_lines(self.settings)), Decimal("0"))
        grand_total = products_total + self.settings.surrogate_unit_price * needed_quantity
        self.mark_processed(annotations, grand_total)

        if page is not None:
            result.annotated = self.annotator.annotate_cart(page, annotations, grand_total)
