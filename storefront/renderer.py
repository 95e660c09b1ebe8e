"""Product page add-on controls, and the entry point for every storefront page."""
from __future__ import annotations

import html
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from storefront.annotator import PriceAnnotator
from storefront.api_client import AddonApiClient
from storefront.config import StorefrontSettings
from storefront.exceptions import AddonApiError
from storefront.page import Page, PageDetector, PageType, ProductDetector
from storefront.pricing import format_money, to_decimal
from storefront.reconciler import CartReconciler, ReconcileResult
from storefront.scheduler import SyncScheduler
from storefront.selections import SELECTION_PROPERTY, ChosenAddon, Selection, SelectionStore

logger = logging.getLogger(__name__)

CONTAINER_ID = "product-addons-container"
CHECKBOX_VALUE = "selected"

INSERTION_POINTS = [
    'form[action*="/cart/add"] .product-form__buttons',
    'form[action*="/cart/add"]',
    ".product-form__buttons",
    ".product-form",
    ".product-details",
    ".product-info",
    "main",
]


class StorefrontRenderer:
    """Wires a storefront page to the add-on catalog, selections and cart sync.

    The selection store and reconciler are handed in so product and cart
    pages of one session share the same state.
    """

    def __init__(
        self,
        api_client: AddonApiClient,
        selection_store: SelectionStore,
        reconciler: CartReconciler,
        settings: Optional[StorefrontSettings] = None,
        scheduler: Optional[SyncScheduler] = None,
        page_detector: Optional[PageDetector] = None,
        product_detector: Optional[ProductDetector] = None,
        annotator: Optional[PriceAnnotator] = None,
    ):
        self.api = api_client
        self.selections = selection_store
        self.reconciler = reconciler
        self.settings = settings or selection_store.settings
        self.page_detector = page_detector or PageDetector()
        self.product_detector = product_detector or ProductDetector()
        self.annotator = annotator or PriceAnnotator(self.settings)
        self.scheduler = scheduler or SyncScheduler(
            self._resync, debounce=self.settings.sync_debounce, cooldown=self.settings.sync_cooldown
        )
        self.reconciler.cart_client.add_listener(self._on_cart_mutation)

        self.page: Optional[Page] = None
        self.page_type = PageType.OTHER
        self.product_id: Optional[str] = None
        self.addons: Dict[str, Dict[str, Any]] = {}
        self.values: Dict[str, Optional[str]] = {}
        self.last_result: Optional[ReconcileResult] = None

    # ------------------------------------------------------------------
    # Page lifecycle
    # ------------------------------------------------------------------

    def mount(self, page: Page) -> PageType:
        """Handle a page load."""
        self.page = page
        self.selections.purge_expired()
        self.page_type = self.page_detector.detect(page)
        logger.debug("Page %s detected as %s", page.url, self.page_type.value)

        if self.page_type == PageType.PRODUCT:
            self._mount_product(page)
        elif self.page_type in (PageType.CART, PageType.CHECKOUT):
            self.last_result = self.reconciler.run(page)
        return self.page_type

    def unmount(self) -> None:
        """Navigation away: abandon scheduled syncs."""
        self.scheduler.cancel()
        self.page = None

    def on_dom_mutation(self) -> None:
        """Theme re-rendered part of the page."""
        if self.page_type in (PageType.CART, PageType.CHECKOUT):
            self.scheduler.schedule()

    def _on_cart_mutation(self, kind: str) -> None:
        if self.page is not None and self.page_type in (PageType.CART, PageType.CHECKOUT):
            logger.debug("Cart %s call completed, scheduling re-sync", kind)
            self.scheduler.schedule()

    def _resync(self) -> Optional[ReconcileResult]:
        if self.page is None:
            return None
        self.last_result = self.reconciler.run(self.page)
        return self.last_result

    # ------------------------------------------------------------------
    # Product page
    # ------------------------------------------------------------------

    def _mount_product(self, page: Page) -> None:
        self.product_id = self.product_detector.get_product_id(page)
        if not self.product_id:
            return

        shop = self.api.resolve_shop_domain(page)
        try:
            addons = self.api.load_addons(self.product_id, shop)
        except AddonApiError as e:
            logger.warning("Could not load add-ons for product %s: %s", self.product_id, e)
            return
        if not addons:
            logger.info("No add-ons for product %s", self.product_id)
            return

        self.addons = {str(addon["id"]): addon for addon in addons}
        self.values = {
            addon_id: CHECKBOX_VALUE if addon.get("type") == "checkbox" and addon.get("required") else None
            for addon_id, addon in self.addons.items()
        }
        self._render(page)
        if any(self.values.values()):
            self._commit()

    def _render(self, page: Page) -> None:
        for existing in page.soup.select(f"#{CONTAINER_ID}"):
            existing.decompose()

        items = "".join(self._control_html(addon) for addon in self.addons.values())
        fragment = BeautifulSoup(
            f'<div id="{CONTAINER_ID}" class="product-addons">'
            f'<div class="addon-header"><h3>Customize Your Order</h3>'
            f'<div class="addon-total">Additional: <span id="addon-total">'
            f'{format_money(Decimal("0"), self.settings.currency_symbol)}</span></div></div>'
            f'<div id="addon-list">{items}</div></div>',
            "html.parser",
        )
        container = fragment.find(id=CONTAINER_ID)

        for selector in INSERTION_POINTS:
            target = page.soup.select_one(selector)
            if target is None:
                continue
            if "buttons" in selector:
                target.insert_before(container)
            else:
                target.append(container)
            logger.debug("Inserted add-ons container at %s", selector)
            return

        (page.soup.body or page.soup).append(container)

    def _control_html(self, addon: Dict[str, Any]) -> str:
        addon_id = html.escape(str(addon["id"]))
        name = html.escape(addon.get("name", ""))
        base = to_decimal(addon.get("price", 0))
        symbol = self.settings.currency_symbol

        if addon.get("type") == "dropdown":
            options = ['<option value="" data-price="0">None</option>']
            for option in addon.get("options") or []:
                price = base + to_decimal(option.get("price", 0))
                options.append(
                    f'<option value="{html.escape(str(option.get("value", "")))}" data-price="{price}">'
                    f'{html.escape(str(option.get("label", "")))} (+{format_money(price, symbol)})</option>'
                )
            return (
                f'<div class="addon-item" data-addon-id="{addon_id}"><div class="addon-option">'
                f'<label for="addon-{addon_id}">{name}:</label>'
                f'<select id="addon-{addon_id}" class="addon-dropdown" data-addon-id="{addon_id}">'
                f'{"".join(options)}</select></div></div>'
            )

        required = " checked disabled" if addon.get("required") else ""
        return (
            f'<div class="addon-item" data-addon-id="{addon_id}"><div class="addon-option">'
            f'<input type="checkbox" id="addon-{addon_id}" class="addon-checkbox" '
            f'data-addon-id="{addon_id}" data-price="{base}"{required}>'
            f'<label for="addon-{addon_id}">{name}</label>'
            f'<span class="addon-price">+{format_money(base, symbol)}</span></div></div>'
        )

    def handle_change(self, addon_id: Any, value: Any) -> Selection:
        """A control changed: checkbox gets a bool, dropdown an option value or None."""
        addon_id = str(addon_id)
        if addon_id not in self.addons:
            raise KeyError(f"Unknown add-on {addon_id}")
        addon = self.addons[addon_id]

        if addon.get("type") == "dropdown":
            value = str(value) if value else None
            known = {str(option.get("value")) for option in addon.get("options") or []}
            if value is not None and value not in known:
                raise ValueError(f"{value!r} is not an option of add-on {addon_id}")
            self.values[addon_id] = value
        elif addon.get("required"):
            self.values[addon_id] = CHECKBOX_VALUE
        else:
            self.values[addon_id] = CHECKBOX_VALUE if value else None

        self._sync_control(addon_id)
        return self._commit()

    def _sync_control(self, addon_id: str) -> None:
        if self.page is None:
            return
        control = self.page.soup.find(attrs={"id": f"addon-{addon_id}"})
        if control is None:
            return
        value = self.values.get(addon_id)
        if control.name == "select":
            for option in control.find_all("option"):
                if option.get("value", "") == (value or ""):
                    option["selected"] = "selected"
                elif option.has_attr("selected"):
                    del option["selected"]
        elif value:
            control["checked"] = "checked"
        elif control.has_attr("checked"):
            del control["checked"]

    def chosen_addons(self) -> List[ChosenAddon]:
        chosen = []
        for addon_id, value in self.values.items():
            if not value:
                continue
            addon = self.addons[addon_id]
            price = to_decimal(addon.get("price", 0))
            if addon.get("type") == "dropdown":
                option = next(o for o in addon.get("options") or [] if str(o.get("value")) == value)
                price += to_decimal(option.get("price", 0))
            chosen.append(ChosenAddon(addon_id=addon_id, name=addon.get("name", ""), value=value, price=price))
        return chosen

    def _commit(self) -> Selection:
        variant_id = None
        if self.page is not None:
            variant_id = self.product_detector.get_variant_id(self.page)
            if variant_id == self.product_id:
                variant_id = None

        selection = self.selections.record(self.product_id, self.chosen_addons(), variant_id=variant_id)

        if self.page is not None:
            total_el = self.page.soup.find(id="addon-total")
            if total_el is not None:
                total_el.string = format_money(selection.total_price, self.settings.currency_symbol)
            self.annotator.update_product_price(self.page, selection.total_price)
            self._update_form_properties(selection)
        return selection

    def _update_form_properties(self, selection: Selection) -> None:
        """Hidden line item properties on the add-to-cart form."""
        form = self.page.soup.select_one('form[action*="/cart/add"]')
        if form is None:
            return
        for existing in form.select("input[data-addon-property]"):
            existing.decompose()

        symbol = self.settings.currency_symbol
        properties: Dict[str, str] = {}
        for addon in selection.chosen_addons:
            label = "Yes" if addon.value == CHECKBOX_VALUE else addon.value
            properties[addon.name] = f"{label} (+{format_money(addon.price, symbol)})"
        if selection.total_price > 0:
            properties["_Add-ons Total"] = format_money(selection.total_price, symbol)
            properties[SELECTION_PROPERTY] = selection.selection_id

        for name, value in properties.items():
            field: Tag = self.page.soup.new_tag("input", attrs={
                "type": "hidden",
                "name": f"properties[{name}]",
                "value": value,
                "data-addon-property": "true",
            })
            form.append(field)
