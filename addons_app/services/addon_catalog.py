"""Add-on catalog service - CRUD over add-on definitions per (shop, product)."""
import logging
import math
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from addons_app.exceptions import ValidationError, NotFoundError
from addons_app.models import Addon
from addons_app.schemas import AddonType

logger = logging.getLogger(__name__)

DEFAULT_SHOP = "default"


def parse_price(value: Any, field: str = "price") -> float:
    """Parse a currency amount given as number or string; must be >= 0."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Missing or invalid {field}")
    if isinstance(value, str):
        value = value.strip().lstrip("£$€").replace(",", "")
        if not value:
            raise ValidationError(f"Missing or invalid {field}")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if math.isnan(price) or math.isinf(price):
        raise ValidationError(f"{field} must be a finite number")
    if price < 0:
        raise ValidationError(f"{field} must not be negative")
    return price


def _parse_type(value: Any) -> str:
    if not value:
        raise ValidationError("Missing add-on type")
    try:
        return AddonType(str(value).strip().lower()).value
    except ValueError:
        raise ValidationError(f"Unknown add-on type {value!r}; expected checkbox or dropdown")


def _parse_options(raw: Any) -> List[Dict[str, Any]]:
    if raw is not None and not isinstance(raw, (list, tuple)):
        raise ValidationError("options must be a list")
    options = []
    for index, item in enumerate(raw or []):
        if hasattr(item, "model_dump"):
            item = item.model_dump()
        if not isinstance(item, dict):
            raise ValidationError(f"Option {index} must be an object")
        label = str(item.get("label") or "").strip()
        value = str(item.get("value") or label).strip()
        if not label:
            raise ValidationError(f"Option {index} is missing a label")
        options.append({
            "label": label,
            "value": value,
            "price": parse_price(item.get("price", 0) or 0, f"option {index} price"),
        })
    return options


def _required_text(value: Any, field: str, allow_int: bool = False) -> str:
    allowed = (str, int) if allow_int else (str,)
    if value is not None and (isinstance(value, bool) or not isinstance(value, allowed)):
        raise ValidationError(f"{field} must be a string")
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"Missing {field}")
    return text


def _parse_flag(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value


class AddonCatalog:
    """Keyed store of add-on definitions.

    Deletion is soft: ``active`` is cleared and the row stays.
    """

    def create(self, db: Session, data: Dict[str, Any]) -> Addon:
        """Validate and store a new add-on definition."""
        product_id = _required_text(data.get("product_id"), "productId", allow_int=True)
        name = _required_text(data.get("name"), "name")
        price = parse_price(data.get("price"))
        addon_type = _parse_type(data.get("type"))

        if addon_type == AddonType.DROPDOWN.value:
            options = _parse_options(data.get("options"))
            if not options:
                raise ValidationError("Dropdown add-ons need at least one option")
            required = False
        else:
            options = []
            required = _parse_flag(data.get("required") or False, "required")

        addon = Addon(
            product_id=product_id,
            shop=_required_text(data.get("shop") or DEFAULT_SHOP, "shop"),
            name=name,
            price=price,
            type=addon_type,
            required=required,
            options=options,
            active=True,
        )
        db.add(addon)
        db.commit()
        db.refresh(addon)

        logger.info("Created add-on %s '%s' for product %s (shop %s)",
                    addon.id, addon.name, addon.product_id, addon.shop)
        return addon

    def list(self, db: Session, product_id: str, shop: Optional[str] = None) -> List[Addon]:
        """Active add-ons for one product of one shop."""
        return db.query(Addon).filter(
            Addon.product_id == str(product_id),
            Addon.shop == (shop or DEFAULT_SHOP),
            Addon.active == True,  # noqa: E712
        ).order_by(Addon.id).all()

    def list_for_shop(self, db: Session, shop: Optional[str] = None) -> List[Addon]:
        """All active add-ons of a shop, newest first."""
        return db.query(Addon).filter(
            Addon.shop == (shop or DEFAULT_SHOP),
            Addon.active == True,  # noqa: E712
        ).order_by(Addon.id.desc()).all()

    def get(self, db: Session, addon_id: int) -> Addon:
        addon = db.query(Addon).filter(Addon.id == addon_id).first()
        if not addon:
            raise NotFoundError(f"Add-on {addon_id} not found")
        return addon

    def update(self, db: Session, addon_id: int, patch: Dict[str, Any]) -> Addon:
        """Merge the given fields into an existing add-on."""
        addon = self.get(db, addon_id)
        try:
            self._apply_patch(addon, patch)
        except ValidationError:
            db.rollback()
            raise

        db.commit()
        db.refresh(addon)
        logger.info("Updated add-on %s", addon.id)
        return addon

    def _apply_patch(self, addon: Addon, patch: Dict[str, Any]):
        if patch.get("product_id") is not None:
            addon.product_id = _required_text(patch["product_id"], "productId", allow_int=True)
        if patch.get("name") is not None:
            addon.name = _required_text(patch["name"], "name")
        if "price" in patch and patch["price"] is not None:
            addon.price = parse_price(patch["price"])
        if patch.get("type") is not None:
            addon.type = _parse_type(patch["type"])
        if patch.get("options") is not None:
            addon.options = _parse_options(patch["options"])
        if patch.get("required") is not None:
            addon.required = _parse_flag(patch["required"], "required")
        if patch.get("active") is not None:
            addon.active = _parse_flag(patch["active"], "active")

        if addon.type == AddonType.DROPDOWN.value:
            if not addon.options:
                raise ValidationError("Dropdown add-ons need at least one option")
            addon.required = False
        else:
            addon.options = []

    def soft_delete(self, db: Session, addon_id: int) -> Addon:
        """Deactivate an add-on. Deleting an inactive add-on changes nothing."""
        addon = self.get(db, addon_id)
        if addon.active:
            addon.active = False
            db.commit()
            db.refresh(addon)
            logger.info("Deactivated add-on %s", addon.id)
        return addon


# Singleton instance
addon_catalog = AddonCatalog()
