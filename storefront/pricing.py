"""Money helpers shared by the product page and the cart page."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")

# "£1,234.50", "$ 5", "€0.00", "12.99"
MONEY_RE = re.compile(r"([£$€])?\s*(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)")


def to_decimal(value: Any) -> Decimal:
    """Decimal from a number or numeric string; floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def cents_to_decimal(cents: Any) -> Decimal:
    """Shopify's AJAX cart reports money as integer cents."""
    return (to_decimal(cents) / 100).quantize(CENT)


def parse_money(text: Optional[str]) -> Optional[Decimal]:
    """First money amount found in rendered text, or None."""
    if not text:
        return None
    match = MONEY_RE.search(text)
    if not match:
        return None
    return Decimal(match.group(2).replace(",", ""))


def money_symbol(text: Optional[str], default: str = "£") -> str:
    match = re.search(r"[£$€]", text or "")
    return match.group(0) if match else default


def format_money(amount: Decimal, symbol: str = "£") -> str:
    return f"{symbol}{to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)}"


def surrogate_quantity(total: Decimal, unit_price: Decimal) -> int:
    """Units of the surrogate product needed to carry ``total``.

    Half a unit rounds up: 1.955 at 0.01 gives 196.
    """
    if unit_price <= 0:
        raise ValueError("Surrogate unit price must be positive")
    units = (to_decimal(total) / to_decimal(unit_price)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(units)
