"""Derived cart pricing: subtotal, shipping, tax and total."""

from typing import Any, Dict, Iterable

import config


def _money(value: float) -> float:
    return round(float(value), 2)


def shipping_for(subtotal: float) -> float:
    if 0 < subtotal < config.FREE_SHIPPING_THRESHOLD:
        return _money(config.SHIPPING_FEE)
    return 0.0


def summarize(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Compute the pricing summary for line items carrying `price` and `quantity`."""
    subtotal = 0.0
    total_items = 0
    for it in items:
        qty = int(it.get("quantity") or 0)
        subtotal += float(it.get("price") or 0) * qty
        total_items += qty
    subtotal = _money(subtotal)
    shipping = shipping_for(subtotal)
    tax = _money(subtotal * config.TAX_RATE)
    return {
        "subtotal": subtotal,
        "shipping": shipping,
        "tax": tax,
        "total": _money(subtotal + shipping + tax),
        "total_items": total_items,
    }


def to_minor_units(amount: float) -> int:
    # paisa
    return int(round(float(amount) * 100))
