# Overview: Stock policy on top of the ledger: countable categories, adjustments, returns, low stock.

"""
Which products carry stock:

- A product is stock-tracked when its tracks_inventory flag is set AND its
  category is countable.
- Countable categories come from COUNTABLE_CATEGORIES (case-insensitive).
  Names listed in EXCLUDED_CATEGORIES are never countable, even if an
  operator adds them to the countable list by mistake.
- Purchases and adjustments are refused for products that are not tracked.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app

from ..store import get_store
from ..validation import InsufficientStockError, NotFoundError, ValidationError, require_int, require_positive_quantity
from . import ledger_service


def _name_set(key: str) -> set[str]:
    return {name.strip().lower() for name in current_app.config.get(key, []) if name.strip()}


def can_track_category(name: str | None) -> bool:
    if not name:
        return False
    wanted = name.strip().lower()
    if wanted in _name_set("EXCLUDED_CATEGORIES"):
        return False
    return wanted in _name_set("COUNTABLE_CATEGORIES")


def _category_name(product: dict) -> str | None:
    category = get_store().get("categories", product.get("category_id"))
    return category["name"] if category else None


def is_stock_tracked(product: dict) -> bool:
    if not product.get("tracks_inventory"):
        return False
    return can_track_category(_category_name(product))


def _get_product(product_id) -> dict:
    product = get_store().get("products", product_id)
    if product is None:
        raise NotFoundError("product not found", details={"product_id": str(product_id)})
    return product


def ensure_inventory_allowed(product_id) -> dict:
    """Return the product, or raise when it does not carry stock."""
    product = _get_product(product_id)
    if not is_stock_tracked(product):
        raise ValidationError(
            "inventory is not tracked for this product",
            details={"product_id": str(product["id"]), "category": _category_name(product)},
        )
    return product


def adjust_stock(product_id, quantity_delta, *, notes: str | None = None, actor: str | None = None) -> dict:
    """
    Manual stock correction (count, breakage, spoilage).

    Positive deltas add stock, negative remove it; the result may never go
    below zero.
    """
    product = ensure_inventory_allowed(product_id)
    delta = require_int(quantity_delta, "quantity_delta")
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero")

    if delta < 0:
        on_hand = ledger_service.current_stock(product["id"])
        if on_hand + delta < 0:
            raise InsufficientStockError(
                "adjustment would make stock negative",
                details={"product_id": str(product["id"]), "available": on_hand, "requested": -delta},
            )
        return ledger_service.record_entry(
            product["id"],
            quantity_out=-delta,
            transaction_type=ledger_service.TX_ADJUSTMENT,
            reference_type="adjustment",
            notes=notes,
            actor=actor,
        )

    return ledger_service.record_entry(
        product["id"],
        quantity_in=delta,
        transaction_type=ledger_service.TX_ADJUSTMENT,
        reference_type="adjustment",
        unit_price_cents=product.get("cost_cents") or 0,
        notes=notes,
        actor=actor,
    )


def record_return(
    product_id,
    quantity,
    *,
    reference_type: str | None = None,
    reference_id=None,
    notes: str | None = None,
    actor: str | None = None,
) -> dict:
    """Goods coming back into stock (customer return, unused kitchen stock)."""
    product = ensure_inventory_allowed(product_id)
    qty = require_positive_quantity(quantity)
    return ledger_service.record_entry(
        product["id"],
        quantity_in=qty,
        transaction_type=ledger_service.TX_RETURN,
        reference_type=reference_type,
        reference_id=reference_id,
        unit_price_cents=product.get("cost_cents") or 0,
        notes=notes,
        actor=actor,
    )


def tracked_products() -> list[dict]:
    products = get_store().query("products", {"is_active": True, "tracks_inventory": True}, order_by=("name",))
    return [p for p in products if is_stock_tracked(p)]


def stock_levels(product_ids: Iterable | None = None) -> dict:
    """Stock per product id; defaults to every active tracked product."""
    if product_ids is None:
        product_ids = [p["id"] for p in tracked_products()]
    return ledger_service.current_stock_batch(product_ids)


def low_stock_products(threshold: int | None = None) -> list[dict]:
    """Tracked products whose computed stock is at or below the threshold."""
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 0)
    threshold = require_int(threshold, "threshold")

    products = tracked_products()
    levels = ledger_service.current_stock_batch([p["id"] for p in products])
    low = []
    for product in products:
        stock = levels[product["id"]]
        if stock <= threshold:
            low.append({**product, "current_stock": stock})
    return low
