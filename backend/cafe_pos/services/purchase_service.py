# Overview: Service-layer operations for purchases (stock-in) and suppliers.

"""
Purchases

- A purchase and its lines are written once and never changed. Fixing a
  wrong purchase means appending ledger corrections, never editing rows.
- Each line appends one `purchase` ledger entry referencing
  (purchase, line).
- Product cost is a running weighted average:
      (stock * cost + qty * price) / (stock + qty)
  rounded half-up, or the new price when stock is not positive.
- total = SUM(line totals) - discount + tax.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from ..identity import RecordId
from ..store import get_store
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    ValidationError,
    require_cents,
    require_positive_quantity,
    weighted_average_cents,
)
from . import ledger_service
from .document_service import PURCHASE_PREFIX, next_document_number
from .inventory_service import ensure_inventory_allowed


logger = logging.getLogger(__name__)

PURCHASES = "purchases"
PURCHASE_ITEMS = "purchase_items"
SUPPLIERS = "suppliers"

REFERENCE_PURCHASE = "purchase"
STATUS_COMPLETED = "completed"


# =============================================================================
# SUPPLIERS
# =============================================================================

def get_or_create_supplier(name: str, *, phone: str | None = None, address: str | None = None) -> dict:
    """Case-insensitive lookup by name; creates the supplier on first use."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("supplier name is required")
    wanted = name.strip()
    store = get_store()
    for supplier in store.query(SUPPLIERS):
        if supplier["name"].lower() == wanted.lower():
            return supplier
    now = utcnow()
    supplier_id = store.insert(SUPPLIERS, {
        "name": wanted,
        "phone": phone,
        "address": address,
        "created_at": now,
        "updated_at": now,
    })
    return store.get(SUPPLIERS, supplier_id)


def get_supplier(supplier_id) -> dict:
    supplier = get_store().get(SUPPLIERS, supplier_id)
    if supplier is None:
        raise NotFoundError("supplier not found", details={"supplier_id": str(supplier_id)})
    return supplier


def list_suppliers() -> list[dict]:
    return get_store().query(SUPPLIERS, order_by=("name",))


def _resolve_supplier(supplier) -> dict | None:
    if supplier is None:
        return None
    if isinstance(supplier, RecordId):
        return get_supplier(supplier)
    if isinstance(supplier, Mapping):
        if supplier.get("id") is not None:
            return get_supplier(supplier["id"])
        return get_or_create_supplier(supplier.get("name"), phone=supplier.get("phone"), address=supplier.get("address"))
    return get_or_create_supplier(supplier)


# =============================================================================
# PURCHASES
# =============================================================================

def _validate_lines(lines: Iterable[Mapping]) -> list[dict]:
    checked = []
    for index, line in enumerate(lines or []):
        product = ensure_inventory_allowed(line.get("product_id"))
        qty = require_positive_quantity(line.get("quantity"), f"lines[{index}].quantity")
        price = require_cents(line.get("unit_price_cents", 0), f"lines[{index}].unit_price_cents")
        checked.append({"product": product, "quantity": qty, "unit_price_cents": price})
    if not checked:
        raise ValidationError("a purchase needs at least one line")
    return checked


def _refresh_average_cost(product_id, quantity: int, unit_price_cents: int) -> int:
    store = get_store()
    product = store.get("products", product_id)
    on_hand = ledger_service.current_stock(product_id)
    if on_hand <= 0:
        new_cost = unit_price_cents
    else:
        value = on_hand * (product.get("cost_cents") or 0) + quantity * unit_price_cents
        new_cost = weighted_average_cents(value, on_hand + quantity)
    store.update("products", {"cost_cents": new_cost, "updated_at": utcnow()}, {"id": product_id})
    return new_cost


def create_purchase(
    supplier,
    lines: Iterable[Mapping],
    *,
    discount_amount_cents=0,
    tax_amount_cents=0,
    bill_number: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
):
    """
    Record a stock-in purchase and return its id.

    `supplier` is a supplier name, a RecordId, or a mapping with `id` or
    `name`. Each line is a mapping of product_id, quantity and
    unit_price_cents.
    """
    checked = _validate_lines(lines)
    discount = require_cents(discount_amount_cents, "discount_amount_cents")
    tax = require_cents(tax_amount_cents, "tax_amount_cents")
    subtotal = sum(line["quantity"] * line["unit_price_cents"] for line in checked)
    if discount > subtotal:
        raise ValidationError(
            "discount exceeds purchase subtotal",
            details={"subtotal_cents": subtotal, "discount_amount_cents": discount},
        )
    supplier_row = _resolve_supplier(supplier)

    store = get_store()
    now = utcnow()
    purchase_id = store.insert(PURCHASES, {
        "supplier_id": supplier_row["id"] if supplier_row else None,
        "supplier_name": supplier_row["name"] if supplier_row else None,
        "purchase_number": next_document_number(PURCHASE_PREFIX, now=now),
        "bill_number": bill_number,
        "subtotal_cents": subtotal,
        "discount_amount_cents": discount,
        "tax_amount_cents": tax,
        "total_amount_cents": subtotal - discount + tax,
        "status": STATUS_COMPLETED,
        "notes": notes,
        "created_by": actor,
        "created_at": now,
    })

    for line in checked:
        product = line["product"]
        # The ledger entry references the line, which is inserted after it.
        line_id = RecordId.new()
        _refresh_average_cost(product["id"], line["quantity"], line["unit_price_cents"])
        entry = ledger_service.record_entry(
            product["id"],
            quantity_in=line["quantity"],
            transaction_type=ledger_service.TX_PURCHASE,
            reference_type=REFERENCE_PURCHASE,
            reference_id=purchase_id,
            reference_line_id=line_id,
            unit_price_cents=line["unit_price_cents"],
            notes=bill_number,
            actor=actor,
        )
        store.insert(PURCHASE_ITEMS, {
            "id": line_id,
            "purchase_id": purchase_id,
            "product_id": product["id"],
            "product_name": product["name"],
            "quantity": line["quantity"],
            "unit_price_cents": line["unit_price_cents"],
            "total_price_cents": line["quantity"] * line["unit_price_cents"],
            "ledger_entry_id": entry["id"],
            "created_at": now,
        })

    logger.info("Recorded purchase %s with %d line(s)", purchase_id, len(checked))
    return purchase_id


def correct_purchase_line(purchase_item_id, *, reason: str | None = None, actor: str | None = None) -> dict:
    """Reverse one purchase line's stock-in. The purchase rows are untouched."""
    item = get_store().get(PURCHASE_ITEMS, purchase_item_id)
    if item is None:
        raise NotFoundError("purchase line not found", details={"purchase_item_id": str(purchase_item_id)})
    return ledger_service.reverse_entry(item["ledger_entry_id"], reason=reason, actor=actor)


def correct_purchase(purchase_id, *, reason: str | None = None, actor: str | None = None) -> list[dict]:
    """Reverse every still-active stock-in of a purchase."""
    purchase = get_purchase(purchase_id)
    return ledger_service.reverse_reference(REFERENCE_PURCHASE, purchase["id"], reason=reason, actor=actor)


def get_purchase(purchase_id) -> dict:
    purchase = get_store().get(PURCHASES, purchase_id)
    if purchase is None:
        raise NotFoundError("purchase not found", details={"purchase_id": str(purchase_id)})
    return purchase


def get_purchase_items(purchase_id) -> list[dict]:
    return get_store().query(PURCHASE_ITEMS, {"purchase_id": purchase_id}, order_by=("created_at", "id"))


def list_purchases(limit: int | None = None) -> list[dict]:
    return get_store().query(PURCHASES, order_by=("-created_at", "-id"), limit=limit)
