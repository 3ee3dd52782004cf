# Overview: Service-layer operations for orders; item reservations go through the inventory ledger.

"""
Order lifecycle

    pending --(add/remove/update items, edit discount)*--> completed
    pending | completed-with-outstanding-credit --> cancelled

Stock reservations:
- Every line on a non-cancelled order owns exactly one active `sale`
  entry (order_items.ledger_entry_id) whose quantity_out equals the line
  quantity.
- Changing a line's quantity appends a new entry for the full new quantity
  first and only then reverses the line's other active entries. A failure
  in between leaves stock over-held, never released early, and the next
  write on the line reverses the leftover.
- Removing a line, cancelling or deleting the order appends corrections for
  every still-active entry referencing it.
- Only stock-tracked products are checked against available stock. Stock
  read from the ledger already nets out what this order holds, so the
  check compares the additional quantity with current stock.

Materialized fields, refreshed by recompute_totals() after every write:
- subtotal = SUM(line totals), discount = subtotal * pct / 100 (half-up),
  total = subtotal - discount, tax is always 0.
- paid = SUM(payments), credit = outstanding credit for the order.
- payment_status: paid iff paid > 0, paid >= total and credit == 0;
  partial iff 0 < paid < total; otherwise unpaid.
"""

from __future__ import annotations

import logging
from datetime import datetime

from .. import events
from ..identity import RecordId
from ..store import get_store
from ..time_utils import utcnow
from ..validation import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    clamp_percent,
    percent_of,
    require_int,
    require_positive_quantity,
)
from . import credit_service, ledger_service
from .document_service import ORDER_PREFIX, next_document_number
from .inventory_service import is_stock_tracked


logger = logging.getLogger(__name__)

ORDERS = "orders"
ORDER_ITEMS = "order_items"
PAYMENTS = "payments"

REFERENCE_ORDER = "order"

ORDER_TYPE_DINE_IN = "dine_in"
ORDER_TYPE_TAKEAWAY = "takeaway"
VALID_ORDER_TYPES = (ORDER_TYPE_DINE_IN, ORDER_TYPE_TAKEAWAY)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

PAYMENT_STATUS_UNPAID = "unpaid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"


def derive_payment_status(total_cents: int, paid_cents: int, credit_cents: int) -> str:
    if paid_cents > 0 and paid_cents >= total_cents and credit_cents == 0:
        return PAYMENT_STATUS_PAID
    if 0 < paid_cents < total_cents:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id) -> dict:
    order = get_store().get(ORDERS, order_id)
    if order is None:
        raise NotFoundError("order not found", details={"order_id": str(order_id)})
    return order


def get_order_items(order_id) -> list[dict]:
    return get_store().query(ORDER_ITEMS, {"order_id": order_id}, order_by=("created_at", "id"))


def get_order_item(order_item_id) -> dict:
    item = get_store().get(ORDER_ITEMS, order_item_id)
    if item is None:
        raise NotFoundError("order item not found", details={"order_item_id": str(order_item_id)})
    return item


def list_orders(
    *,
    status: str | None = None,
    since: datetime | None = None,
    limit: int | None = None,
) -> list[dict]:
    where = {}
    if status is not None:
        where["status"] = status
    if since is not None:
        where["created_at__gte"] = since
    return get_store().query(ORDERS, where, order_by=("-created_at", "-id"), limit=limit)


def _require_pending(order_id) -> dict:
    order = get_order(order_id)
    if order["status"] != STATUS_PENDING:
        raise InvalidStateError(
            f"order is {order['status']}; only pending orders can be changed",
            details={"order_id": str(order["id"]), "status": order["status"]},
        )
    return order


# =============================================================================
# CREATE
# =============================================================================

def create_order(
    order_type: str = ORDER_TYPE_DINE_IN,
    *,
    table_ref: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
):
    """Open a pending order and return its id."""
    if order_type not in VALID_ORDER_TYPES:
        raise ValidationError(
            "invalid order_type",
            details={"order_type": order_type, "allowed": list(VALID_ORDER_TYPES)},
        )
    now = utcnow()
    order_id = get_store().insert(ORDERS, {
        "order_number": next_document_number(ORDER_PREFIX, now=now),
        "order_type": order_type,
        "table_ref": table_ref,
        "status": STATUS_PENDING,
        "payment_status": PAYMENT_STATUS_UNPAID,
        "payment_method": None,
        "subtotal_cents": 0,
        "discount_percent": 0.0,
        "discount_amount_cents": 0,
        "tax_amount_cents": 0,
        "total_amount_cents": 0,
        "paid_amount_cents": 0,
        "credit_amount_cents": 0,
        "customer_id": None,
        "customer_name": None,
        "notes": notes,
        "created_by": actor,
        "created_at": now,
        "updated_at": now,
        "completed_at": None,
        "cancelled_at": None,
    })
    return order_id


# =============================================================================
# ITEMS
# =============================================================================

def _sellable_product(product_id) -> dict:
    product = get_store().get("products", product_id)
    if product is None:
        raise NotFoundError("product not found", details={"product_id": str(product_id)})
    if not product.get("is_active") or not product.get("is_sellable"):
        raise ValidationError("product is not available for sale", details={"product_id": str(product["id"])})
    return product


def _check_stock(product: dict, additional: int) -> None:
    if additional <= 0 or not is_stock_tracked(product):
        return
    available = ledger_service.current_stock(product["id"])
    if additional > available:
        raise InsufficientStockError(
            "insufficient stock",
            details={
                "product_id": str(product["id"]),
                "product_name": product["name"],
                "requested": additional,
                "available": available,
            },
        )


def _release_item(item: dict, *, reason: str, actor: str | None, keep=None) -> list[dict]:
    """Reverse the line's active sale entries, except `keep`."""
    corrections = []
    entries = ledger_service.active_entries(
        REFERENCE_ORDER,
        item["order_id"],
        reference_line_id=item["id"],
        transaction_type=ledger_service.TX_SALE,
    )
    for entry in entries:
        if keep is not None and entry["id"] == keep:
            continue
        corrections.append(ledger_service.reverse_entry(entry["id"], reason=reason, actor=actor))
    return corrections


def _release_order(order: dict, *, reason: str, actor: str | None) -> list[dict]:
    """Reverse every active sale entry held by the order, stranded ones included."""
    return [
        ledger_service.reverse_entry(entry["id"], reason=reason, actor=actor)
        for entry in ledger_service.active_entries(REFERENCE_ORDER, order["id"], transaction_type=ledger_service.TX_SALE)
    ]


def _reserve_item(order: dict, item: dict, quantity: int, *, actor: str | None) -> dict:
    """Swap the line's active sale entries for one covering `quantity`."""
    entry = ledger_service.record_entry(
        item["product_id"],
        quantity_out=quantity,
        transaction_type=ledger_service.TX_SALE,
        reference_type=REFERENCE_ORDER,
        reference_id=order["id"],
        reference_line_id=item["id"],
        unit_price_cents=item["unit_price_cents"],
        notes=order["order_number"],
        actor=actor,
    )
    _release_item(item, reason=f"{order['order_number']}: quantity changed", actor=actor, keep=entry["id"])
    return entry


def add_item(order_id, product_id, quantity, *, actor: str | None = None, notes: str | None = None) -> dict:
    """
    Add `quantity` of a product to a pending order.

    A product already on the order is merged into its existing line.
    """
    order = _require_pending(order_id)
    qty = require_positive_quantity(quantity)
    product = _sellable_product(product_id)
    _check_stock(product, qty)

    store = get_store()
    existing = store.query(ORDER_ITEMS, {"order_id": order["id"], "product_id": product["id"]}, limit=1)
    if existing:
        item = existing[0]
        merged = item["quantity"] + qty
        entry = _reserve_item(order, item, merged, actor=actor)
        store.update(ORDER_ITEMS, {
            "quantity": merged,
            "total_price_cents": merged * item["unit_price_cents"],
            "ledger_entry_id": entry["id"],
        }, {"id": item["id"]})
        item_id = item["id"]
    else:
        # The sale entry is written before the line row it references.
        item = {
            "id": RecordId.new(),
            "order_id": order["id"],
            "product_id": product["id"],
            "product_name": product["name"],
            "quantity": qty,
            "unit_price_cents": product["price_cents"],
            "total_price_cents": qty * product["price_cents"],
            "notes": notes,
            "created_at": utcnow(),
        }
        entry = _reserve_item(order, item, qty, actor=actor)
        item_id = store.insert(ORDER_ITEMS, {**item, "ledger_entry_id": entry["id"]})

    recompute_totals(order["id"])
    return get_order_item(item_id)


def update_item_quantity(order_item_id, quantity, *, actor: str | None = None) -> dict | None:
    """
    Set a line's quantity. Zero or less removes the line (returns None).
    """
    item = get_order_item(order_item_id)
    order = _require_pending(item["order_id"])
    qty = require_int(quantity, "quantity")
    if qty <= 0:
        remove_item(item["id"], actor=actor)
        return None
    if qty == item["quantity"]:
        return item

    product = get_store().get("products", item["product_id"])
    if product is not None:
        _check_stock(product, qty - item["quantity"])

    entry = _reserve_item(order, item, qty, actor=actor)
    get_store().update(ORDER_ITEMS, {
        "quantity": qty,
        "total_price_cents": qty * item["unit_price_cents"],
        "ledger_entry_id": entry["id"],
    }, {"id": item["id"]})
    recompute_totals(order["id"])
    return get_order_item(item["id"])


def remove_item(order_item_id, *, actor: str | None = None) -> dict:
    """Drop a line from a pending order and give its stock back."""
    item = get_order_item(order_item_id)
    order = _require_pending(item["order_id"])
    _release_item(item, reason=f"{order['order_number']}: item removed", actor=actor)
    get_store().delete(ORDER_ITEMS, {"id": item["id"]})
    return recompute_totals(order["id"])


# =============================================================================
# TOTALS
# =============================================================================

def update_discount(order_id, discount_percent) -> dict:
    order = get_order(order_id)
    if order["payment_status"] == PAYMENT_STATUS_PAID:
        raise InvalidStateError("discount cannot change on a paid order", details={"order_id": str(order["id"])})
    order = _require_pending(order["id"])
    pct = clamp_percent(discount_percent)
    get_store().update(ORDERS, {"discount_percent": pct, "updated_at": utcnow()}, {"id": order["id"]})
    return recompute_totals(order["id"])


def recompute_totals(order_id) -> dict:
    """
    Refresh every derived order field from its logs. Idempotent.
    """
    order = get_order(order_id)
    store = get_store()

    subtotal = sum(item["total_price_cents"] for item in get_order_items(order["id"]))
    pct = order.get("discount_percent") or 0.0
    discount = percent_of(subtotal, pct)
    total = subtotal - discount
    paid = sum(p["amount_cents"] for p in store.query(PAYMENTS, {"order_id": order["id"]}))
    credit = credit_service.order_credit_outstanding(order["id"])

    store.update(ORDERS, {
        "subtotal_cents": subtotal,
        "discount_amount_cents": discount,
        "tax_amount_cents": 0,
        "total_amount_cents": total,
        "paid_amount_cents": paid,
        "credit_amount_cents": credit,
        "payment_status": derive_payment_status(total, paid, credit),
    }, {"id": order["id"]})
    return get_order(order["id"])


# =============================================================================
# CANCEL / DELETE
# =============================================================================

def cancel_order(order_id, *, reason: str | None = None, actor: str | None = None) -> dict:
    """
    Cancel an order: every active reservation goes back to stock.

    Refused for fully paid and already cancelled orders. Outstanding credit
    on a settled order is written off the customer's tab; money already
    collected stays on record.
    """
    order = get_order(order_id)
    if order["status"] == STATUS_CANCELLED:
        raise InvalidStateError("order is already cancelled", details={"order_id": str(order["id"])})
    if order["payment_status"] == PAYMENT_STATUS_PAID:
        raise InvalidStateError("a fully paid order cannot be cancelled", details={"order_id": str(order["id"])})

    note = f"{order['order_number']}: order cancelled"
    if reason:
        note = f"{note} ({reason})"

    _release_order(order, reason=note, actor=actor)

    outstanding = credit_service.order_credit_outstanding(order["id"])
    if outstanding > 0 and order.get("customer_id") is not None:
        credit_service.record_credit_payment(
            order["customer_id"],
            outstanding,
            order_id=order["id"],
            notes=f"{note}: credit written off",
            actor=actor,
        )

    now = utcnow()
    get_store().update(ORDERS, {
        "status": STATUS_CANCELLED,
        "cancelled_at": now,
        "updated_at": now,
    }, {"id": order["id"]})
    order = recompute_totals(order["id"])

    logger.info("Cancelled order %s (credit written off: %s)", order["order_number"], outstanding)
    events.publish(events.order_cancelled, {
        "order_id": order["id"],
        "order_number": order["order_number"],
        "credit_written_off_cents": max(outstanding, 0),
    })
    return order


def delete_order(order_id, *, actor: str | None = None) -> None:
    """
    Remove an order outright.

    Only orders without payments or credit history can be deleted: those logs
    are append-only and reference the order. Everything else is cancelled.
    """
    order = get_order(order_id)
    store = get_store()
    if store.exists(PAYMENTS, {"order_id": order["id"]}) or store.exists(
        credit_service.CREDIT_TRANSACTIONS, {"order_id": order["id"]}
    ):
        raise InvalidStateError(
            "order has payment history; cancel it instead",
            details={"order_id": str(order["id"])},
        )

    _release_order(order, reason=f"{order['order_number']}: order deleted", actor=actor)

    store.delete(ORDER_ITEMS, {"order_id": order["id"]})
    store.delete(ORDERS, {"id": order["id"]})
    logger.info("Deleted order %s by %s", order["order_number"], actor or "unknown")
