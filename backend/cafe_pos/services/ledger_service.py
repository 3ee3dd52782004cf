# Overview: Append-only inventory ledger; stock is always folded from its entries.

"""
Inventory ledger invariants (authoritative)

- current_stock(p) = SUM(quantity_in) - SUM(quantity_out) over p's entries.
  Computed on every read, never cached or stored on the product.
- Each entry moves stock in exactly one direction.
- Entries are never updated or deleted. A mistake is fixed by appending a
  `correction` with the directions swapped, the same reference and
  reverses_entry_id pointing at the original.
- An entry can be reversed once; corrections themselves cannot be reversed.
- History is reverse-chronological with keyset pagination on
  (created_at, id), so appends made while a reader is paging never shift
  the pages it has yet to read.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Mapping

from .. import events
from ..identity import RecordId
from ..store import get_store
from ..time_utils import utcnow
from ..validation import (
    AlreadyReversedError,
    IntegrityViolation,
    NotFoundError,
    ValidationError,
    require_int,
)


logger = logging.getLogger(__name__)

LEDGER = "inventory_ledger"

TX_PURCHASE = "purchase"
TX_SALE = "sale"
TX_ADJUSTMENT = "adjustment"
TX_RETURN = "return"
TX_CORRECTION = "correction"

VALID_TRANSACTION_TYPES = (
    TX_PURCHASE,
    TX_SALE,
    TX_ADJUSTMENT,
    TX_RETURN,
    TX_CORRECTION,
)

DEFAULT_PAGE_SIZE = 50


def _delta(entry: Mapping) -> int:
    return int(entry.get("quantity_in") or 0) - int(entry.get("quantity_out") or 0)


# =============================================================================
# STOCK
# =============================================================================

def current_stock(product_id) -> int:
    """Fold every entry for the product; 0 when it has none."""
    entries = get_store().query(LEDGER, {"product_id": product_id})
    return sum(_delta(e) for e in entries)


def current_stock_batch(product_ids: Iterable) -> dict:
    """
    Stock for many products with a single query.

    Every requested id is present in the result, defaulting to 0.
    """
    ids = [RecordId.coerce(pid) for pid in product_ids]
    totals = {pid: 0 for pid in ids}
    if not ids:
        return totals
    for entry in get_store().query(LEDGER, {"product_id__in": ids}):
        totals[entry["product_id"]] = totals.get(entry["product_id"], 0) + _delta(entry)
    return totals


# =============================================================================
# APPEND
# =============================================================================

def _build_entry(
    product_id,
    *,
    quantity_in=0,
    quantity_out=0,
    transaction_type: str,
    reference_type: str | None = None,
    reference_id=None,
    reference_line_id=None,
    unit_price_cents=0,
    notes: str | None = None,
    actor: str | None = None,
    reverses_entry_id=None,
) -> dict:
    if transaction_type not in VALID_TRANSACTION_TYPES:
        raise ValidationError(
            "unknown transaction type",
            details={"transaction_type": transaction_type, "allowed": list(VALID_TRANSACTION_TYPES)},
        )
    if transaction_type == TX_CORRECTION and reverses_entry_id is None:
        raise ValidationError("corrections are created by reversing an existing entry")

    qty_in = require_int(quantity_in or 0, "quantity_in")
    qty_out = require_int(quantity_out or 0, "quantity_out")
    if qty_in < 0 or qty_out < 0:
        raise ValidationError("quantities must be positive", details={"quantity_in": qty_in, "quantity_out": qty_out})
    if qty_in and qty_out:
        raise ValidationError("an entry moves stock in one direction only")
    if not qty_in and not qty_out:
        raise ValidationError("an entry needs a positive quantity_in or quantity_out")

    product = get_store().get("products", product_id)
    if product is None:
        raise NotFoundError("product not found", details={"product_id": str(product_id)})

    return {
        "product_id": product["id"],
        "product_name": product["name"],
        "quantity_in": qty_in,
        "quantity_out": qty_out,
        "unit_price_cents": require_int(unit_price_cents or 0, "unit_price_cents"),
        "transaction_type": transaction_type,
        "reference_type": reference_type,
        "reference_id": reference_id,
        "reference_line_id": reference_line_id,
        "reverses_entry_id": reverses_entry_id,
        "notes": notes,
        "created_by": actor,
        "created_at": utcnow(),
    }


def _append(fields: dict) -> dict:
    store = get_store()
    entry_id = store.insert(LEDGER, fields)
    entry = store.get(LEDGER, entry_id)
    events.publish(events.stock_changed, {
        "product_id": entry["product_id"],
        "entry_id": entry["id"],
        "transaction_type": entry["transaction_type"],
        "delta": _delta(entry),
    })
    return entry


def record_entry(product_id, **kwargs) -> dict:
    """
    Append one ledger entry and return it.

    Keyword arguments: quantity_in / quantity_out (exactly one positive),
    transaction_type, reference_type, reference_id, reference_line_id,
    unit_price_cents, notes, actor.
    """
    if kwargs.get("transaction_type") == TX_CORRECTION:
        raise ValidationError("corrections are created by reversing an existing entry")
    kwargs.pop("reverses_entry_id", None)
    return _append(_build_entry(product_id, **kwargs))


def record_entries(entries: Iterable[Mapping]) -> list[dict]:
    """
    Append several entries. All are validated before the first is written.

    Each mapping holds `product_id` plus the record_entry keyword arguments.
    """
    built = []
    for fields in entries:
        fields = dict(fields)
        if fields.get("transaction_type") == TX_CORRECTION:
            raise ValidationError("corrections are created by reversing an existing entry")
        fields.pop("reverses_entry_id", None)
        product_id = fields.pop("product_id", None)
        built.append(_build_entry(product_id, **fields))
    return [_append(fields) for fields in built]


# =============================================================================
# CORRECTIONS
# =============================================================================

def get_entry(entry_id) -> dict:
    entry = get_store().get(LEDGER, entry_id)
    if entry is None:
        raise NotFoundError("ledger entry not found", details={"entry_id": str(entry_id)})
    return entry


def is_reversed(entry_id) -> bool:
    return get_store().exists(LEDGER, {"reverses_entry_id": entry_id})


def reverse_entry(entry_id, *, reason: str | None = None, actor: str | None = None) -> dict:
    """
    Append a correction that cancels `entry_id`. The original is untouched.

    Raises IntegrityViolation for corrections and AlreadyReversedError for
    entries that already have a correction.
    """
    original = get_entry(entry_id)
    if original["transaction_type"] == TX_CORRECTION:
        raise IntegrityViolation("a correction cannot be reversed", details={"entry_id": str(original["id"])})
    if is_reversed(original["id"]):
        logger.warning("Rejected second reversal of ledger entry %s", original["id"])
        raise AlreadyReversedError("ledger entry is already reversed", details={"entry_id": str(original["id"])})

    fields = _build_entry(
        original["product_id"],
        quantity_in=original["quantity_out"],
        quantity_out=original["quantity_in"],
        transaction_type=TX_CORRECTION,
        reference_type=original["reference_type"],
        reference_id=original["reference_id"],
        reference_line_id=original["reference_line_id"],
        unit_price_cents=original["unit_price_cents"],
        notes=reason,
        actor=actor,
        reverses_entry_id=original["id"],
    )
    return _append(fields)


def active_entries(
    reference_type: str,
    reference_id,
    *,
    reference_line_id=None,
    transaction_type: str | None = None,
) -> list[dict]:
    """Non-correction entries carrying the reference that are not reversed yet."""
    where = {"reference_type": reference_type, "reference_id": reference_id}
    if reference_line_id is not None:
        where["reference_line_id"] = reference_line_id
    entries = get_store().query(LEDGER, where, order_by=("created_at", "id"))
    reversed_ids = {e["reverses_entry_id"] for e in entries if e["reverses_entry_id"] is not None}
    return [
        e for e in entries
        if e["transaction_type"] != TX_CORRECTION
        and e["id"] not in reversed_ids
        and (transaction_type is None or e["transaction_type"] == transaction_type)
    ]


def reverse_reference(
    reference_type: str,
    reference_id,
    *,
    reference_line_id=None,
    reason: str | None = None,
    actor: str | None = None,
) -> list[dict]:
    """Reverse every still-active, non-correction entry carrying the reference."""
    return [
        reverse_entry(entry["id"], reason=reason, actor=actor)
        for entry in active_entries(reference_type, reference_id, reference_line_id=reference_line_id)
    ]


# =============================================================================
# HISTORY
# =============================================================================

def _history_page(product_id, cursor, size: int) -> list[dict]:
    store = get_store()
    if cursor is None:
        return store.query(LEDGER, {"product_id": product_id}, order_by=("-created_at", "-id"), limit=size)

    created_at, last_id = cursor
    page = store.query(
        LEDGER,
        {"product_id": product_id, "created_at": created_at, "id__lt": last_id},
        order_by=("-id",),
        limit=size,
    )
    if len(page) < size:
        page += store.query(
            LEDGER,
            {"product_id": product_id, "created_at__lt": created_at},
            order_by=("-created_at", "-id"),
            limit=size - len(page),
        )
    return page


def iter_history(product_id, *, limit: int | None = None, page_size: int = DEFAULT_PAGE_SIZE) -> Iterator[dict]:
    """
    Lazily yield the product's entries, newest first.

    Finite and restartable: each call starts again from the newest entry.
    """
    if page_size <= 0:
        raise ValidationError("page_size must be positive")
    if limit is not None and limit < 0:
        raise ValidationError("limit must be non-negative")

    yielded = 0
    cursor = None
    while True:
        size = page_size if limit is None else min(page_size, limit - yielded)
        if size <= 0:
            return
        page = _history_page(product_id, cursor, size)
        for entry in page:
            yield entry
        yielded += len(page)
        if len(page) < size:
            return
        last = page[-1]
        cursor = (last["created_at"], last["id"])


def history(product_id, limit: int = DEFAULT_PAGE_SIZE) -> list[dict]:
    return list(iter_history(product_id, limit=limit))
