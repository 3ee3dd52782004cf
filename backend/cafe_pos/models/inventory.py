from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class InventoryLedgerEntry(db.Model):
    """
    Append-only inventory movement.

    Exactly one of quantity_in / quantity_out is positive. Mistakes are
    fixed by appending a `correction` whose reverses_entry_id points at the
    original; rows are never updated or deleted (the record store refuses).
    """
    __tablename__ = "inventory_ledger"
    __table_args__ = (
        db.CheckConstraint(
            "(quantity_in > 0 AND quantity_out = 0) OR (quantity_in = 0 AND quantity_out > 0)",
            name="ck_inventory_ledger_one_direction",
        ),
        db.Index("ix_inventory_ledger_product_created", "product_id", "created_at"),
        db.Index("ix_inventory_ledger_reference", "reference_type", "reference_id"),
    )

    id = db.Column(db.String(32), primary_key=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity_in = db.Column(db.Integer, nullable=False, default=0)
    quantity_out = db.Column(db.Integer, nullable=False, default=0)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # purchase | sale | adjustment | return | correction
    transaction_type = db.Column(db.String(16), nullable=False, index=True)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(32), nullable=True)
    reference_line_id = db.Column(db.String(32), nullable=True)

    # Set on corrections only; unique so an entry can be reversed once.
    reverses_entry_id = db.Column(db.String(32), db.ForeignKey("inventory_ledger.id"), nullable=True, unique=True)

    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Purchase(db.Model):
    """Stock-in document. Immutable once written."""
    __tablename__ = "purchases"

    id = db.Column(db.String(32), primary_key=True)
    supplier_id = db.Column(db.String(32), db.ForeignKey("suppliers.id"), nullable=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    purchase_number = db.Column(db.String(32), nullable=False, unique=True)
    bill_number = db.Column(db.String(64), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="completed")
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)


class PurchaseLineItem(db.Model):
    __tablename__ = "purchase_items"

    id = db.Column(db.String(32), primary_key=True)
    purchase_id = db.Column(db.String(32), db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)
    ledger_entry_id = db.Column(db.String(32), db.ForeignKey("inventory_ledger.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
