from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Order(db.Model):
    """
    Customer order.

    subtotal/discount/total and paid/credit/payment_status are materialized
    from order_items, payments and credit_transactions by recompute_totals().
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    order_type = db.Column(db.String(16), nullable=False, default="dine_in")
    table_ref = db.Column(db.String(32), nullable=True)

    # pending | completed | cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # unpaid | partial | paid
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    payment_method = db.Column(db.String(16), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Float, nullable=False, default=0.0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    customer_id = db.Column(db.String(32), db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)


class OrderLineItem(db.Model):
    """ledger_entry_id is the line's active (unreversed) sale entry."""
    __tablename__ = "order_items"

    id = db.Column(db.String(32), primary_key=True)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)
    ledger_entry_id = db.Column(db.String(32), db.ForeignKey("inventory_ledger.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Payment(db.Model):
    """Money actually collected against an order. Append-only."""
    __tablename__ = "payments"

    id = db.Column(db.String(32), primary_key=True)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    # cash | card | digital
    payment_method = db.Column(db.String(16), nullable=False)
    transaction_ref = db.Column(db.String(128), nullable=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
