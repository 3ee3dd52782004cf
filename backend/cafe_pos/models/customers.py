from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Customer(db.Model):
    """
    Credit customer.

    credit_balance_cents is a materialized view of credit_transactions
    (sum of credit minus sum of payment), rewritten by reconcile_balance().
    """
    __tablename__ = "customers"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"


class CreditTransaction(db.Model):
    """Append-only customer credit log."""
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_credit_transactions_amount_positive"),
        db.Index("ix_credit_transactions_customer_created", "customer_id", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True)
    customer_id = db.Column(db.String(32), db.ForeignKey("customers.id"), nullable=False)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=True, index=True)
    # credit | payment
    transaction_type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    balance_before_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_after_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
