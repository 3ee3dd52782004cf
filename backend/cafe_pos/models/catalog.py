from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Category(db.Model):
    """Menu category. Only countable categories may carry inventory."""
    __tablename__ = "categories"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"


class Product(db.Model):
    """
    Sellable catalog item.

    Stock is NOT a column: it is always folded from inventory_ledger.
    cost_cents is the running weighted-average unit cost, refreshed by purchases.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category_id", "is_active"),
    )

    id = db.Column(db.String(32), primary_key=True)
    category_id = db.Column(db.String(32), db.ForeignKey("categories.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    tracks_inventory = db.Column(db.Boolean, nullable=False, default=False)
    is_sellable = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"
