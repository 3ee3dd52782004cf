# Overview: Service-layer operations for categories and products.

from __future__ import annotations

from ..store import get_store
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, require_cents


CATEGORIES = "categories"
PRODUCTS = "products"

DEFAULT_CATEGORIES = (
    "Food",
    "Cold Drinks",
    "Snacks",
    "Cigarettes",
    "Tea",
    "Coffee",
    "Hookah",
)


def _clean_name(name, field: str = "name") -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{field} is required")
    return name.strip()


def find_category_by_name(name: str) -> dict | None:
    wanted = name.strip().lower()
    for category in get_store().query(CATEGORIES):
        if category["name"].lower() == wanted:
            return category
    return None


def create_category(name: str, *, display_order: int = 0) -> dict:
    name = _clean_name(name)
    if find_category_by_name(name):
        raise ValidationError("category already exists", details={"name": name})
    store = get_store()
    category_id = store.insert(CATEGORIES, {
        "name": name,
        "display_order": display_order,
        "is_active": True,
        "created_at": utcnow(),
    })
    return store.get(CATEGORIES, category_id)


def seed_default_categories(names=DEFAULT_CATEGORIES) -> list[dict]:
    """Idempotent: only categories missing (case-insensitive) are created."""
    created = []
    for position, name in enumerate(names):
        if find_category_by_name(name) is None:
            created.append(create_category(name, display_order=position))
    return created


def get_category(category_id) -> dict:
    category = get_store().get(CATEGORIES, category_id)
    if category is None:
        raise NotFoundError("category not found", details={"category_id": str(category_id)})
    return category


def list_categories(*, active_only: bool = True) -> list[dict]:
    where = {"is_active": True} if active_only else None
    return get_store().query(CATEGORIES, where, order_by=("display_order", "name"))


def create_product(
    category_id,
    name: str,
    price_cents: int,
    *,
    cost_cents: int = 0,
    tracks_inventory: bool | None = None,
    is_sellable: bool = True,
) -> dict:
    """
    Create a catalog product.

    tracks_inventory defaults to whether the category is countable; it can
    never be switched on for a non-countable category.
    """
    from .inventory_service import can_track_category

    category = get_category(category_id)
    countable = can_track_category(category["name"])
    if tracks_inventory is None:
        tracks_inventory = countable
    elif tracks_inventory and not countable:
        raise ValidationError(
            "inventory is not tracked for this category",
            details={"category": category["name"]},
        )

    now = utcnow()
    store = get_store()
    product_id = store.insert(PRODUCTS, {
        "category_id": category["id"],
        "name": _clean_name(name),
        "price_cents": require_cents(price_cents, "price_cents"),
        "cost_cents": require_cents(cost_cents, "cost_cents"),
        "tracks_inventory": bool(tracks_inventory),
        "is_sellable": bool(is_sellable),
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    })
    return store.get(PRODUCTS, product_id)


def get_product(product_id) -> dict:
    product = get_store().get(PRODUCTS, product_id)
    if product is None:
        raise NotFoundError("product not found", details={"product_id": str(product_id)})
    return product


def list_products(*, category_id=None, active_only: bool = True) -> list[dict]:
    where = {}
    if category_id is not None:
        where["category_id"] = category_id
    if active_only:
        where["is_active"] = True
    return get_store().query(PRODUCTS, where, order_by=("name",))


def deactivate_product(product_id) -> dict:
    product = get_product(product_id)
    get_store().update(PRODUCTS, {"is_active": False, "updated_at": utcnow()}, {"id": product["id"]})
    return get_product(product_id)
