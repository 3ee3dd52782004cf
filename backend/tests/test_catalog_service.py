import pytest

from cafe_pos.services import catalog_service
from cafe_pos.validation import NotFoundError, ValidationError


def test_seed_default_categories_is_idempotent(store):
    catalog_service.create_category("food")
    created = catalog_service.seed_default_categories()
    assert "Food" not in [c["name"] for c in created]
    assert catalog_service.seed_default_categories() == []
    names = [c["name"].lower() for c in catalog_service.list_categories()]
    assert names.count("food") == 1


def test_duplicate_category_names_rejected(food):
    with pytest.raises(ValidationError):
        catalog_service.create_category("FOOD")


def test_tracks_inventory_defaults_from_category(burger, latte):
    assert burger["tracks_inventory"] is True
    assert latte["tracks_inventory"] is False
    assert burger["cost_cents"] == 0


def test_product_validation(food):
    with pytest.raises(ValidationError):
        catalog_service.create_product(food["id"], "  ", 100)
    with pytest.raises(ValidationError):
        catalog_service.create_product(food["id"], "Soup", -1)
    with pytest.raises(NotFoundError):
        catalog_service.create_product("missing", "Soup", 100)


def test_list_and_deactivate_products(burger, fries):
    catalog_service.deactivate_product(fries["id"])
    assert [p["name"] for p in catalog_service.list_products()] == ["Burger"]
    assert len(catalog_service.list_products(active_only=False)) == 2
    assert catalog_service.get_product(fries["id"])["is_active"] is False
