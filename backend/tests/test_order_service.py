import re

import pytest

from cafe_pos.services import catalog_service, ledger_service, order_service
from cafe_pos.store import get_store
from cafe_pos.validation import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)

from conftest import stock_up


def _active_sale_entries(order_id):
    entries = get_store().query("inventory_ledger", {"reference_type": "order", "reference_id": order_id})
    reversed_ids = {e["reverses_entry_id"] for e in entries if e["reverses_entry_id"]}
    return [e for e in entries if e["transaction_type"] == "sale" and e["id"] not in reversed_ids]


def _assert_reservations_match_items(order_id):
    items = order_service.get_order_items(order_id)
    active = _active_sale_entries(order_id)
    assert len(active) == len(items)
    by_line = {e["reference_line_id"]: e for e in active}
    for item in items:
        entry = by_line[item["id"]]
        assert item["ledger_entry_id"] == entry["id"]
        assert entry["quantity_out"] == item["quantity"]


def test_create_order_defaults(store):
    order_id = order_service.create_order("takeaway", table_ref="T4", actor="ana")
    order = order_service.get_order(order_id)
    assert re.fullmatch(r"ORD \d{6}/001", order["order_number"])
    assert order["status"] == "pending"
    assert order["payment_status"] == "unpaid"
    assert order["order_type"] == "takeaway"
    assert order["total_amount_cents"] == 0
    assert order["created_by"] == "ana"

    second = order_service.get_order(order_service.create_order())
    assert second["order_number"].endswith("/002")


def test_create_order_rejects_unknown_type(store):
    with pytest.raises(ValidationError):
        order_service.create_order("delivery")


def test_add_item_reserves_stock_and_totals(burger, latte):
    stock_up(burger, 10)
    order_id = order_service.create_order()

    item = order_service.add_item(order_id, burger["id"], 3)
    order_service.add_item(order_id, latte["id"], 2)

    assert item["quantity"] == 3
    assert item["total_price_cents"] == 1500
    assert ledger_service.current_stock(burger["id"]) == 7
    order = order_service.get_order(order_id)
    assert order["subtotal_cents"] == 1500 + 700
    assert order["total_amount_cents"] == 2200
    _assert_reservations_match_items(order_id)


def test_untracked_products_are_never_stock_checked(latte):
    order_id = order_service.create_order()
    order_service.add_item(order_id, latte["id"], 50)
    assert order_service.get_order(order_id)["subtotal_cents"] == 50 * 350


def test_add_item_rejects_oversell(burger):
    stock_up(burger, 2)
    order_id = order_service.create_order()
    with pytest.raises(InsufficientStockError) as exc:
        order_service.add_item(order_id, burger["id"], 3)
    assert exc.value.details["available"] == 2
    assert exc.value.details["requested"] == 3
    assert order_service.get_order_items(order_id) == []
    assert ledger_service.current_stock(burger["id"]) == 2


def test_merging_checks_only_the_additional_quantity(burger):
    stock_up(burger, 5)
    order_id = order_service.create_order()
    order_service.add_item(order_id, burger["id"], 3)
    merged = order_service.add_item(order_id, burger["id"], 2)

    assert merged["quantity"] == 5
    assert len(order_service.get_order_items(order_id)) == 1
    assert ledger_service.current_stock(burger["id"]) == 0
    _assert_reservations_match_items(order_id)

    with pytest.raises(InsufficientStockError):
        order_service.add_item(order_id, burger["id"], 1)


def test_add_item_validation(burger, food):
    order_id = order_service.create_order()
    with pytest.raises(ValidationError):
        order_service.add_item(order_id, burger["id"], 0)
    with pytest.raises(NotFoundError):
        order_service.add_item(order_id, "missing", 1)
    with pytest.raises(NotFoundError):
        order_service.add_item("missing", burger["id"], 1)

    hidden = catalog_service.create_product(food["id"], "Staff Meal", 0, is_sellable=False)
    with pytest.raises(ValidationError):
        order_service.add_item(order_id, hidden["id"], 1)


def test_update_item_quantity(burger):
    stock_up(burger, 6)
    order_id = order_service.create_order()
    item = order_service.add_item(order_id, burger["id"], 2)

    item = order_service.update_item_quantity(item["id"], 5)
    assert item["quantity"] == 5
    assert ledger_service.current_stock(burger["id"]) == 1
    _assert_reservations_match_items(order_id)

    with pytest.raises(InsufficientStockError):
        order_service.update_item_quantity(item["id"], 7)

    item = order_service.update_item_quantity(item["id"], 1)
    assert ledger_service.current_stock(burger["id"]) == 5
    assert order_service.get_order(order_id)["subtotal_cents"] == 500

    assert order_service.update_item_quantity(item["id"], 0) is None
    assert order_service.get_order_items(order_id) == []
    assert ledger_service.current_stock(burger["id"]) == 6


def test_remove_item_restores_stock(burger, fries):
    stock_up(burger, 4)
    stock_up(fries, 4)
    order_id = order_service.create_order()
    burger_item = order_service.add_item(order_id, burger["id"], 2)
    order_service.add_item(order_id, fries["id"], 1)

    order = order_service.remove_item(burger_item["id"])
    assert order["subtotal_cents"] == 250
    assert ledger_service.current_stock(burger["id"]) == 4
    assert ledger_service.is_reversed(burger_item["ledger_entry_id"])
    _assert_reservations_match_items(order_id)


def test_discount_is_clamped_and_rounded(burger):
    stock_up(burger, 10)
    order_id = order_service.create_order()
    order_service.add_item(order_id, burger["id"], 3)

    order = order_service.update_discount(order_id, 10)
    assert order["discount_amount_cents"] == 150
    assert order["total_amount_cents"] == 1350

    order = order_service.update_discount(order_id, 250)
    assert order["discount_percent"] == 100.0
    assert order["total_amount_cents"] == 0

    order = order_service.update_discount(order_id, -3)
    assert order["discount_percent"] == 0.0
    assert order["total_amount_cents"] == 1500

    order = order_service.update_discount(order_id, 33.3)
    assert order["discount_amount_cents"] == 500  # 499.5 -> 500
    assert order["total_amount_cents"] == order["subtotal_cents"] - order["discount_amount_cents"]


def test_recompute_totals_is_idempotent_and_heals(burger, fries):
    stock_up(burger, 5)
    stock_up(fries, 5)
    order_id = order_service.create_order()
    order_service.add_item(order_id, burger["id"], 2)
    order_service.add_item(order_id, fries["id"], 3)
    order_service.update_discount(order_id, 5)

    first = order_service.recompute_totals(order_id)
    second = order_service.recompute_totals(order_id)
    assert first == second

    get_store().update("orders", {"subtotal_cents": 1, "total_amount_cents": 999999}, {"id": order_id})
    healed = order_service.recompute_totals(order_id)
    assert healed["subtotal_cents"] == 1750
    assert healed["total_amount_cents"] == first["total_amount_cents"]


def test_cancel_pending_order_restores_all_stock(burger, fries):
    stock_up(burger, 5)
    stock_up(fries, 5)
    order_id = order_service.create_order()
    order_service.add_item(order_id, burger["id"], 2)
    order_service.add_item(order_id, fries["id"], 5)

    order = order_service.cancel_order(order_id, reason="walked out")
    assert order["status"] == "cancelled"
    assert order["cancelled_at"] is not None
    assert ledger_service.current_stock(burger["id"]) == 5
    assert ledger_service.current_stock(fries["id"]) == 5
    assert _active_sale_entries(order_id) == []

    with pytest.raises(InvalidStateError):
        order_service.cancel_order(order_id)
    with pytest.raises(InvalidStateError):
        order_service.add_item(order_id, burger["id"], 1)


def test_delete_pending_order(burger):
    stock_up(burger, 5)
    order_id = order_service.create_order()
    order_service.add_item(order_id, burger["id"], 4)

    order_service.delete_order(order_id, actor="manager")
    with pytest.raises(NotFoundError):
        order_service.get_order(order_id)
    assert order_service.get_order_items(order_id) == []
    assert ledger_service.current_stock(burger["id"]) == 5


def test_delete_after_cancel_does_not_restore_twice(burger):
    stock_up(burger, 5)
    order_id = order_service.create_order()
    order_service.add_item(order_id, burger["id"], 4)
    order_service.cancel_order(order_id)
    order_service.delete_order(order_id)
    assert ledger_service.current_stock(burger["id"]) == 5


def test_list_orders_filters(store):
    a = order_service.create_order()
    b = order_service.create_order()
    order_service.cancel_order(a)
    assert [o["id"] for o in order_service.list_orders(status="pending")] == [b]
    assert {o["id"] for o in order_service.list_orders()} == {a, b}
    assert len(order_service.list_orders(limit=1)) == 1


@pytest.mark.parametrize("total, paid, credit, expected", [
    (1000, 0, 0, "unpaid"),
    (1000, 1000, 0, "paid"),
    (1000, 400, 600, "partial"),
    (1000, 0, 1000, "unpaid"),
    (0, 0, 0, "unpaid"),
])
def test_derive_payment_status(total, paid, credit, expected):
    assert order_service.derive_payment_status(total, paid, credit) == expected


def _fail(monkeypatch, name):
    def unavailable(*args, **kwargs):
        raise StoreUnavailableError("record store unavailable")

    monkeypatch.setattr(ledger_service, name, unavailable)


def test_failed_reservation_write_keeps_the_old_reservation(burger, monkeypatch):
    stock_up(burger, 10)
    order_id = order_service.create_order()
    item = order_service.add_item(order_id, burger["id"], 3)

    with monkeypatch.context() as m:
        _fail(m, "record_entry")
        with pytest.raises(StoreUnavailableError):
            order_service.update_item_quantity(item["id"], 5)

    assert order_service.get_order_item(item["id"])["quantity"] == 3
    assert ledger_service.current_stock(burger["id"]) == 7
    assert not ledger_service.is_reversed(item["ledger_entry_id"])
    _assert_reservations_match_items(order_id)


def test_failed_release_over_holds_stock_until_the_next_write(burger, monkeypatch):
    stock_up(burger, 10)
    order_id = order_service.create_order()
    item = order_service.add_item(order_id, burger["id"], 3)

    with monkeypatch.context() as m:
        _fail(m, "reverse_entry")
        with pytest.raises(StoreUnavailableError):
            order_service.update_item_quantity(item["id"], 5)

    # Both reservations are still active: held, never over-restored.
    assert ledger_service.current_stock(burger["id"]) == 2
    assert len(_active_sale_entries(order_id)) == 2

    order_service.update_item_quantity(item["id"], 4)
    assert ledger_service.current_stock(burger["id"]) == 6
    _assert_reservations_match_items(order_id)


def test_cancel_releases_stranded_reservations(burger, monkeypatch):
    stock_up(burger, 10)
    order_id = order_service.create_order()
    item = order_service.add_item(order_id, burger["id"], 3)

    with monkeypatch.context() as m:
        _fail(m, "reverse_entry")
        with pytest.raises(StoreUnavailableError):
            order_service.update_item_quantity(item["id"], 5)

    order_service.cancel_order(order_id, reason="customer left")
    assert ledger_service.current_stock(burger["id"]) == 10
    assert _active_sale_entries(order_id) == []


def test_failed_add_leaves_no_line_and_stock_untouched(burger, monkeypatch):
    stock_up(burger, 10)
    order_id = order_service.create_order()

    with monkeypatch.context() as m:
        _fail(m, "record_entry")
        with pytest.raises(StoreUnavailableError):
            order_service.add_item(order_id, burger["id"], 2)

    assert order_service.get_order_items(order_id) == []
    assert ledger_service.current_stock(burger["id"]) == 10
    assert order_service.get_order(order_id)["total_amount_cents"] == 0
