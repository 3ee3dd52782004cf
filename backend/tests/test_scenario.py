"""End-to-end till day: stock in, sell, discount, settle, cancel."""

from cafe_pos.services import ledger_service, order_service, payment_service, purchase_service


def test_till_day(burger):
    assert ledger_service.current_stock(burger["id"]) == 0

    purchase_service.create_purchase(
        "Metro Wholesale",
        [{"product_id": burger["id"], "quantity": 10, "unit_price_cents": 50}],
    )
    assert ledger_service.current_stock(burger["id"]) == 10

    sale = order_service.create_order("takeaway")
    order_service.add_item(sale, burger["id"], 3)
    assert ledger_service.current_stock(burger["id"]) == 7
    assert order_service.get_order(sale)["subtotal_cents"] == 1500

    order = order_service.update_discount(sale, 10)
    assert order["total_amount_cents"] == 1350

    order = payment_service.complete_payment(sale, method="cash", amount_cents=1350)
    assert order["payment_status"] == "paid"
    assert order["paid_amount_cents"] == order["total_amount_cents"]

    held = order_service.create_order()
    order_service.add_item(held, burger["id"], 2)
    assert ledger_service.current_stock(burger["id"]) == 5

    order_service.cancel_order(held, reason="customer left")
    assert ledger_service.current_stock(burger["id"]) == 7
    assert order_service.get_order(sale)["payment_status"] == "paid"

    # Ledger replay: 10 in, 3 out, 2 out, 2 back
    entries = ledger_service.history(burger["id"])
    assert sum(e["quantity_in"] for e in entries) == 12
    assert sum(e["quantity_out"] for e in entries) == 5
