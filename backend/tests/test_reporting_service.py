from datetime import timedelta

import pytest

from cafe_pos.services import credit_service, order_service, payment_service, reporting_service
from cafe_pos.time_utils import utcnow

from conftest import stock_up


@pytest.fixture
def tab(store):
    return credit_service.create_customer("Lee Tab", credit_limit_cents=10000)


def _sell(product, quantity):
    order_id = order_service.create_order()
    order_service.add_item(order_id, product["id"], quantity)
    return order_id


def test_empty_dashboard(store):
    snapshot = reporting_service.dashboard_snapshot()
    assert snapshot["today_sales_cents"] == 0
    assert snapshot["today_credit_cents"] == 0
    assert snapshot["low_stock_count"] == 0
    assert snapshot["generated_at"].endswith("Z")


def test_sales_and_credit_today(burger, latte, tab):
    stock_up(burger, 10)

    cash = _sell(burger, 2)
    payment_service.complete_payment(cash, method="cash", amount_cents=1000)

    partial = _sell(burger, 1)
    order_service.add_item(partial, latte["id"], 1)
    payment_service.complete_payment(partial, method="card", amount_cents=300, customer_id=tab["id"])

    # Pending orders count for nothing
    _sell(latte, 3)

    assert reporting_service.today_sales() == 1300
    assert reporting_service.today_credit() == 550

    tomorrow = utcnow() + timedelta(days=1)
    assert reporting_service.today_sales(tomorrow) == 0
    assert reporting_service.today_credit(tomorrow) == 0


def test_credit_repayments_count_towards_sales(burger, tab):
    stock_up(burger, 5)
    order_id = _sell(burger, 2)
    payment_service.complete_payment(order_id, method="credit", amount_cents=0, customer_id=tab["id"])
    assert reporting_service.today_sales() == 0

    payment_service.pay_credit(order_id, 400)
    assert reporting_service.today_sales() == 400
    assert reporting_service.today_credit() == 1000


def test_low_stock_count(burger, fries, latte):
    stock_up(burger, 3)
    # fries never stocked, latte not tracked
    assert reporting_service.low_stock_count() == 1
    assert reporting_service.low_stock_count(threshold=3) == 2


def test_dashboard_summary_follows_events(burger, tab):
    stock_up(burger, 10)
    summary = reporting_service.DashboardSummary().connect()
    try:
        order_id = _sell(burger, 2)
        assert summary.refresh_count == 0

        payment_service.complete_payment(order_id, method="cash", amount_cents=400, customer_id=tab["id"])
        assert summary.refresh_count == 1
        assert summary.last_event["order_id"] == order_id
        assert summary.snapshot["today_sales_cents"] == 400
        assert summary.snapshot["today_credit_cents"] == 600

        payment_service.pay_credit(order_id, 600)
        assert summary.refresh_count == 2
        assert summary.snapshot["today_sales_cents"] == 1000

        other = _sell(burger, 1)
        order_service.cancel_order(other)
        assert summary.refresh_count == 3
        assert summary.last_event["order_id"] == other
    finally:
        summary.disconnect()

    third = _sell(burger, 1)
    payment_service.complete_payment(third, method="cash", amount_cents=500)
    assert summary.refresh_count == 3
