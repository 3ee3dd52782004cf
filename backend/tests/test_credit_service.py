import pytest

from cafe_pos.services import credit_service, order_service
from cafe_pos.store import get_store
from cafe_pos.validation import (
    AppendOnlyViolation,
    CreditLimitExceededError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def customer(store):
    return credit_service.create_customer("  Dana Tab ", credit_limit_cents=2000, phone="555-0199")


def test_create_customer_defaults(store):
    c = credit_service.create_customer("Walk In")
    assert c["credit_limit_cents"] == 0
    assert c["credit_balance_cents"] == 0
    assert credit_service.available_credit(c["id"]) == 0


def test_create_customer_validation(store):
    with pytest.raises(ValidationError):
        credit_service.create_customer("   ")
    with pytest.raises(ValidationError):
        credit_service.create_customer("Negative", credit_limit_cents=-1)


def test_name_is_trimmed(customer):
    assert customer["name"] == "Dana Tab"
    assert [c["name"] for c in credit_service.list_customers()] == ["Dana Tab"]


def test_unknown_customer(store):
    with pytest.raises(NotFoundError):
        credit_service.get_customer("missing")
    with pytest.raises(NotFoundError):
        credit_service.grant_credit("missing", 100)


def test_balance_is_folded_from_log(customer):
    credit_service.grant_credit(customer["id"], 1200)
    credit_service.grant_credit(customer["id"], 300)
    credit_service.record_credit_payment(customer["id"], 500)

    assert credit_service.compute_balance(customer["id"]) == 1000
    assert credit_service.get_customer(customer["id"])["credit_balance_cents"] == 1000
    assert credit_service.available_credit(customer["id"]) == 1000


def test_transactions_carry_running_balances(customer):
    first = credit_service.grant_credit(customer["id"], 700, notes="tab")
    second = credit_service.record_credit_payment(customer["id"], 200)

    assert (first["balance_before_cents"], first["balance_after_cents"]) == (0, 700)
    assert (second["balance_before_cents"], second["balance_after_cents"]) == (700, 500)
    assert first["transaction_type"] == "credit"
    assert second["transaction_type"] == "payment"


def test_limit_is_strict(customer):
    credit_service.grant_credit(customer["id"], 1500)
    with pytest.raises(CreditLimitExceededError) as exc:
        credit_service.grant_credit(customer["id"], 501)
    assert exc.value.status_code == 409
    assert exc.value.details["available_cents"] == 500

    credit_service.grant_credit(customer["id"], 500)
    assert credit_service.available_credit(customer["id"]) == 0


def test_zero_limit_refuses_any_credit(store):
    c = credit_service.create_customer("No Tab")
    with pytest.raises(CreditLimitExceededError):
        credit_service.grant_credit(c["id"], 1)
    assert credit_service.list_credit_transactions(c["id"]) == []


@pytest.mark.parametrize("amount", [0, -100])
def test_amounts_must_be_positive(customer, amount):
    with pytest.raises(InvalidAmountError):
        credit_service.grant_credit(customer["id"], amount)
    with pytest.raises(InvalidAmountError):
        credit_service.record_credit_payment(customer["id"], amount)


def test_payment_cannot_exceed_balance(customer):
    credit_service.grant_credit(customer["id"], 400)
    with pytest.raises(InvalidAmountError):
        credit_service.record_credit_payment(customer["id"], 401)
    assert credit_service.compute_balance(customer["id"]) == 400


def test_reconcile_heals_tampered_balance(customer):
    credit_service.grant_credit(customer["id"], 900)
    get_store().update("customers", {"credit_balance_cents": 12345}, {"id": customer["id"]})

    assert credit_service.reconcile_balance(customer["id"]) == 900
    assert credit_service.get_customer(customer["id"])["credit_balance_cents"] == 900


def test_reconcile_all(store):
    a = credit_service.create_customer("A", credit_limit_cents=1000)
    b = credit_service.create_customer("B", credit_limit_cents=1000)
    credit_service.grant_credit(a["id"], 250)
    get_store().update("customers", {"credit_balance_cents": 7}, {"id": b["id"]})

    assert credit_service.reconcile_all() == {a["id"]: 250, b["id"]: 0}


def test_update_credit_limit(customer):
    credit_service.grant_credit(customer["id"], 1500)
    updated = credit_service.update_credit_limit(customer["id"], 1000)
    assert updated["credit_limit_cents"] == 1000
    # Lowering below the balance is allowed; it only blocks new credit.
    assert credit_service.available_credit(customer["id"]) == -500
    with pytest.raises(CreditLimitExceededError):
        credit_service.grant_credit(customer["id"], 1)


def test_transactions_filter_by_order(customer):
    order_a = order_service.create_order()
    order_b = order_service.create_order()
    order_c = order_service.create_order()
    credit_service.grant_credit(customer["id"], 100, order_id=order_a)
    credit_service.grant_credit(customer["id"], 200, order_id=order_b)
    credit_service.record_credit_payment(customer["id"], 50, order_id=order_a)

    rows = credit_service.list_credit_transactions(customer["id"], order_id=order_a)
    assert sorted(r["amount_cents"] for r in rows) == [50, 100]
    assert credit_service.order_credit_outstanding(order_a) == 50
    assert credit_service.order_credit_outstanding(order_b) == 200
    assert credit_service.order_credit_outstanding(order_c) == 0


def test_credit_log_is_append_only(customer):
    credit_service.grant_credit(customer["id"], 100)
    store = get_store()
    with pytest.raises(AppendOnlyViolation):
        store.update("credit_transactions", {"amount_cents": 1}, {"customer_id": customer["id"]})
    with pytest.raises(AppendOnlyViolation):
        store.delete("credit_transactions", {"customer_id": customer["id"]})
