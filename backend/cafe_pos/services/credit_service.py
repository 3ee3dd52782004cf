# Overview: Customer credit ledger; balances are reconciled from the append-only credit log.

"""
Customer credit

- credit_transactions is the source of truth; every row is append-only.
- credit_balance_cents on the customer is a materialized view:
    SUM(amount where type='credit') - SUM(amount where type='payment')
  It is rewritten from the log after every credit write and never adjusted
  by read-modify-write.
- Limit is strict: a grant is refused when balance + requested > limit.
  A limit of 0 means the customer cannot take credit at all.
"""

from __future__ import annotations

import logging

from ..store import get_store
from ..time_utils import utcnow
from ..validation import (
    CreditLimitExceededError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
    require_cents,
    require_int,
)


logger = logging.getLogger(__name__)

CUSTOMERS = "customers"
CREDIT_TRANSACTIONS = "credit_transactions"

TX_CREDIT = "credit"
TX_PAYMENT = "payment"


# =============================================================================
# CUSTOMERS
# =============================================================================

def create_customer(
    name: str,
    *,
    credit_limit_cents: int = 0,
    phone: str | None = None,
    email: str | None = None,
    address: str | None = None,
    notes: str | None = None,
) -> dict:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    now = utcnow()
    store = get_store()
    customer_id = store.insert(CUSTOMERS, {
        "name": name.strip(),
        "phone": phone,
        "email": email,
        "address": address,
        "credit_limit_cents": require_cents(credit_limit_cents, "credit_limit_cents"),
        "credit_balance_cents": 0,
        "notes": notes,
        "created_at": now,
        "updated_at": now,
    })
    return store.get(CUSTOMERS, customer_id)


def get_customer(customer_id) -> dict:
    customer = get_store().get(CUSTOMERS, customer_id)
    if customer is None:
        raise NotFoundError("customer not found", details={"customer_id": str(customer_id)})
    return customer


def list_customers() -> list[dict]:
    return get_store().query(CUSTOMERS, order_by=("name",))


def update_credit_limit(customer_id, credit_limit_cents) -> dict:
    customer = get_customer(customer_id)
    limit = require_cents(credit_limit_cents, "credit_limit_cents")
    get_store().update(
        CUSTOMERS,
        {"credit_limit_cents": limit, "updated_at": utcnow()},
        {"id": customer["id"]},
    )
    return get_customer(customer["id"])


# =============================================================================
# BALANCE
# =============================================================================

def compute_balance(customer_id) -> int:
    """Balance folded from the credit log."""
    balance = 0
    for tx in get_store().query(CREDIT_TRANSACTIONS, {"customer_id": customer_id}):
        if tx["transaction_type"] == TX_CREDIT:
            balance += tx["amount_cents"]
        elif tx["transaction_type"] == TX_PAYMENT:
            balance -= tx["amount_cents"]
    return balance


def reconcile_balance(customer_id) -> int:
    """Rewrite the customer's stored balance from the log and return it."""
    customer = get_customer(customer_id)
    balance = compute_balance(customer["id"])
    if balance != customer["credit_balance_cents"]:
        logger.info(
            "Reconciled credit balance for customer %s: %s -> %s",
            customer["id"], customer["credit_balance_cents"], balance,
        )
    get_store().update(
        CUSTOMERS,
        {"credit_balance_cents": balance, "updated_at": utcnow()},
        {"id": customer["id"]},
    )
    return balance


def reconcile_all() -> dict:
    return {c["id"]: reconcile_balance(c["id"]) for c in list_customers()}


def available_credit(customer_id) -> int:
    customer = get_customer(customer_id)
    return customer["credit_limit_cents"] - compute_balance(customer["id"])


def ensure_credit_headroom(customer_id, amount_cents) -> dict:
    """Raise CreditLimitExceededError unless `amount_cents` fits under the limit."""
    customer = get_customer(customer_id)
    amount = require_int(amount_cents, "amount_cents")
    balance = compute_balance(customer["id"])
    limit = customer["credit_limit_cents"]
    if balance + amount > limit:
        logger.warning(
            "Credit limit exceeded for customer %s: balance=%s requested=%s limit=%s",
            customer["id"], balance, amount, limit,
        )
        raise CreditLimitExceededError(
            "credit limit exceeded",
            details={
                "customer_id": str(customer["id"]),
                "credit_limit_cents": limit,
                "credit_balance_cents": balance,
                "requested_cents": amount,
                "available_cents": max(limit - balance, 0),
            },
        )
    return customer


# =============================================================================
# CREDIT LOG WRITES
# =============================================================================

def _append(customer: dict, transaction_type: str, amount: int, balance_before: int, *, order_id, notes, actor) -> dict:
    store = get_store()
    balance_after = balance_before + amount if transaction_type == TX_CREDIT else balance_before - amount
    tx_id = store.insert(CREDIT_TRANSACTIONS, {
        "customer_id": customer["id"],
        "order_id": order_id,
        "transaction_type": transaction_type,
        "amount_cents": amount,
        "balance_before_cents": balance_before,
        "balance_after_cents": balance_after,
        "notes": notes,
        "created_by": actor,
        "created_at": utcnow(),
    })
    reconcile_balance(customer["id"])
    return store.get(CREDIT_TRANSACTIONS, tx_id)


def grant_credit(
    customer_id,
    amount_cents,
    *,
    order_id=None,
    notes: str | None = None,
    actor: str | None = None,
) -> dict:
    """Put `amount_cents` on the customer's tab."""
    amount = require_int(amount_cents, "amount_cents")
    if amount <= 0:
        raise InvalidAmountError("credit amount must be positive", details={"amount_cents": amount})
    customer = ensure_credit_headroom(customer_id, amount)
    balance = compute_balance(customer["id"])
    return _append(customer, TX_CREDIT, amount, balance, order_id=order_id, notes=notes, actor=actor)


def record_credit_payment(
    customer_id,
    amount_cents,
    *,
    order_id=None,
    notes: str | None = None,
    actor: str | None = None,
) -> dict:
    """Take `amount_cents` off the customer's tab; never more than is owed."""
    customer = get_customer(customer_id)
    amount = require_int(amount_cents, "amount_cents")
    if amount <= 0:
        raise InvalidAmountError("payment amount must be positive", details={"amount_cents": amount})
    balance = compute_balance(customer["id"])
    if amount > balance:
        raise InvalidAmountError(
            "payment exceeds outstanding credit",
            details={"amount_cents": amount, "credit_balance_cents": balance},
        )
    return _append(customer, TX_PAYMENT, amount, balance, order_id=order_id, notes=notes, actor=actor)


def list_credit_transactions(customer_id, *, order_id=None) -> list[dict]:
    customer = get_customer(customer_id)
    where = {"customer_id": customer["id"]}
    if order_id is not None:
        where["order_id"] = order_id
    return get_store().query(CREDIT_TRANSACTIONS, where, order_by=("created_at", "id"))


def order_credit_outstanding(order_id) -> int:
    """Credit granted for the order minus credit repaid or written off against it."""
    outstanding = 0
    for tx in get_store().query(CREDIT_TRANSACTIONS, {"order_id": order_id}):
        if tx["transaction_type"] == TX_CREDIT:
            outstanding += tx["amount_cents"]
        else:
            outstanding -= tx["amount_cents"]
    return outstanding
