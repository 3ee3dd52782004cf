# Overview: Service-layer operations for settlement; splits an order between money collected and customer credit.

"""
Settlement rules

- `amount_cents` is what is collected now. When `partial_amount_cents` is
  given it overrides `amount_cents` (the till sends the nominal total as
  the amount and the tendered part separately).
- cash / card / digital:
    now == total       -> paid
    0 < now < total    -> customer required, remainder goes on credit
    now <= 0 or > total -> rejected
- credit:
    0 <= now < total   -> customer required, remainder goes on credit, any
                          immediate part is recorded as a cash payment
    now >= total       -> rejected (nothing to finance)
- The financed remainder must fit under the customer's credit limit.
- Only pending orders with a positive total can be settled.
- One payments row per amount actually collected; one credit transaction
  per amount financed. Order figures are then re-derived from those logs.
- A pending order that already holds payments or credit was settled part
  way before a failure. Settling it again writes only what is missing, so
  paid + credit never exceeds the total.
"""

from __future__ import annotations

import logging

from .. import events
from ..store import get_store
from ..time_utils import utcnow
from ..validation import (
    InvalidAmountError,
    InvalidStateError,
    MissingCustomerError,
    ValidationError,
    require_int,
)
from . import credit_service, order_service
from .order_service import PAYMENTS


logger = logging.getLogger(__name__)

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_DIGITAL = "digital"
METHOD_CREDIT = "credit"

IMMEDIATE_METHODS = (METHOD_CASH, METHOD_CARD, METHOD_DIGITAL)
VALID_METHODS = IMMEDIATE_METHODS + (METHOD_CREDIT,)


def _record_payment(order: dict, amount: int, method: str, *, actor, transaction_ref) -> dict:
    store = get_store()
    payment_id = store.insert(PAYMENTS, {
        "order_id": order["id"],
        "amount_cents": amount,
        "payment_method": method,
        "transaction_ref": transaction_ref,
        "created_by": actor,
        "created_at": utcnow(),
    })
    return store.get(PAYMENTS, payment_id)


def complete_payment(
    order_id,
    *,
    method: str,
    amount_cents,
    customer_id=None,
    partial_amount_cents=None,
    actor: str | None = None,
    transaction_ref: str | None = None,
) -> dict:
    """Settle a pending order and return it completed."""
    order = order_service.get_order(order_id)
    if order["status"] != order_service.STATUS_PENDING:
        raise InvalidStateError(
            f"order is {order['status']}; only pending orders can be settled",
            details={"order_id": str(order["id"]), "status": order["status"]},
        )
    if method not in VALID_METHODS:
        raise ValidationError("invalid payment method", details={"method": method, "allowed": list(VALID_METHODS)})

    # Totals may be stale if an earlier write was interrupted.
    order = order_service.recompute_totals(order["id"])
    total = order["total_amount_cents"]
    if total <= 0:
        raise InvalidAmountError("order has nothing to settle", details={"total_amount_cents": total})

    collected = require_int(partial_amount_cents if partial_amount_cents is not None else amount_cents, "amount_cents")
    if method == METHOD_CREDIT:
        if collected < 0 or collected >= total:
            raise InvalidAmountError(
                "credit settlement needs an immediate amount below the total",
                details={"amount_cents": collected, "total_amount_cents": total},
            )
    elif collected <= 0 or collected > total:
        raise InvalidAmountError(
            "amount must be between 1 and the order total",
            details={"amount_cents": collected, "total_amount_cents": total},
        )
    financed = total - collected

    # A pending order already holding money or credit is a settlement that
    # stopped part way; only the missing part is written.
    already_paid = order["paid_amount_cents"]
    already_financed = order["credit_amount_cents"]
    to_collect = collected - already_paid
    to_finance = financed - already_financed
    if to_collect < 0 or to_finance < 0:
        raise InvalidAmountError(
            "order already holds more than this settlement",
            details={
                "amount_cents": collected,
                "paid_amount_cents": already_paid,
                "credit_amount_cents": already_financed,
            },
        )
    if already_paid or already_financed:
        logger.warning(
            "Resuming settlement of order %s: paid=%s credit=%s",
            order["order_number"], already_paid, already_financed,
        )

    customer = None
    if customer_id is not None:
        customer = credit_service.get_customer(customer_id)
    if financed > 0:
        if customer is None:
            raise MissingCustomerError(
                "a customer is required for credit or partial payment",
                details={"financed_cents": financed},
            )
        if to_finance > 0:
            credit_service.ensure_credit_headroom(customer["id"], to_finance)

    if to_collect > 0:
        paid_with = METHOD_CASH if method == METHOD_CREDIT else method
        _record_payment(order, to_collect, paid_with, actor=actor, transaction_ref=transaction_ref)
    if to_finance > 0:
        credit_service.grant_credit(
            customer["id"],
            to_finance,
            order_id=order["id"],
            notes=f"credit for {order['order_number']}",
            actor=actor,
        )

    now = utcnow()
    get_store().update(order_service.ORDERS, {
        "status": order_service.STATUS_COMPLETED,
        "payment_method": method,
        "customer_id": customer["id"] if customer else None,
        "customer_name": customer["name"] if customer else None,
        "completed_at": now,
        "updated_at": now,
    }, {"id": order["id"]})
    order = order_service.recompute_totals(order["id"])

    logger.info(
        "Settled order %s via %s: collected=%s financed=%s",
        order["order_number"], method, collected, financed,
    )
    events.publish(events.order_settled, {
        "order_id": order["id"],
        "order_number": order["order_number"],
        "payment_method": method,
        "paid_amount_cents": order["paid_amount_cents"],
        "credit_amount_cents": order["credit_amount_cents"],
        "payment_status": order["payment_status"],
    })
    return order


def pay_credit(
    order_id,
    amount_cents,
    *,
    method: str = METHOD_CASH,
    actor: str | None = None,
    transaction_ref: str | None = None,
) -> dict:
    """Collect money against an order's outstanding credit."""
    order = order_service.get_order(order_id)
    if order["status"] != order_service.STATUS_COMPLETED:
        raise InvalidStateError(
            "credit can only be paid on a completed order",
            details={"order_id": str(order["id"]), "status": order["status"]},
        )
    if method not in IMMEDIATE_METHODS:
        raise ValidationError("invalid payment method", details={"method": method, "allowed": list(IMMEDIATE_METHODS)})

    amount = require_int(amount_cents, "amount_cents")
    outstanding = credit_service.order_credit_outstanding(order["id"])
    if amount <= 0 or amount > outstanding:
        raise InvalidAmountError(
            "amount must be positive and no more than the outstanding credit",
            details={"amount_cents": amount, "credit_amount_cents": outstanding},
        )

    credit_service.record_credit_payment(
        order["customer_id"],
        amount,
        order_id=order["id"],
        notes=f"credit payment for {order['order_number']}",
        actor=actor,
    )
    _record_payment(order, amount, method, actor=actor, transaction_ref=transaction_ref)
    get_store().update(order_service.ORDERS, {"updated_at": utcnow()}, {"id": order["id"]})
    order = order_service.recompute_totals(order["id"])

    logger.info("Credit payment of %s on order %s", amount, order["order_number"])
    events.publish(events.credit_paid, {
        "order_id": order["id"],
        "customer_id": order["customer_id"],
        "amount_cents": amount,
        "credit_amount_cents": order["credit_amount_cents"],
        "payment_status": order["payment_status"],
    })
    return order


def get_order_payments(order_id) -> list[dict]:
    order = order_service.get_order(order_id)
    return get_store().query(PAYMENTS, {"order_id": order["id"]}, order_by=("created_at", "id"))
