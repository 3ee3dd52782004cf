# Overview: Flask API routes for order lifecycle and settlement; parses input and returns JSON responses.

# backend/cafe_pos/routes/orders.py
"""Order and payment API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..serialization import to_json
from ..services import order_service, payment_service
from ..time_utils import parse_iso_datetime
from ..validation import PosError, ValidationError, require_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_payload(order_id) -> dict:
    return {
        "order": to_json(order_service.get_order(order_id)),
        "items": to_json(order_service.get_order_items(order_id)),
    }


def _error(e: PosError):
    return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code


@orders_bp.post("")
def create_order_route():
    """
    Open a pending order.

    Body: {"order_type": "dine_in" | "takeaway", "table_ref"?, "notes"?, "actor"?}
    """
    data = request.get_json(silent=True) or {}
    try:
        order_id = order_service.create_order(
            data.get("order_type", order_service.ORDER_TYPE_DINE_IN),
            table_ref=data.get("table_ref"),
            notes=data.get("notes"),
            actor=data.get("actor"),
        )
        return jsonify(_order_payload(order_id)), 201
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    """
    List orders, newest first.

    Query: status?, since? (ISO-8601, naive means UTC), limit? (default 50)
    """
    try:
        since = parse_iso_datetime(request.args.get("since"))
    except ValueError:
        return jsonify({"error": "since must be an ISO-8601 datetime"}), 400

    try:
        limit = require_int(request.args.get("limit", 50), "limit")
        if limit <= 0:
            raise ValidationError("limit must be positive")
        orders = order_service.list_orders(
            status=request.args.get("status") or None,
            since=since,
            limit=limit,
        )
        return jsonify({"orders": to_json(orders)}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_id>")
def get_order_route(order_id: str):
    try:
        payload = _order_payload(order_id)
        payload["payments"] = to_json(payment_service.get_order_payments(order_id))
        return jsonify(payload), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/items")
def add_item_route(order_id: str):
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    quantity = data.get("quantity")
    if not product_id or quantity is None:
        return jsonify({"error": "product_id and quantity required"}), 400

    try:
        item = order_service.add_item(
            order_id,
            product_id,
            quantity,
            actor=data.get("actor"),
            notes=data.get("notes"),
        )
        payload = _order_payload(order_id)
        payload["item"] = to_json(item)
        return jsonify(payload), 201
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to add order item")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/items/<item_id>")
def update_item_route(item_id: str):
    data = request.get_json(silent=True) or {}
    if data.get("quantity") is None:
        return jsonify({"error": "quantity required"}), 400

    try:
        order_id = order_service.get_order_item(item_id)["order_id"]
        item = order_service.update_item_quantity(item_id, data["quantity"], actor=data.get("actor"))
        payload = _order_payload(order_id)
        payload["item"] = to_json(item)
        return jsonify(payload), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update order item")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/items/<item_id>")
def remove_item_route(item_id: str):
    actor = request.args.get("actor")
    try:
        order = order_service.remove_item(item_id, actor=actor)
        return jsonify(_order_payload(order["id"])), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to remove order item")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<order_id>/discount")
def discount_route(order_id: str):
    data = request.get_json(silent=True) or {}
    if "discount_percent" not in data:
        return jsonify({"error": "discount_percent required"}), 400

    try:
        order_service.update_discount(order_id, data["discount_percent"])
        return jsonify(_order_payload(order_id)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update discount")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/pay")
def pay_route(order_id: str):
    """
    Settle an order.

    Body: {"method", "amount_cents", "partial_amount_cents"?, "customer_id"?,
           "transaction_ref"?, "actor"?}
    """
    data = request.get_json(silent=True) or {}
    if not data.get("method") or data.get("amount_cents") is None:
        return jsonify({"error": "method and amount_cents required"}), 400

    try:
        payment_service.complete_payment(
            order_id,
            method=data["method"],
            amount_cents=data["amount_cents"],
            customer_id=data.get("customer_id"),
            partial_amount_cents=data.get("partial_amount_cents"),
            actor=data.get("actor"),
            transaction_ref=data.get("transaction_ref"),
        )
        payload = _order_payload(order_id)
        payload["payments"] = to_json(payment_service.get_order_payments(order_id))
        return jsonify(payload), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to settle order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/credit-payments")
def credit_payment_route(order_id: str):
    data = request.get_json(silent=True) or {}
    if data.get("amount_cents") is None:
        return jsonify({"error": "amount_cents required"}), 400

    try:
        payment_service.pay_credit(
            order_id,
            data["amount_cents"],
            method=data.get("method", payment_service.METHOD_CASH),
            actor=data.get("actor"),
            transaction_ref=data.get("transaction_ref"),
        )
        payload = _order_payload(order_id)
        payload["payments"] = to_json(payment_service.get_order_payments(order_id))
        return jsonify(payload), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to record credit payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/cancel")
def cancel_route(order_id: str):
    data = request.get_json(silent=True) or {}
    try:
        order_service.cancel_order(order_id, reason=data.get("reason"), actor=data.get("actor"))
        return jsonify(_order_payload(order_id)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<order_id>")
def delete_route(order_id: str):
    """Hard delete. Re-authentication is expected to happen before this call."""
    try:
        order_service.delete_order(order_id, actor=request.args.get("actor"))
        return jsonify({"deleted": True, "order_id": order_id}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
