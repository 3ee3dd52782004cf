# Overview: Flask API routes for credit customers.

from flask import Blueprint, current_app, jsonify, request

from ..serialization import to_json
from ..services import credit_service
from ..validation import PosError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _customer_payload(customer_id) -> dict:
    customer = credit_service.get_customer(customer_id)
    return {
        "customer": to_json(customer),
        "available_credit_cents": credit_service.available_credit(customer["id"]),
        "transactions": to_json(credit_service.list_credit_transactions(customer["id"])),
    }


@customers_bp.post("")
def create_customer_route():
    data = request.get_json(silent=True) or {}
    try:
        customer = credit_service.create_customer(
            data.get("name"),
            credit_limit_cents=data.get("credit_limit_cents", 0),
            phone=data.get("phone"),
            email=data.get("email"),
            address=data.get("address"),
            notes=data.get("notes"),
        )
        return jsonify(_customer_payload(customer["id"])), 201
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<customer_id>")
def get_customer_route(customer_id: str):
    try:
        return jsonify(_customer_payload(customer_id)), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code


@customers_bp.post("/<customer_id>/reconcile")
def reconcile_route(customer_id: str):
    try:
        balance = credit_service.reconcile_balance(customer_id)
        payload = _customer_payload(customer_id)
        payload["credit_balance_cents"] = balance
        return jsonify(payload), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reconcile customer balance")
        return jsonify({"error": "Internal server error"}), 500
