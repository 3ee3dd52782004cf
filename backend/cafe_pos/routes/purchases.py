# Overview: Flask API routes for purchases (stock-in) and their corrections.

from flask import Blueprint, current_app, jsonify, request

from ..serialization import to_json
from ..services import purchase_service
from ..validation import PosError


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _purchase_payload(purchase_id) -> dict:
    return {
        "purchase": to_json(purchase_service.get_purchase(purchase_id)),
        "items": to_json(purchase_service.get_purchase_items(purchase_id)),
    }


@purchases_bp.post("")
def create_purchase_route():
    """
    Record a purchase.

    Body: {"supplier": name, "lines": [{"product_id", "quantity", "unit_price_cents"}],
           "discount_amount_cents"?, "tax_amount_cents"?, "bill_number"?, "notes"?, "actor"?}
    """
    data = request.get_json(silent=True) or {}
    lines = data.get("lines")
    if not isinstance(lines, list) or not all(isinstance(line, dict) for line in lines):
        return jsonify({"error": "lines must be a list of objects"}), 400

    try:
        purchase_id = purchase_service.create_purchase(
            data.get("supplier"),
            lines,
            discount_amount_cents=data.get("discount_amount_cents", 0),
            tax_amount_cents=data.get("tax_amount_cents", 0),
            bill_number=data.get("bill_number"),
            notes=data.get("notes"),
            actor=data.get("actor"),
        )
        return jsonify(_purchase_payload(purchase_id)), 201
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<purchase_id>")
def get_purchase_route(purchase_id: str):
    try:
        return jsonify(_purchase_payload(purchase_id)), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code


@purchases_bp.post("/<purchase_id>/corrections")
def correct_purchase_route(purchase_id: str):
    """
    Reverse a whole purchase, or one line when "purchase_item_id" is given.
    """
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.get_purchase(purchase_id)
        item_id = data.get("purchase_item_id")
        if item_id:
            items = {str(i["id"]) for i in purchase_service.get_purchase_items(purchase["id"])}
            if str(item_id) not in items:
                return jsonify({"error": "purchase_item_id does not belong to this purchase"}), 400
            corrections = [purchase_service.correct_purchase_line(item_id, reason=data.get("reason"), actor=data.get("actor"))]
        else:
            corrections = purchase_service.correct_purchase(purchase["id"], reason=data.get("reason"), actor=data.get("actor"))
        return jsonify({"corrections": to_json(corrections)}), 201
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to correct purchase")
        return jsonify({"error": "Internal server error"}), 500
