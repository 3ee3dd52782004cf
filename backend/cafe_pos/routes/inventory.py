# Overview: Flask API routes for stock, ledger history, adjustments and corrections.

# backend/cafe_pos/routes/inventory.py
"""
Inventory routes.

Stock is always computed from the ledger; there is no endpoint that sets a
quantity directly. Corrections append a reversing entry.
"""

from flask import Blueprint, current_app, jsonify, request

from ..serialization import to_json
from ..services import catalog_service, inventory_service, ledger_service
from ..validation import PosError, ValidationError, require_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/stock/<product_id>")
def stock_route(product_id: str):
    try:
        product = catalog_service.get_product(product_id)
        stock = ledger_service.current_stock(product["id"])
        tracked = inventory_service.is_stock_tracked(product)
        return jsonify({"product_id": product_id, "current_stock": stock, "tracked": tracked}), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/stock/batch")
def stock_batch_route():
    data = request.get_json(silent=True) or {}
    product_ids = data.get("product_ids")
    if not isinstance(product_ids, list):
        return jsonify({"error": "product_ids must be a list"}), 400

    try:
        levels = ledger_service.current_stock_batch(product_ids)
        return jsonify({"stock": to_json(levels)}), 200
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load stock batch")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/history/<product_id>")
def history_route(product_id: str):
    try:
        limit = require_int(request.args.get("limit", ledger_service.DEFAULT_PAGE_SIZE), "limit")
        if limit <= 0:
            raise ValidationError("limit must be positive")
        entries = ledger_service.history(product_id, limit=limit)
        return jsonify({"entries": to_json(entries)}), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load ledger history")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjustments")
def adjustment_route():
    """
    Manual stock adjustment.

    Body: {"product_id", "quantity_delta", "notes"?, "actor"?}
    """
    data = request.get_json(silent=True) or {}
    if not data.get("product_id"):
        return jsonify({"error": "product_id required"}), 400

    try:
        entry = inventory_service.adjust_stock(
            data["product_id"],
            data.get("quantity_delta"),
            notes=data.get("notes"),
            actor=data.get("actor"),
        )
        return jsonify({
            "entry": to_json(entry),
            "current_stock": ledger_service.current_stock(entry["product_id"]),
        }), 201
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/entries/<entry_id>/reverse")
def reverse_entry_route(entry_id: str):
    data = request.get_json(silent=True) or {}
    try:
        correction = ledger_service.reverse_entry(entry_id, reason=data.get("reason"), actor=data.get("actor"))
        return jsonify({"correction": to_json(correction)}), 201
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reverse ledger entry")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
def low_stock_route():
    try:
        threshold = request.args.get("threshold")
        products = inventory_service.low_stock_products(threshold)
        return jsonify({"products": to_json(products), "count": len(products)}), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load low stock products")
        return jsonify({"error": "Internal server error"}), 500
