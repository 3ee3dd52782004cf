# Overview: Flask API routes for dashboard aggregates.

from flask import Blueprint, current_app, jsonify

from ..services import reporting_service
from ..validation import PosError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard_snapshot()), 200
    except PosError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500
