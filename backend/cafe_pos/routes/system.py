# backend/cafe_pos/routes/system.py
"""
System health endpoint.

Reports whether the configured record store answers a trivial query.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..store import get_store
from ..time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    start_time = time.time()
    store = get_store()
    try:
        category_count = len(store.query("categories"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "backend": type(store).__name__,
            "latency_ms": round(elapsed_ms, 2),
            "details": {"categories": category_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Record store health check failed")
        return {
            "status": "unhealthy",
            "backend": type(store).__name__,
            "latency_ms": round(elapsed_ms, 2),
            "error": "Record store error",
        }


@system_bp.get("/api/health")
def health():
    store = check_store_health()
    status_code = 200 if store["status"] == "healthy" else 503
    return jsonify({
        "status": store["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"record_store": store},
    }), status_code
