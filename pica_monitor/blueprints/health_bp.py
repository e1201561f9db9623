"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — simple 200 for load balancers
    GET /api/v1/health/live   — store status (database round-trip when SQL-backed)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from pica_monitor.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    """Readiness probe — always 200 if the app is running."""
    return jsonify({"status": "ok", "app": "PICA Monitor"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check including the record store."""
    backend = current_app.config.get("PICA_STORE_BACKEND", "sql")
    checks = {"store": {"backend": backend, "status": "ok"}}
    overall = True

    if backend == "sql":
        try:
            t0 = time.perf_counter()
            db.session.execute(db.text("SELECT 1"))
            checks["store"]["latency_ms"] = round((time.perf_counter() - t0) * 1000, 1)
        except Exception as exc:
            checks["store"] = {"backend": backend, "status": "error", "detail": str(exc)}
            overall = False
            logger.error("Health check — database failed: %s", exc)

    checks["app"] = {
        "name": "PICA Monitor",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }
    body = {"status": "ok" if overall else "degraded", "checks": checks}
    return jsonify(body), 200 if overall else 503
