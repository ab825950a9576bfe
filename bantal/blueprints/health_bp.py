"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — simple 200 for load balancers
    GET /api/v1/health/live   — database + blob store connectivity
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from bantal.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness check — always 200 if app is running."""
    return jsonify({"status": "ok", "app": "BANTAL Back-Office"}), 200


def _ping(bind_key=None) -> dict:
    t0 = time.perf_counter()
    engine = db.engines[bind_key]
    with engine.connect() as conn:
        conn.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    for name, bind_key in (("database", None), ("blob_store", "blobs")):
        try:
            checks[name] = _ping(bind_key)
        except Exception as exc:
            checks[name] = {"status": "error", "detail": str(exc)}
            overall = False
            logger.error("Health check — %s failed: %s", name, exc)

    checks["app"] = {
        "name": "BANTAL Back-Office",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }
    return jsonify({"status": "ok" if overall else "degraded", "checks": checks}), 200 if overall else 503
