"""
Health probes.

Endpoints (no actor required):
    GET /api/v1/health/ready  — 200 while the process is up
    GET /api/v1/health/live   — database round-trip, schema, rate-limit backend
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from branchvisit.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")

REQUIRED_TABLES = ("users", "branches", "branch_assignments", "branch_visits", "audit_logs")


def _check_database() -> dict:
    t0 = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}


def _check_schema() -> dict:
    present = set(inspect(db.engine).get_table_names())
    missing = [t for t in REQUIRED_TABLES if t not in present]
    if missing:
        return {"status": "error", "missing_tables": missing}
    return {"status": "ok"}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {}
    for name, probe in (("database", _check_database), ("schema", _check_schema)):
        try:
            checks[name] = probe()
        except SQLAlchemyError as exc:
            db.session.rollback()
            checks[name] = {"status": "error", "detail": str(exc)}
        if checks[name]["status"] != "ok":
            logger.error("Health check failed: %s %s", name, checks[name])

    storage = current_app.config.get("RATELIMIT_STORAGE_URI", "memory://")
    checks["rate_limit_storage"] = {"status": "ok", "backend": storage.split("://", 1)[0]}
    checks["app"] = {
        "name": "Branch Visit Reporting",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    healthy = all(c["status"] == "ok" for c in checks.values() if "status" in c)
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
