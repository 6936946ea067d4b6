"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — app name + status
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database round-trip + portfolio row counts
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.models.project import Project
from app.models.task import Task

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")

APP_NAME = "Project Portfolio Manager"


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": APP_NAME}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe; 200 whenever the process is serving."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check. 503 when the database cannot be reached."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
        checks["portfolio"] = {
            "projects": db.session.scalar(db.select(db.func.count(Project.id))),
            "tasks": db.session.scalar(db.select(db.func.count(Task.id))),
        }
    except SQLAlchemyError:
        db.session.rollback()
        checks["database"] = {"status": "error"}
        overall = False
        logger.exception("Health check: database unreachable")

    checks["app"] = {
        "name": APP_NAME,
        "debug": current_app.debug,
        "testing": current_app.testing,
        "authRequired": bool(current_app.config.get("AUTH_REQUIRED")),
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
