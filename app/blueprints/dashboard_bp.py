"""
Dashboard Blueprint — portfolio overview.

    GET /api/v1/dashboard?statsFilter=ALL|DONE|ONGOING&windowDays=30&strategicMode=ACTIVE|COMPLETED
"""

from flask import Blueprint, current_app, request

from app.blueprints import ok, query_int, register_error_handlers
from app.services import dashboard_service as svc

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")
register_error_handlers(dashboard_bp)


@dashboard_bp.route("", methods=["GET"])
def full_dashboard():
    """Metrics, status breakdown, matrix, deadlines and strategic projects."""
    window_days = query_int("windowDays")
    if window_days is None:
        window_days = current_app.config.get("UPCOMING_DEADLINE_WINDOW_DAYS", 30)
    return ok(svc.build_dashboard(
        stats_filter=request.args.get("statsFilter", "ALL"),
        window_days=window_days,
        strategic_mode=request.args.get("strategicMode", "ACTIVE"),
    ))
