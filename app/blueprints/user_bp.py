"""
User directory blueprint.

    GET /api/v1/users    — active users (assignee / manager pickers)
"""

from flask import Blueprint, jsonify

from app.blueprints import register_error_handlers
from app.services.user_service import list_active_users

user_bp = Blueprint("users", __name__, url_prefix="/api/v1")
register_error_handlers(user_bp)


@user_bp.route("/users", methods=["GET"])
def list_users():
    users = list_active_users()
    return jsonify({
        "success": True,
        "data": [u.to_summary() for u in users],
        "count": len(users),
    }), 200
