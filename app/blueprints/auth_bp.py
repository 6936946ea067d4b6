"""
Auth Blueprint — registration, login, current user.

Endpoints:
  POST /api/v1/auth/register    — Create an account (ADMIN only for whitelisted emails)
  POST /api/v1/auth/login       — Username or email + password → access token
  GET  /api/v1/auth/me          — Current session's user
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import json_body, register_error_handlers
from app.middleware.jwt_auth import require_session
from app.services.jwt_service import generate_access_token
from app.services.user_service import authenticate_user, get_user, register_user
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create a user account.

    Body: { "username", "email", "password", "name"?, "avatar"?, "role"? }
    """
    user = register_user(json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({
        "success": True,
        "message": "User registered successfully",
        "user": user.to_summary(),
    }), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate and return a bearer token.

    Body: { "username": "<username or email>", "password": "..." }
    """
    data = json_body()
    user = authenticate_user(data.get("username") or data.get("email"), data.get("password"))
    token = generate_access_token(user.id, user.role)
    logger.info("Login user_id=%s", user.id)
    return jsonify({
        "success": True,
        "token": token["access_token"],
        "tokenType": token["token_type"],
        "expiresIn": token["expires_in"],
        "user": user.to_summary(),
    }), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
def me():
    session = require_session()
    user = get_user(session.user_id)
    return jsonify({
        "success": True,
        "user": user.to_dict(),
        "expiresAt": session.expires_at.isoformat(),
    }), 200
