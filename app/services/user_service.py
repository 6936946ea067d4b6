"""
User Service — registration, authentication, listing.

Transaction policy: functions flush, never commit. The auth blueprint
commits through ``db_commit_or_error``.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.models.auth import USER_ROLES, User
from app.utils.crypto import BCRYPT_ROUNDS, hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _admin_whitelist():
    return {e.lower() for e in current_app.config.get("ADMIN_EMAIL_WHITELIST", [])}


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════
def register_user(data: dict) -> User:
    """Create a user account.

    Rules:
        - username, email and password are required (ValidationError)
        - email must be syntactically valid (ValidationError)
        - role ADMIN only for emails on ADMIN_EMAIL_WHITELIST (AuthorizationError)
        - username / email must be unique (ConflictError)
        - name defaults to the username
    """
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    missing = [f for f, v in (("username", username), ("email", email), ("password", password)) if not v]
    if missing:
        raise ValidationError(
            "Username, email, and password are required",
            details={f: "required" for f in missing},
        )

    try:
        email = validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )

    role = (data.get("role") or "MEMBER").upper()
    if role not in USER_ROLES:
        raise ValidationError(
            f"Invalid role: {role}", details={"role": f"must be one of: {', '.join(USER_ROLES)}"},
        )
    if role == "ADMIN" and email not in _admin_whitelist():
        logger.warning("Rejected ADMIN self-registration for non-whitelisted email")
        raise AuthorizationError("Admin role is restricted to authorised emails")

    if User.query.filter_by(username=username).first():
        raise ConflictError("User", "username", username)
    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email)

    rounds = current_app.config.get("BCRYPT_ROUNDS", BCRYPT_ROUNDS)
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        name=(data.get("name") or "").strip() or username,
        avatar=data.get("avatar"),
        role=role,
        active_status=True,
        last_password_update=datetime.now(timezone.utc),
    )
    db.session.add(user)
    db.session.flush()
    logger.info("Registered user id=%s role=%s", user.id, role)
    return user


# ═══════════════════════════════════════════════════════════════
# Login helpers
# ═══════════════════════════════════════════════════════════════
def authenticate_user(identifier: str, password: str) -> User:
    """Authenticate with username-or-email + password. Returns User on success."""
    identifier = (identifier or "").strip()
    if not identifier or not password:
        raise ValidationError(
            "Username and password are required",
            details={"username": "required", "password": "required"},
        )

    user = User.query.filter(
        (User.username == identifier) | (User.email == identifier.lower())
    ).first()
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid username or password")
    if not user.active_status:
        raise AuthorizationError("Account is inactive")
    return user


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def list_active_users() -> list[User]:
    """Active users ordered by display name."""
    return User.query.filter_by(active_status=True).order_by(User.name, User.id).all()


def require_user(user_id, field: str) -> int | None:
    """Validate an optional user reference from a request body."""
    if user_id in (None, ""):
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    if db.session.get(User, user_id) is None:
        raise ValidationError(f"{field} references an unknown user", details={field: "unknown user"})
    return user_id
