"""
Session middleware — parses the JWT from the Authorization header and
exposes it as an explicit ``SessionContext`` on ``g.session_context``.

The token is decoded and its expiry checked exactly once per request, here.
Route code reads the context through ``current_session()`` /
``current_user_id()`` and never touches the header itself.

Enforcement:
    AUTH_REQUIRED=False  → anonymous requests pass; a valid token still
                           attributes writes to its user
    AUTH_REQUIRED=True   → mutating /api/v1 requests (POST/PUT/PATCH/DELETE)
                           without a valid session get 401
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt as pyjwt
from flask import current_app, g, request

from app.core.exceptions import AuthenticationError
from app.services.jwt_service import decode_access_token, hash_token
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that never require a session
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/health",
)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class SessionContext:
    user_id: int
    role: str
    expires_at: datetime

    def is_expired(self, now=None):
        return (now or datetime.now(timezone.utc)) >= self.expires_at


def _context_from_payload(payload):
    return SessionContext(
        user_id=int(payload["sub"]),
        role=payload.get("role", "MEMBER"),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def current_session():
    """The request's SessionContext, or None for anonymous requests."""
    return getattr(g, "session_context", None)


def current_user_id():
    ctx = current_session()
    return ctx.user_id if ctx else None


def require_session():
    """Return the SessionContext or raise AuthenticationError."""
    ctx = current_session()
    if ctx is None:
        raise AuthenticationError(getattr(g, "session_error", None) or "Authentication required")
    return ctx


def init_jwt_middleware(app):
    """Register the session middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.session_context = None
        g.session_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                g.session_context = _context_from_payload(decode_access_token(token))
            except pyjwt.ExpiredSignatureError:
                g.session_error = "Session expired"
                logger.info("Expired token rejected token=%s", hash_token(token)[:12])
            except (pyjwt.InvalidTokenError, KeyError, ValueError):
                g.session_error = "Invalid token"
                logger.warning("Invalid token rejected token=%s", hash_token(token)[:12])

        if not current_app.config.get("AUTH_REQUIRED"):
            return None
        if request.method not in MUTATING_METHODS:
            return None
        if any(path.startswith(prefix) for prefix in JWT_SKIP_PREFIXES):
            return None
        if g.session_context is None:
            return api_error(E.UNAUTHORIZED, g.session_error or "Authentication required")
        return None
