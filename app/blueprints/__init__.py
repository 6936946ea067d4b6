"""
Project Portfolio Manager
Blueprint registry and shared view helpers.

Every API blueprint calls ``register_error_handlers(bp)`` once so service
exceptions map to the same status codes and JSON shape everywhere:

    ValidationError      → 400 {success: false, error, code, details}
    AuthenticationError  → 401
    AuthorizationError   → 403
    NotFoundError        → 404
    ConflictError        → 409
    PersistenceError     → 500 (generic message; cause logged)
    anything else        → 500 (generic message; traceback logged)
"""

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.models import db
from app.utils.errors import E, api_error, conflict_code, validation_code

logger = logging.getLogger(__name__)


def json_body():
    """The request's JSON object, or ValidationError when it is not one."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise ValidationError("Malformed JSON body", details={"body": "invalid JSON"})
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_int(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", details={name: "invalid"})


def ok(data=None, status=200, **extra):
    """Standard success envelope: ``{success: true, data, ...extra}``."""
    body = {"success": True}
    if data is not None or not extra:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def listing(items, **extra):
    """``{success, data: [...], count}`` for list endpoints."""
    return ok([i.to_dict() for i in items], count=len(items), **extra)


def register_error_handlers(bp):
    """Attach the shared exception → HTTP mapping to a blueprint."""

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(validation_code(error.details), str(error), details=error.details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(conflict_code(error.field), str(error))

    @bp.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        db.session.rollback()
        return api_error(E.UNAUTHORIZED, error.message)

    @bp.errorhandler(AuthorizationError)
    def _handle_forbidden(error: AuthorizationError):
        db.session.rollback()
        return api_error(E.FORBIDDEN, error.message)

    @bp.errorhandler(PersistenceError)
    def _handle_persistence(error: PersistenceError):
        db.session.rollback()
        logger.exception("Persistence failure in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.DATABASE, "Database error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    return bp
