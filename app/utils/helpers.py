"""Shared request/persistence helpers used by every blueprint and service.

parse_date:          lenient, returns None on bad input (filters, query args)
parse_date_input:    strict, raises ValidationError on bad input (request bodies)
parse_bool:          query-string booleans
get_or_404:          raises NotFoundError instead of returning None
db_commit_or_error:  commit + rollback/log, returns an error tuple on failure
"""
import logging
from datetime import date, datetime

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def parse_date(value):
    """Parse a date string (ISO date or ISO datetime) to a date object.

    Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date"):
    """Parse a date from a request body, raising ValidationError on bad input.

    Empty values (None, "") mean "no date" and return None.
    """
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid date for {field}. Use YYYY-MM-DD.",
            details={field: "invalid date"},
        )
    return parsed


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(label or model.__name__, pk)
    return obj


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure, ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")
