"""
TimestampedModel — abstract base for the portfolio tables.

Adds an integer primary key plus created_at / updated_at columns, and the
``iso`` helper used by every ``to_dict``.
"""

from datetime import datetime, timezone

from app.models import db


def utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    """ISO-8601 string for a date/datetime, None when unset."""
    return value.isoformat() if value else None


class TimestampedModel(db.Model):
    """Abstract base for tables with surrogate id and audit timestamps."""
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False,
    )
