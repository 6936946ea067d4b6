"""Activity log service — append and list only.

Transaction policy: log_activity() adds to the session without committing;
it rides the caller's transaction so the history entry and the change it
describes commit (or roll back) together.
"""
import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.activity import ActivityLog

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 500


def _text(value):
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def log_activity(project_id, action, *, user_id=None, task_id=None,
                 field=None, old_value=None, new_value=None):
    """Append one history entry. Returns the (unflushed) ActivityLog."""
    if not action:
        raise ValidationError("action is required", details={"action": "required"})
    entry = ActivityLog(
        project_id=project_id,
        task_id=task_id,
        user_id=user_id,
        action=action,
        field=field,
        old_value=_text(old_value),
        new_value=_text(new_value),
    )
    db.session.add(entry)
    return entry


def log_field_changes(project_id, changes, *, user_id=None, task_id=None, subject="task"):
    """Log one entry per changed field.

    Args:
        changes: iterable of (wire_field, old, new) tuples.
    """
    entries = []
    for field, old, new in changes:
        entries.append(log_activity(
            project_id,
            f"Updated {subject} {field}",
            user_id=user_id,
            task_id=task_id,
            field=field,
            old_value=old,
            new_value=new,
        ))
    return entries


def list_activity(project_id, task_id=None, limit=100):
    """Newest first."""
    limit = max(1, min(int(limit), MAX_LIST_LIMIT))
    q = ActivityLog.query.filter_by(project_id=project_id)
    if task_id is not None:
        q = q.filter_by(task_id=task_id)
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
