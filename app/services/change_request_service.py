"""Change request service — CRUD, decisions, summary.

Transaction policy: flush only; the blueprint commits.

Lifecycle: PENDING → APPROVED | REJECTED (terminal). Listing order is
PENDING, APPROVED, REJECTED, newest date first within each status.
"""
import logging
from datetime import date

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.change_request import (
    CR_STATUS_ORDER,
    CR_STATUSES,
    ChangeRequest,
    validate_cr_transition,
)
from app.models.task import Task
from app.services import activity_service
from app.services.helpers.field_updates import Field, apply_fields, date_field, text

logger = logging.getLogger(__name__)

CHANGE_REQUEST_FIELDS = {
    "title": Field("title", text(max_len=300, required=True)),
    "description": Field("description", text(required=True)),
    "impact": Field("impact", text()),
    "date": Field("date", date_field()),
}

# Status moves only through decide_change_request
CHANGE_REQUEST_UPDATE_FIELDS = CHANGE_REQUEST_FIELDS

_EXTRA = ("linkedTaskIds",)


def get_change_request(cr_id):
    cr = db.session.get(ChangeRequest, cr_id)
    if cr is None:
        raise NotFoundError("ChangeRequest", cr_id)
    return cr


def sort_change_requests(items):
    """PENDING first, then APPROVED, then REJECTED; newest date first within a status."""
    by_date = sorted(items, key=lambda c: (c.date, c.id), reverse=True)
    return sorted(by_date, key=lambda c: CR_STATUS_ORDER.get(c.status, len(CR_STATUS_ORDER)))


def summarize(items):
    counts = {s.lower(): 0 for s in CR_STATUSES}
    for c in items:
        counts[c.status.lower()] = counts.get(c.status.lower(), 0) + 1
    counts["total"] = len(items)
    return counts


def list_change_requests(project_id):
    return sort_change_requests(ChangeRequest.query.filter_by(project_id=project_id).all())


def _link_tasks(cr, task_ids):
    if not isinstance(task_ids, (list, tuple)):
        raise ValidationError("linkedTaskIds must be a list", details={"linkedTaskIds": "invalid"})
    try:
        wanted = {int(t) for t in task_ids}
    except (TypeError, ValueError):
        raise ValidationError("linkedTaskIds must be integers", details={"linkedTaskIds": "invalid"})
    tasks = Task.query.filter(Task.id.in_(wanted)).all() if wanted else []
    if {t.id for t in tasks} != wanted or any(t.project_id != cr.project_id for t in tasks):
        raise ValidationError(
            "linkedTaskIds must reference tasks of the same project",
            details={"linkedTaskIds": "unknown or cross-project task"},
        )
    cr.linked_tasks = tasks


def create_change_request(project_id, data, user_id=None):
    """Create a PENDING change request.

    Returns:
        ChangeRequest instance (already flushed).
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    missing = [f for f in ("title", "description") if not (data.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            "Title and description are required", details={f: "required" for f in missing},
        )

    cr = ChangeRequest(project_id=project_id, status="PENDING", requested_by_id=user_id)
    apply_fields(cr, data, CHANGE_REQUEST_FIELDS, extra_allowed=_EXTRA)
    cr.date = cr.date or date.today()
    if "linkedTaskIds" in data:
        _link_tasks(cr, data["linkedTaskIds"] or [])
    db.session.add(cr)
    db.session.flush()
    activity_service.log_activity(project_id, f"Requested change {cr.title}", user_id=user_id)
    return cr


def update_change_request(cr, data, user_id=None):
    if cr.status != "PENDING":
        raise ConflictError(
            "ChangeRequest", "status", cr.status,
            message=f"Change request is {cr.status} and can no longer be edited",
        )
    changes = apply_fields(cr, data, CHANGE_REQUEST_UPDATE_FIELDS, extra_allowed=_EXTRA)
    cr.date = cr.date or date.today()
    if "linkedTaskIds" in data:
        _link_tasks(cr, data["linkedTaskIds"] or [])
    activity_service.log_field_changes(
        cr.project_id, changes, user_id=user_id, subject="change request",
    )
    db.session.flush()
    return cr


def decide_change_request(cr, decision, user_id=None):
    """Approve or reject a pending change request."""
    new_status = str(decision or "").upper()
    if new_status not in ("APPROVED", "REJECTED"):
        raise ValidationError(
            "decision must be APPROVED or REJECTED", details={"decision": "invalid"},
        )
    if not validate_cr_transition(cr.status, new_status):
        raise ConflictError(
            "ChangeRequest", "status", cr.status,
            message=f"Invalid transition: {cr.status} → {new_status}",
        )
    old = cr.status
    cr.status = new_status
    activity_service.log_activity(
        cr.project_id, f"{new_status.title()} change request {cr.title}", user_id=user_id,
        field="status", old_value=old, new_value=new_status,
    )
    db.session.flush()
    logger.info("Change request %s %s -> %s", cr.id, old, new_status)
    return cr


def delete_change_request(cr, user_id=None):
    project_id, title = cr.project_id, cr.title
    cr.linked_tasks = []
    db.session.delete(cr)
    activity_service.log_activity(project_id, f"Deleted change request {title}", user_id=user_id)
    db.session.flush()
