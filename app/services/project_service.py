"""Project service layer — CRUD, health, cascade delete, metrics.

Transaction policy: functions flush, never commit. The route handler
commits (``db_commit_or_error``) so each request is one transaction.
"""
import logging
from datetime import datetime, time, timezone

from sqlalchemy import or_

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.activity import ActivityLog
from app.models.change_request import ChangeRequest, change_request_tasks
from app.models.project import (
    METRIC_CATEGORIES,
    PRIORITIES,
    PROJECT_STATUSES,
    SCORE_MAX,
    SCORE_MIN,
    Project,
    ProjectMetric,
)
from app.models.risk import Risk
from app.models.task import Task, task_dependencies
from app.services import activity_service
from app.services.helpers.field_updates import (
    Field,
    apply_fields,
    date_field,
    enum,
    foreign_key,
    int_range,
    non_negative_number,
    number,
    text,
    url,
)
from app.services.project_health import compute_project_health
from app.services.user_service import require_user
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

PROJECT_INCLUDES = ("tasks", "risks", "changeRequests", "activityLogs", "metrics")

PROJECT_FIELDS = {
    "name": Field("name", text(max_len=200, required=True)),
    "description": Field("description", text()),
    "status": Field("status", enum(PROJECT_STATUSES)),
    "priority": Field("priority", enum(PRIORITIES)),
    "businessImpact": Field("business_impact", int_range(SCORE_MIN, SCORE_MAX)),
    "techEffort": Field("tech_effort", int_range(SCORE_MIN, SCORE_MAX)),
    "revenueUplift": Field("revenue_uplift", non_negative_number()),
    "headcountSaving": Field("headcount_saving", non_negative_number()),
    "projectValue": Field("project_value", non_negative_number()),
    "team": Field("team", text(max_len=100)),
    "country": Field("country", text(max_len=100)),
    "pic": Field("pic", text(max_len=100)),
    "jiraUrl": Field("jira_url", url()),
    "wikiUrl": Field("wiki_url", url()),
    "startDate": Field("start_date", date_field()),
    "endDate": Field("end_date", date_field()),
    "managerId": Field("manager_id", foreign_key(require_user)),
}

# Partial updates may touch every creatable field
PROJECT_UPDATE_FIELDS = PROJECT_FIELDS

METRIC_FIELDS = {
    "name": Field("name", text(max_len=200, required=True)),
    "value": Field("value", number()),
    "unit": Field("unit", text(max_len=50)),
    "category": Field("category", enum(METRIC_CATEGORIES)),
}


# ── Queries ──────────────────────────────────────────────────────────────


def get_project(project_id):
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def parse_includes(raw):
    """Parse ``?include=tasks,risks`` into a validated tuple."""
    if not raw:
        return ()
    requested = [part.strip() for part in raw.split(",") if part.strip()]
    unknown = [r for r in requested if r not in PROJECT_INCLUDES]
    if unknown:
        raise ValidationError(
            f"Invalid include: {', '.join(unknown)}",
            details={"include": f"must be any of: {', '.join(PROJECT_INCLUDES)}"},
        )
    return tuple(requested)


def list_projects(status=None, priority=None, manager_id=None, search=None):
    """List projects newest first, narrowed by the optional filters.

    ``search`` is a case-insensitive substring match over name and description.
    """
    q = Project.query
    if status:
        q = q.filter(Project.status == enum(PROJECT_STATUSES)("status", status))
    if priority:
        q = q.filter(Project.priority == enum(PRIORITIES)("priority", priority))
    if manager_id is not None:
        q = q.filter(Project.manager_id == manager_id)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))
    return q.order_by(Project.created_at.desc(), Project.id.desc()).all()


# ── Mutations ────────────────────────────────────────────────────────────


def create_project(data, user_id=None):
    """Create a project. Defaults: PLANNING, MEDIUM, impact 5, effort 5.

    Returns:
        Project instance (already flushed).
    """
    if not isinstance(data, dict) or not (data.get("name") or "").strip():
        raise ValidationError("Project name is required", details={"name": "required"})

    project = Project(status="PLANNING", priority="MEDIUM", business_impact=5, tech_effort=5)
    apply_fields(project, data, PROJECT_FIELDS)
    _check_dates(project)
    if project.manager_id is None and user_id is not None:
        project.manager_id = user_id
    db.session.add(project)
    db.session.flush()

    activity_service.log_activity(project.id, "Created project", user_id=user_id)
    logger.info("Project created id=%s name=%s", project.id, project.name)
    return project


def update_project(project, data, user_id=None):
    """Apply an enumerated partial update; unknown keys are rejected."""
    changes = apply_fields(project, data, PROJECT_UPDATE_FIELDS)
    _check_dates(project)
    activity_service.log_field_changes(project.id, changes, user_id=user_id, subject="project")
    db.session.flush()
    return project


def delete_project(project):
    """Delete a project and everything it owns in the current transaction.

    Children are removed explicitly, leaf tables first, so no orphan row can
    survive even on a database without FK cascades. The ORM cascade on
    ``Project`` then has nothing left to do.
    """
    project_id = project.id
    task_ids = [tid for (tid,) in db.session.query(Task.id).filter(Task.project_id == project_id)]
    cr_ids = [
        cid for (cid,) in db.session.query(ChangeRequest.id).filter(
            ChangeRequest.project_id == project_id,
        )
    ]

    counts = {}
    if cr_ids:
        db.session.execute(
            change_request_tasks.delete().where(change_request_tasks.c.change_request_id.in_(cr_ids))
        )
    if task_ids:
        db.session.execute(
            task_dependencies.delete().where(or_(
                task_dependencies.c.task_id.in_(task_ids),
                task_dependencies.c.depends_on_id.in_(task_ids),
            ))
        )
        db.session.execute(
            change_request_tasks.delete().where(change_request_tasks.c.task_id.in_(task_ids))
        )
    for label, model in (
        ("activityLogs", ActivityLog),
        ("changeRequests", ChangeRequest),
        ("risks", Risk),
        ("metrics", ProjectMetric),
        ("tasks", Task),
    ):
        counts[label] = (
            db.session.query(model)
            .filter(model.project_id == project_id)
            .delete(synchronize_session=False)
        )

    db.session.expire(project)
    db.session.delete(project)
    db.session.flush()
    logger.info("Project deleted id=%s cascade=%s", project_id, counts)
    return counts


def _check_dates(project):
    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise ValidationError(
            "endDate must not be before startDate", details={"endDate": "before startDate"},
        )


# ── Health ───────────────────────────────────────────────────────────────


def get_project_health(project, today=None, exclude_closed_risks=False):
    return compute_project_health(
        project.tasks, project.risks, today=today, exclude_closed_risks=exclude_closed_risks,
    )


# ── Metrics ──────────────────────────────────────────────────────────────


def list_metrics(project_id, category=None):
    q = ProjectMetric.query.filter_by(project_id=project_id)
    if category:
        q = q.filter_by(category=enum(METRIC_CATEGORIES)("category", category))
    return q.order_by(ProjectMetric.recorded_at.desc(), ProjectMetric.id.desc()).all()


def record_metric(project_id, data, user_id=None):
    if not isinstance(data, dict) or not (data.get("name") or "").strip():
        raise ValidationError("Metric name is required", details={"name": "required"})
    if data.get("value") in (None, ""):
        raise ValidationError("Metric value is required", details={"value": "required"})

    metric = ProjectMetric(project_id=project_id, category="PERFORMANCE")
    payload = dict(data)
    recorded = payload.pop("recordedAt", None)
    apply_fields(metric, payload, METRIC_FIELDS)
    if recorded:
        metric.recorded_at = _as_datetime(parse_date_input(recorded, field="recordedAt"))
    db.session.add(metric)
    db.session.flush()
    activity_service.log_activity(
        project_id, f"Recorded metric {metric.name}", user_id=user_id,
        field="metric", new_value=metric.value,
    )
    return metric


def _as_datetime(day):
    return datetime.combine(day, time.min, tzinfo=timezone.utc)
