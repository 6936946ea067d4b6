"""
Project Portfolio Manager
Project blueprint — project CRUD, health, board, metrics, activity.

Endpoints summary:
    PROJECT   /api/v1/projects                          GET, POST
              /api/v1/projects/<id>                     GET, PUT, PATCH, DELETE
              /api/v1/projects/<id>/health              GET
              /api/v1/projects/<id>/board               GET   (Kanban columns)

    METRIC    /api/v1/projects/<id>/metrics             GET, POST
    ACTIVITY  /api/v1/projects/<id>/activity            GET, POST
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, listing, ok, query_int, register_error_handlers
from app.core.exceptions import ValidationError
from app.middleware.jwt_auth import current_user_id
from app.models.task import Task
from app.services import activity_service, project_service, task_service
from app.utils.helpers import db_commit_or_error, get_or_404, parse_bool

logger = logging.getLogger(__name__)

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)

_ACTIVITY_BODY_KEYS = ("action", "taskId", "field", "oldValue", "newValue")


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT CRUD
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects", methods=["GET"])
def list_projects():
    projects = project_service.list_projects(
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        manager_id=query_int("managerId"),
        search=request.args.get("search"),
    )
    return listing(projects)


@project_bp.route("/projects", methods=["POST"])
def create_project():
    project = project_service.create_project(json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(project.to_dict(), 201, message="Project created successfully")


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    includes = project_service.parse_includes(request.args.get("include"))
    project = project_service.get_project(project_id)
    return ok(project.to_dict(include=includes))


@project_bp.route("/projects/<int:project_id>", methods=["PUT", "PATCH"])
def update_project(project_id):
    project = project_service.get_project(project_id)
    project_service.update_project(project, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(project.to_dict())


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    project = project_service.get_project(project_id)
    name = project.name
    counts = project_service.delete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({
        "success": True,
        "message": f"Project '{name}' deleted",
        "deleted": counts,
    }), 200


# ═══════════════════════════════════════════════════════════════════════════
#  HEALTH & BOARD
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/health", methods=["GET"])
def project_health(project_id):
    """Health snapshot; ``data`` is null when the project has no tasks or risks."""
    project = project_service.get_project(project_id)
    health = project_service.get_project_health(
        project, exclude_closed_risks=parse_bool(request.args.get("excludeClosedRisks")),
    )
    return ok(health)


@project_bp.route("/projects/<int:project_id>/board", methods=["GET"])
def project_board(project_id):
    project_service.get_project(project_id)
    return ok(task_service.board_view(project_id))


# ═══════════════════════════════════════════════════════════════════════════
#  METRICS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/metrics", methods=["GET"])
def list_metrics(project_id):
    project_service.get_project(project_id)
    return listing(project_service.list_metrics(project_id, request.args.get("category")))


@project_bp.route("/projects/<int:project_id>/metrics", methods=["POST"])
def record_metric(project_id):
    project_service.get_project(project_id)
    metric = project_service.record_metric(project_id, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(metric.to_dict(), 201)


# ═══════════════════════════════════════════════════════════════════════════
#  ACTIVITY LOG
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/activity", methods=["GET"])
def list_activity(project_id):
    project_service.get_project(project_id)
    limit = query_int("limit") or 100
    return listing(activity_service.list_activity(project_id, query_int("taskId"), limit))


@project_bp.route("/projects/<int:project_id>/activity", methods=["POST"])
def add_activity(project_id):
    """Append a free-form history entry (e.g. a comment on a task)."""
    project_service.get_project(project_id)
    data = json_body()
    unknown = sorted(set(data) - set(_ACTIVITY_BODY_KEYS))
    if unknown:
        raise ValidationError(
            f"Unknown fields: {', '.join(unknown)}",
            details={k: "unknown field" for k in unknown},
        )
    if not (data.get("action") or "").strip():
        raise ValidationError("action is required", details={"action": "required"})

    task_id = data.get("taskId")
    if task_id not in (None, ""):
        if isinstance(task_id, bool) or not isinstance(task_id, int):
            raise ValidationError("taskId must be an integer", details={"taskId": "invalid"})
        task = get_or_404(Task, task_id, "Task")
        if task.project_id != project_id:
            raise ValidationError(
                "taskId must belong to the project", details={"taskId": "cross-project"},
            )
        task_id = task.id
    else:
        task_id = None

    entry = activity_service.log_activity(
        project_id, data["action"].strip(),
        user_id=current_user_id(), task_id=task_id, field=data.get("field"),
        old_value=data.get("oldValue"), new_value=data.get("newValue"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return ok(entry.to_dict(), 201)
