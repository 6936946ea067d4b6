"""
Project Portfolio Manager
Task blueprint — task CRUD, filtering and Kanban moves.

Endpoints summary:
    TASK   /api/v1/tasks                 GET (filters), POST
           /api/v1/tasks/<id>            GET, PATCH, DELETE
           /api/v1/tasks/<id>/move       POST  { columnId, position }

List filters (repeatable or comma separated):
    ?projectId=1&status=TODO,IN_PROGRESS&priority=HIGH&assigneeId=3
    &milestone=M1&overdue=true
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, ok, query_int, register_error_handlers
from app.core.exceptions import ValidationError
from app.middleware.jwt_auth import current_user_id
from app.services import task_service
from app.services.task_filters import TaskFilters, compute_task_stats
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

task_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")
register_error_handlers(task_bp)


def _placement_dict(p):
    return {"taskId": p.task_id, "columnId": p.column_id, "position": p.position}


# ═══════════════════════════════════════════════════════════════════════════
#  TASK CRUD
# ═══════════════════════════════════════════════════════════════════════════

@task_bp.route("/tasks", methods=["GET"])
def list_tasks():
    filters = TaskFilters.from_mapping(request.args)
    tasks = task_service.list_tasks(project_id=query_int("projectId"), filters=filters)
    return jsonify({
        "success": True,
        "data": [t.to_dict() for t in tasks],
        "count": len(tasks),
        "stats": compute_task_stats(tasks),
    }), 200


@task_bp.route("/tasks", methods=["POST"])
def create_task():
    task = task_service.create_task(json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(task.to_dict(), 201, message="Task created successfully")


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    return ok(task_service.get_task(task_id).to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["PATCH", "PUT"])
def update_task(task_id):
    task = task_service.get_task(task_id)
    task_service.update_task(task, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(task.to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    task = task_service.get_task(task_id)
    title = task.title
    task_service.delete_task(task, user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True, "message": f"Task '{title}' deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  KANBAN MOVE
# ═══════════════════════════════════════════════════════════════════════════

@task_bp.route("/tasks/<int:task_id>/move", methods=["POST"])
def move_task(task_id):
    """Commit a drag-end: the task and every renumbered sibling in one transaction."""
    data = json_body()
    unknown = sorted(set(data) - {"columnId", "position"})
    if unknown:
        raise ValidationError(
            f"Unknown fields: {', '.join(unknown)}",
            details={k: "unknown field" for k in unknown},
        )
    missing = [k for k in ("columnId", "position") if data.get(k) in (None, "")]
    if missing:
        raise ValidationError(
            "columnId and position are required", details={k: "required" for k in missing},
        )

    task = task_service.get_task(task_id)
    task, changed = task_service.move_task(
        task, data["columnId"], data["position"], user_id=current_user_id(),
    )
    err = db_commit_or_error()
    if err:
        return err
    return ok({
        "task": task.to_dict(),
        "changed": [_placement_dict(p) for p in changed],
    })
