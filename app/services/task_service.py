"""Task service layer — CRUD, dependencies, Kanban moves.

Transaction policy: functions flush, never commit. Caller (route handler)
is responsible for db.session.commit().

Board rules:
    - a new task goes to the end of its column (position = max + 1, or 0)
    - a move rewrites column_id/position of every task whose placement
      changed, inside the caller's single transaction
    - moves only touch column_id and position; status is edited separately
"""
import logging

from flask import current_app

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.task import (
    TASK_PRIORITIES,
    TASK_SCORE_MAX,
    TASK_SCORE_MIN,
    TASK_STATUSES,
    Task,
    task_dependencies,
)
from app.services import activity_service
from app.services.helpers.field_updates import (
    Field,
    apply_fields,
    date_field,
    enum,
    foreign_key,
    int_range,
    reject_unknown_fields,
    text,
)
from app.services.kanban import KanbanBoard
from app.services.project_service import get_project
from app.services.task_filters import apply_filters
from app.services.user_service import require_user

logger = logging.getLogger(__name__)

TASK_UPDATE_FIELDS = {
    "title": Field("title", text(max_len=300, required=True)),
    "description": Field("description", text()),
    "status": Field("status", enum(TASK_STATUSES)),
    "priority": Field("priority", enum(TASK_PRIORITIES)),
    "milestone": Field("milestone", text(max_len=200)),
    "impact": Field("impact", int_range(TASK_SCORE_MIN, TASK_SCORE_MAX)),
    "effort": Field("effort", int_range(TASK_SCORE_MIN, TASK_SCORE_MAX)),
    "startDate": Field("start_date", date_field()),
    "endDate": Field("end_date", date_field()),
    "eta": Field("eta", date_field()),
    "dueDate": Field("due_date", date_field()),
    "assigneeId": Field("assignee_id", foreign_key(require_user)),
}

# Keys handled outside the field map
_CREATE_EXTRA = ("projectId", "columnId", "createdById", "dependencyIds")
_UPDATE_EXTRA = ("dependencyIds",)


def kanban_columns():
    """Ordered ``{column_id: status}`` mapping from config."""
    return dict(current_app.config["KANBAN_COLUMNS"])


def _status_columns():
    return {status: column for column, status in kanban_columns().items()}


def _require_column(column_id):
    columns = kanban_columns()
    if column_id not in columns:
        raise ValidationError(
            f"Unknown column {column_id!r}",
            details={"columnId": f"must be one of: {', '.join(columns)}"},
        )
    return column_id


# ── Queries ──────────────────────────────────────────────────────────────


def get_task(task_id):
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


def list_tasks(project_id=None, filters=None):
    """Tasks in board order, narrowed by the filter engine."""
    q = Task.query
    if project_id is not None:
        q = q.filter_by(project_id=project_id)
    tasks = q.order_by(Task.project_id, Task.column_id, Task.position, Task.id).all()
    return apply_filters(tasks, filters)


def build_board(project_id):
    tasks = Task.query.filter_by(project_id=project_id).all()
    return KanbanBoard.from_tasks(tasks, kanban_columns()), tasks


def _write_placements(board, tasks):
    """Copy the board's placements onto task rows; returns the placements that differed."""
    by_id = {t.id: t for t in tasks}
    written = []
    for placement in board.placements():
        row = by_id.get(placement.task_id)
        if row is None:
            continue
        if row.column_id != placement.column_id or row.position != placement.position:
            row.column_id = placement.column_id
            row.position = placement.position
            written.append(placement)
    return written


def board_view(project_id):
    """Columns with their tasks in order, for ``GET /projects/<id>/board``."""
    board, tasks = build_board(project_id)
    by_id = {t.id: t for t in tasks}
    columns = kanban_columns()
    return [
        {
            "id": column_id,
            "status": columns.get(column_id),
            "tasks": [by_id[tid].to_dict() for tid in board.column_task_ids(column_id)],
        }
        for column_id in board.column_ids
    ]


# ── Mutations ────────────────────────────────────────────────────────────


def create_task(data, user_id=None):
    """Create a task at the end of its column.

    Defaults: status TODO (or the column's status), priority MEDIUM,
    impact 3, effort 3. ``createdById`` falls back to the session user.

    Returns:
        Task instance (already flushed).
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    reject_unknown_fields(data, TASK_UPDATE_FIELDS, _CREATE_EXTRA)

    if not (data.get("title") or "").strip():
        raise ValidationError("Task title is required", details={"title": "required"})
    if data.get("projectId") in (None, ""):
        raise ValidationError("projectId is required", details={"projectId": "required"})
    project = get_project(data["projectId"])

    created_by = require_user(data.get("createdById") or user_id, "createdById")
    if created_by is None:
        raise ValidationError("createdById is required", details={"createdById": "required"})

    columns = kanban_columns()
    column_id = data.get("columnId")
    if column_id:
        _require_column(column_id)
    status = data.get("status") or (columns.get(column_id) if column_id else None) or "TODO"
    if not column_id:
        column_id = _status_columns().get(str(status).upper(), next(iter(columns)))
    board, siblings = build_board(project.id)

    task = Task(
        project_id=project.id,
        created_by_id=created_by,
        status="TODO",
        priority="MEDIUM",
        impact=3,
        effort=3,
        column_id=column_id,
    )
    fields = {k: v for k, v in data.items() if k in TASK_UPDATE_FIELDS}
    fields.setdefault("status", status)
    apply_fields(task, fields, TASK_UPDATE_FIELDS)

    db.session.add(task)
    db.session.flush()
    _write_placements(board, siblings)
    task.position = board.append_task(task.id, column_id).position

    if data.get("dependencyIds"):
        set_dependencies(task, data["dependencyIds"])

    activity_service.log_activity(
        project.id, f"Created task {task.title}", user_id=user_id or created_by, task_id=task.id,
    )
    logger.info("Task created id=%s project=%s column=%s pos=%s",
                task.id, project.id, column_id, task.position)
    return task


def update_task(task, data, user_id=None):
    """Enumerated partial update. Column/position change only through ``move_task``."""
    changes = apply_fields(task, data, TASK_UPDATE_FIELDS, extra_allowed=_UPDATE_EXTRA)
    if "dependencyIds" in data:
        set_dependencies(task, data["dependencyIds"] or [])
    activity_service.log_field_changes(
        task.project_id, changes, user_id=user_id, task_id=task.id, subject="task",
    )
    db.session.flush()
    return task


def delete_task(task, user_id=None):
    """Delete a task and close the gap it leaves in its column."""
    project_id, title = task.project_id, task.title
    board, tasks = build_board(project_id)
    board.remove_task(task.id)
    task.dependencies = []
    task.dependents = []
    db.session.delete(task)
    _write_placements(board, [t for t in tasks if t.id != task.id])
    activity_service.log_activity(project_id, f"Deleted task {title}", user_id=user_id)
    db.session.flush()


def move_task(task, column_id, index, user_id=None):
    """Persist a Kanban move: new column/position plus renumbered siblings.

    Returns:
        (task, changed) where ``changed`` is the list of placements written.
        A move onto the current (column, index) writes nothing.
    """
    _require_column(column_id)
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValidationError("position must be an integer", details={"position": "invalid type"})

    board, tasks = build_board(task.project_id)
    old_column = task.column_id
    result = board.move_task(task.id, column_id, index)
    if result.is_noop:
        return task, []

    written = _write_placements(board, tasks)

    if old_column != column_id:
        activity_service.log_activity(
            task.project_id, f"Moved task {task.title}", user_id=user_id, task_id=task.id,
            field="columnId", old_value=old_column, new_value=column_id,
        )
    else:
        activity_service.log_activity(
            task.project_id, f"Reordered task {task.title}", user_id=user_id, task_id=task.id,
            field="position", new_value=result.position,
        )
    db.session.flush()
    logger.info("Task moved id=%s %s -> %s#%s (%d rows)",
                task.id, old_column, column_id, result.position, len(written))
    return task, written


# ── Dependencies ─────────────────────────────────────────────────────────


def validate_no_cycle(task_id, new_dependency_id):
    """
    Check that making task_id depend on new_dependency_id does not create a cycle.

    Uses iterative DFS from new_dependency_id, walking its existing dependency
    chains. Returns True if safe, False if the walk reaches task_id.
    """
    if task_id == new_dependency_id:
        return False

    visited = set()
    stack = [new_dependency_id]

    while stack:
        current = stack.pop()
        if current == task_id:
            return False
        if current in visited:
            continue
        visited.add(current)

        deps = db.session.execute(
            db.select(task_dependencies.c.depends_on_id)
            .where(task_dependencies.c.task_id == current)
        ).all()
        for (dep_id,) in deps:
            stack.append(dep_id)

    return True


def set_dependencies(task, dependency_ids):
    """Replace the task's dependencies. Same project only; no self/cycles."""
    if not isinstance(dependency_ids, (list, tuple)):
        raise ValidationError("dependencyIds must be a list", details={"dependencyIds": "invalid"})
    try:
        wanted = {int(d) for d in dependency_ids}
    except (TypeError, ValueError):
        raise ValidationError("dependencyIds must be integers", details={"dependencyIds": "invalid"})

    deps = Task.query.filter(Task.id.in_(wanted)).all() if wanted else []
    found = {d.id for d in deps}
    if wanted - found:
        raise ValidationError(
            f"Unknown tasks: {', '.join(map(str, sorted(wanted - found)))}",
            details={"dependencyIds": "unknown task"},
        )
    if any(d.project_id != task.project_id for d in deps):
        raise ValidationError(
            "Dependencies must belong to the same project",
            details={"dependencyIds": "cross-project"},
        )

    task.dependencies = []
    db.session.flush()
    for dep in deps:
        if not validate_no_cycle(task.id, dep.id):
            raise ValidationError(
                f"Dependency on task {dep.id} would create a cycle",
                details={"dependencyIds": "cycle"},
            )
        task.dependencies.append(dep)
        db.session.flush()
    return task
