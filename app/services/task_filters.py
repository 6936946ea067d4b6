"""
Task / project filter engine.

``apply_filters`` narrows a task list by AND-composing the active
predicates of a ``TaskFilters`` value. Inactive filters never exclude
anything, so an empty ``TaskFilters`` returns the input unchanged.

Predicates:
    status / priority     value must be in the set (when the set is non-empty)
    assigneeId / milestone value must be present and in the set
    overdue               eta present and eta < today
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from app.core.exceptions import ValidationError
from app.models.task import TASK_PRIORITIES, TASK_STATUSES
from app.utils.classification import calculate_progress
from app.utils.helpers import parse_bool

STATS_FILTERS = {
    "ALL": None,
    "DONE": frozenset({"DONE"}),
    "ONGOING": frozenset({"IN_PROGRESS", "UAT", "PLANNING"}),
}


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def _split(values):
    """Flatten repeated and comma-separated query values into a list of tokens."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    tokens = []
    for raw in values:
        tokens.extend(part.strip() for part in str(raw).split(",") if part.strip())
    return tokens


def _enum_set(name, values, allowed):
    tokens = {v.upper() for v in _split(values)}
    unknown = sorted(tokens - set(allowed))
    if unknown:
        raise ValidationError(
            f"Invalid {name}: {', '.join(unknown)}",
            details={name: f"must be one of: {', '.join(allowed)}"},
        )
    return frozenset(tokens)


@dataclass(frozen=True)
class TaskFilters:
    status: frozenset = field(default_factory=frozenset)
    priority: frozenset = field(default_factory=frozenset)
    assignee_id: frozenset = field(default_factory=frozenset)
    milestone: frozenset = field(default_factory=frozenset)
    overdue: bool = False

    @property
    def has_active_filters(self):
        return bool(self.status or self.priority or self.assignee_id or self.milestone or self.overdue)

    @classmethod
    def from_mapping(cls, args):
        """Build filters from request args (a ``MultiDict`` or plain dict).

        Accepts repeated keys (``?status=TODO&status=DONE``) and comma lists
        (``?status=TODO,DONE``). Unknown enum values raise ValidationError.
        """
        def values(key):
            if hasattr(args, "getlist"):
                return args.getlist(key)
            return args.get(key)

        assignees = set()
        for token in _split(values("assigneeId")):
            try:
                assignees.add(int(token))
            except ValueError:
                raise ValidationError(
                    f"Invalid assigneeId: {token}", details={"assigneeId": "must be an integer"},
                )

        return cls(
            status=_enum_set("status", values("status"), TASK_STATUSES),
            priority=_enum_set("priority", values("priority"), TASK_PRIORITIES),
            assignee_id=frozenset(assignees),
            milestone=frozenset(_split(values("milestone"))),
            overdue=parse_bool(args.get("overdue")),
        )


def _matches(task, filters, today):
    if filters.status and task.status not in filters.status:
        return False
    if filters.priority and task.priority not in filters.priority:
        return False
    if filters.assignee_id and task.assignee_id not in filters.assignee_id:
        return False
    if filters.milestone and task.milestone not in filters.milestone:
        return False
    if filters.overdue:
        eta = _as_date(task.eta)
        if eta is None or eta >= today:
            return False
    return True


def apply_filters(tasks, filters=None, today=None):
    """Return the tasks matching every active predicate, in input order."""
    tasks = list(tasks)
    if filters is None or not filters.has_active_filters:
        return tasks
    today = today or date.today()
    return [t for t in tasks if _matches(t, filters, today)]


def compute_task_stats(tasks, today=None):
    """Counts shown above the task list."""
    today = today or date.today()
    tasks = list(tasks)
    completed = sum(1 for t in tasks if t.status == "DONE")
    return {
        "total": len(tasks),
        "completed": completed,
        "inProgress": sum(1 for t in tasks if t.status == "IN_PROGRESS"),
        "overdue": sum(
            1 for t in tasks
            if _as_date(t.eta) is not None and _as_date(t.eta) < today and t.status != "DONE"
        ),
        "progress": calculate_progress(completed, len(tasks)),
    }


# ── Project-side ─────────────────────────────────────────────────────────────

def filter_projects_by_stats(projects, stats_filter="ALL"):
    """Dashboard stats filter: ALL, DONE, or ONGOING (IN_PROGRESS, UAT, PLANNING)."""
    key = (stats_filter or "ALL").upper()
    if key not in STATS_FILTERS:
        raise ValidationError(
            f"Invalid statsFilter: {stats_filter}",
            details={"statsFilter": f"must be one of: {', '.join(STATS_FILTERS)}"},
        )
    statuses = STATS_FILTERS[key]
    projects = list(projects)
    if statuses is None:
        return projects
    return [p for p in projects if p.status in statuses]
