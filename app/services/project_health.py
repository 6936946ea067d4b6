"""
Project health & prioritisation-matrix engine.

Pure functions over plain records (ORM rows or any object exposing the
same attributes). Nothing here touches the database or Flask, so the
dashboard, the ``/projects/<id>/health`` endpoint and the tests all share
one implementation.

Health rules:
    overdue%   = tasks with eta < today and status != DONE / total tasks × 100
    high risks = risks with severity HIGH or CRITICAL
    red        : high risks > 2  or overdue% > 30
    yellow     : high risks > 0  or overdue% > 15
    green      : otherwise
    None       : no tasks and no risks (no signal)

Matrix quadrants (business impact × tech effort, both clamped to 1–10):
    Quick Wins       impact ≥ 6, effort ≤ 5
    Major Projects   impact ≥ 6, effort > 5
    Fill-ins         impact < 6, effort ≤ 5
    Thankless Tasks  impact < 6, effort > 5
"""

from datetime import date, datetime, timedelta

# ── Health ───────────────────────────────────────────────────────────────────

HEALTH_GREEN = "green"
HEALTH_YELLOW = "yellow"
HEALTH_RED = "red"

RED_HIGH_RISK_THRESHOLD = 2        # strictly more than this → red
RED_OVERDUE_PCT_THRESHOLD = 30     # strictly more than this → red
YELLOW_OVERDUE_PCT_THRESHOLD = 15  # strictly more than this → yellow

HIGH_RISK_SEVERITIES = frozenset({"HIGH", "CRITICAL"})
CLOSED_RISK_STATUS = "CLOSED"
DONE_TASK_STATUS = "DONE"

# ── Matrix ───────────────────────────────────────────────────────────────────

QUICK_WINS = "Quick Wins"
MAJOR_PROJECTS = "Major Projects"
FILL_INS = "Fill-ins"
THANKLESS_TASKS = "Thankless Tasks"

QUADRANTS = (QUICK_WINS, MAJOR_PROJECTS, FILL_INS, THANKLESS_TASKS)

IMPACT_SPLIT = 6   # impact ≥ this is "high impact"
EFFORT_SPLIT = 5   # effort ≤ this is "low effort"

MATRIX_STATUSES = frozenset({"PLANNING", "IN_PROGRESS"})
CLOSED_PROJECT_STATUSES = frozenset({"DONE", "CANCELLED"})

DEFAULT_WINDOW_DAYS = 30


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def _clamp(value, low=1, high=10):
    return max(low, min(high, int(value)))


def is_task_overdue(task, today):
    eta = _as_date(task.eta)
    return eta is not None and eta < today and task.status != DONE_TASK_STATUS


def classify_health(open_high_risks, overdue_pct):
    """Map the two health signals to a status. Monotone in both arguments."""
    if open_high_risks > RED_HIGH_RISK_THRESHOLD or overdue_pct > RED_OVERDUE_PCT_THRESHOLD:
        return HEALTH_RED
    if open_high_risks > 0 or overdue_pct > YELLOW_OVERDUE_PCT_THRESHOLD:
        return HEALTH_YELLOW
    return HEALTH_GREEN


def compute_project_health(tasks, risks, today=None, exclude_closed_risks=False):
    """Derive the health summary of one project.

    Args:
        tasks: task records (need ``status`` and ``eta``).
        risks: risk records (need ``severity``; ``status`` when
            ``exclude_closed_risks`` is set).
        today: reference date, defaults to ``date.today()``.
        exclude_closed_risks: when True, CLOSED risks do not count as high
            risks. Off by default so every HIGH/CRITICAL risk counts.

    Returns:
        dict with status, overdueTasksPercentage, openHighRisksCount,
        totalTasks, completedTasks and overdueTasksCount; None when both
        inputs are empty.
    """
    tasks = list(tasks or [])
    risks = list(risks or [])
    if not tasks and not risks:
        return None

    today = today or date.today()

    total = len(tasks)
    overdue = sum(1 for t in tasks if is_task_overdue(t, today))
    completed = sum(1 for t in tasks if t.status == DONE_TASK_STATUS)
    overdue_pct = (overdue / total * 100) if total else 0.0

    high_risks = [r for r in risks if r.severity in HIGH_RISK_SEVERITIES]
    if exclude_closed_risks:
        high_risks = [r for r in high_risks if r.status != CLOSED_RISK_STATUS]

    return {
        "status": classify_health(len(high_risks), overdue_pct),
        "overdueTasksPercentage": round(overdue_pct, 2),
        "openHighRisksCount": len(high_risks),
        "totalTasks": total,
        "completedTasks": completed,
        "overdueTasksCount": overdue,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Prioritisation matrix
# ═════════════════════════════════════════════════════════════════════════════

def compute_matrix_quadrant(business_impact, tech_effort):
    """Return the quadrant label for an (impact, effort) pair.

    Out-of-range inputs are clamped to 1–10 first, so every pair lands in
    exactly one quadrant.
    """
    impact = _clamp(business_impact)
    effort = _clamp(tech_effort)
    if impact >= IMPACT_SPLIT:
        return QUICK_WINS if effort <= EFFORT_SPLIT else MAJOR_PROJECTS
    return FILL_INS if effort <= EFFORT_SPLIT else THANKLESS_TASKS


def matrix_candidates(projects):
    """Projects plotted on the matrix: PLANNING and IN_PROGRESS only."""
    return [p for p in projects if p.status in MATRIX_STATUSES]


def group_by_quadrant(projects):
    """Bucket projects by quadrant. All four keys are always present."""
    groups = {q: [] for q in QUADRANTS}
    for p in projects:
        groups[compute_matrix_quadrant(p.business_impact, p.tech_effort)].append(p)
    return groups


# ═════════════════════════════════════════════════════════════════════════════
# Deadlines
# ═════════════════════════════════════════════════════════════════════════════

def compute_upcoming_deadlines(projects, window_days=DEFAULT_WINDOW_DAYS, today=None):
    """Projects whose end date falls in [today, today + window_days], soonest first.

    Undated and past-due projects are excluded. The sort is stable, so
    projects sharing an end date keep their input order.
    """
    today = today or date.today()
    horizon = today + timedelta(days=window_days)
    upcoming = [
        p for p in projects
        if _as_date(p.end_date) is not None and today <= _as_date(p.end_date) <= horizon
    ]
    return sorted(upcoming, key=lambda p: _as_date(p.end_date))


def compute_overdue_projects(projects, today=None):
    """Open projects (not DONE/CANCELLED) whose end date has passed, earliest first."""
    today = today or date.today()
    overdue = [
        p for p in projects
        if _as_date(p.end_date) is not None
        and _as_date(p.end_date) < today
        and p.status not in CLOSED_PROJECT_STATUSES
    ]
    return sorted(overdue, key=lambda p: _as_date(p.end_date))
