"""
Portfolio dashboard service.

Aggregates the projects table into the dashboard payload:
  - headline metrics (counts, value totals, countries, teams)
  - status breakdown (count + summed value per status)
  - prioritisation matrix quadrants (PLANNING / IN_PROGRESS projects)
  - upcoming deadlines and overdue projects
  - strategic projects (top N by value)

The ``compute_*`` functions are pure; ``build_dashboard`` is the only
function that queries the database.
"""

import logging
from datetime import date

from app.models.project import PROJECT_STATUSES, Project
from app.services.project_health import (
    DEFAULT_WINDOW_DAYS,
    compute_overdue_projects,
    compute_upcoming_deadlines,
    group_by_quadrant,
    matrix_candidates,
)
from app.services.task_filters import filter_projects_by_stats
from app.core.exceptions import ValidationError
from app.utils.classification import format_currency_compact, format_date

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"IN_PROGRESS", "UAT"})
HIGH_IMPACT_THRESHOLD = 8
STRATEGIC_LIMIT = 6
STRATEGIC_MODES = {
    "ACTIVE": ACTIVE_STATUSES,
    "COMPLETED": frozenset({"DONE"}),
}


def _num(value):
    return value or 0


def compute_dashboard_metrics(projects):
    """Headline numbers for the metric cards."""
    projects = list(projects)
    total_value = sum(_num(p.project_value) for p in projects)
    return {
        "totalProjects": len(projects),
        "activeProjects": sum(1 for p in projects if p.status in ACTIVE_STATUSES),
        "completedProjects": sum(1 for p in projects if p.status == "DONE"),
        "plannedProjects": sum(1 for p in projects if p.status == "PLANNING"),
        "highImpactProjects": sum(
            1 for p in projects if _num(p.business_impact) >= HIGH_IMPACT_THRESHOLD
        ),
        "totalProjectValue": total_value,
        "totalProjectValueDisplay": format_currency_compact(total_value),
        "totalRevenueUplift": sum(_num(p.revenue_uplift) for p in projects),
        "totalHeadcountSaving": sum(_num(p.headcount_saving) for p in projects),
        "countries": sorted({p.country for p in projects if p.country}),
        "teams": sorted({p.team for p in projects if p.team}),
    }


def compute_status_breakdown(projects):
    """Count and summed value per status, in lifecycle order. Zero rows omitted."""
    rows = {s: {"status": s, "count": 0, "value": 0} for s in PROJECT_STATUSES}
    for p in projects:
        row = rows.setdefault(p.status, {"status": p.status, "count": 0, "value": 0})
        row["count"] += 1
        row["value"] += _num(p.project_value)
    return [row for row in rows.values() if row["count"]]


def compute_strategic_projects(projects, mode="ACTIVE", limit=STRATEGIC_LIMIT):
    """Top ``limit`` projects by value among ACTIVE or COMPLETED projects."""
    key = (mode or "ACTIVE").upper()
    if key not in STRATEGIC_MODES:
        raise ValidationError(
            f"Invalid strategic mode: {mode}",
            details={"strategicMode": f"must be one of: {', '.join(STRATEGIC_MODES)}"},
        )
    statuses = STRATEGIC_MODES[key]
    ranked = sorted(
        (p for p in projects if p.status in statuses),
        key=lambda p: _num(p.project_value),
        reverse=True,
    )
    return ranked[:limit]


def _deadline_dict(project, today):
    data = project.to_dict()
    data["endDateDisplay"] = format_date(project.end_date)
    data["daysRemaining"] = (project.end_date - today).days
    return data


def build_dashboard(stats_filter="ALL", window_days=DEFAULT_WINDOW_DAYS,
                    strategic_mode="ACTIVE", today=None):
    """Assemble the full dashboard payload from the projects table.

    ``stats_filter`` narrows only the headline metrics; the matrix,
    deadlines and strategic lists always look at the whole portfolio.
    """
    if window_days < 0:
        raise ValidationError("windowDays must be >= 0", details={"windowDays": "negative"})
    today = today or date.today()
    projects = Project.query.order_by(Project.id).all()

    scoped = filter_projects_by_stats(projects, stats_filter)
    quadrants = group_by_quadrant(matrix_candidates(projects))

    logger.debug(
        "Dashboard built projects=%d scoped=%d filter=%s", len(projects), len(scoped), stats_filter,
    )
    return {
        "statsFilter": (stats_filter or "ALL").upper(),
        "metrics": compute_dashboard_metrics(scoped),
        "statusBreakdown": compute_status_breakdown(projects),
        "matrix": {q: [p.to_dict() for p in items] for q, items in quadrants.items()},
        "upcomingDeadlines": [
            _deadline_dict(p, today) for p in compute_upcoming_deadlines(projects, window_days, today)
        ],
        "overdueProjects": [
            _deadline_dict(p, today) for p in compute_overdue_projects(projects, today)
        ],
        "strategicProjects": [
            p.to_dict() for p in compute_strategic_projects(projects, strategic_mode)
        ],
    }
