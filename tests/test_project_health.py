"""
Tests — health / matrix / deadline engine (app/services/project_health.py).

Pure functions: records are SimpleNamespace stand-ins for ORM rows.
"""

from datetime import date, timedelta
from itertools import product
from types import SimpleNamespace

import pytest

from app.services.project_health import (
    FILL_INS,
    MAJOR_PROJECTS,
    QUADRANTS,
    QUICK_WINS,
    THANKLESS_TASKS,
    classify_health,
    compute_matrix_quadrant,
    compute_overdue_projects,
    compute_project_health,
    compute_upcoming_deadlines,
    group_by_quadrant,
    matrix_candidates,
)

TODAY = date(2025, 3, 15)


def _task(status="TODO", eta=None):
    return SimpleNamespace(status=status, eta=eta)


def _risk(severity="LOW", status="IDENTIFIED"):
    return SimpleNamespace(severity=severity, status=status)


def _project(name, status="IN_PROGRESS", impact=5, effort=5, end_date=None):
    return SimpleNamespace(
        name=name, status=status, business_impact=impact, tech_effort=effort, end_date=end_date,
    )


# ═════════════════════════════════════════════════════════════════════════════
# HEALTH
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectHealth:
    def test_no_tasks_no_risks_has_no_signal(self):
        assert compute_project_health([], [], today=TODAY) is None

    def test_forty_percent_overdue_is_red(self):
        past = TODAY - timedelta(days=3)
        tasks = [_task(eta=past) for _ in range(4)] + [_task() for _ in range(6)]
        health = compute_project_health(tasks, [], today=TODAY)
        assert health["status"] == "red"
        assert health["overdueTasksPercentage"] == 40.0
        assert health["overdueTasksCount"] == 4
        assert health["totalTasks"] == 10

    def test_ten_percent_overdue_with_one_high_risk_is_yellow(self):
        tasks = [_task(eta=TODAY - timedelta(days=1))] + [_task() for _ in range(9)]
        health = compute_project_health(tasks, [_risk("HIGH")], today=TODAY)
        assert health["status"] == "yellow"
        assert health["openHighRisksCount"] == 1

    def test_done_tasks_are_never_overdue(self):
        tasks = [_task("DONE", eta=TODAY - timedelta(days=10)) for _ in range(3)]
        health = compute_project_health(tasks, [], today=TODAY)
        assert health["status"] == "green"
        assert health["completedTasks"] == 3
        assert health["overdueTasksPercentage"] == 0

    def test_eta_today_is_not_overdue(self):
        health = compute_project_health([_task(eta=TODAY)], [], today=TODAY)
        assert health["overdueTasksCount"] == 0

    def test_risks_only_project(self):
        health = compute_project_health([], [_risk("CRITICAL")] * 3, today=TODAY)
        assert health["status"] == "red"
        assert health["totalTasks"] == 0
        assert health["overdueTasksPercentage"] == 0

    def test_closed_risks_count_by_default(self):
        risks = [_risk("HIGH", "CLOSED")] * 3
        assert compute_project_health([], risks, today=TODAY)["status"] == "red"

    def test_closed_risks_excluded_on_request(self):
        risks = [_risk("HIGH", "CLOSED")] * 3 + [_risk("MEDIUM")]
        health = compute_project_health([], risks, today=TODAY, exclude_closed_risks=True)
        assert health["openHighRisksCount"] == 0
        assert health["status"] == "green"

    @pytest.mark.parametrize("risks,pct,expected", [
        (2, 0, "yellow"),
        (3, 0, "red"),
        (0, 30.0, "yellow"),
        (0, 30.01, "red"),
        (0, 15.0, "green"),
        (0, 15.01, "yellow"),
        (1, 0, "yellow"),
        (0, 0, "green"),
    ])
    def test_boundaries(self, risks, pct, expected):
        assert classify_health(risks, pct) == expected

    def test_monotone_in_both_signals(self):
        rank = {"green": 0, "yellow": 1, "red": 2}
        pcts = [0, 10, 15, 15.5, 20, 30, 30.5, 50, 100]
        for r, pct in product(range(6), pcts):
            here = rank[classify_health(r, pct)]
            assert rank[classify_health(r + 1, pct)] >= here
            for higher in (p for p in pcts if p > pct):
                assert rank[classify_health(r, higher)] >= here


# ═════════════════════════════════════════════════════════════════════════════
# MATRIX
# ═════════════════════════════════════════════════════════════════════════════

class TestMatrix:
    @pytest.mark.parametrize("impact,effort,expected", [
        (6, 5, QUICK_WINS),
        (6, 6, MAJOR_PROJECTS),
        (5, 5, FILL_INS),
        (5, 6, THANKLESS_TASKS),
        (10, 1, QUICK_WINS),
        (1, 10, THANKLESS_TASKS),
    ])
    def test_quadrant_boundaries(self, impact, effort, expected):
        assert compute_matrix_quadrant(impact, effort) == expected

    def test_partition_is_total(self):
        for impact, effort in product(range(1, 11), repeat=2):
            assert compute_matrix_quadrant(impact, effort) in QUADRANTS

    def test_out_of_range_inputs_are_clamped(self):
        assert compute_matrix_quadrant(42, 0) == QUICK_WINS
        assert compute_matrix_quadrant(-3, 99) == THANKLESS_TASKS

    def test_group_by_quadrant_keeps_every_key_and_order(self):
        a = _project("a", impact=9, effort=2)
        b = _project("b", impact=7, effort=1)
        groups = group_by_quadrant([a, b])
        assert list(groups) == list(QUADRANTS)
        assert groups[QUICK_WINS] == [a, b]
        assert groups[MAJOR_PROJECTS] == []

    def test_matrix_candidates_planning_and_in_progress_only(self):
        projects = [_project(s, status=s) for s in ("PLANNING", "IN_PROGRESS", "UAT", "DONE")]
        assert [p.name for p in matrix_candidates(projects)] == ["PLANNING", "IN_PROGRESS"]


# ═════════════════════════════════════════════════════════════════════════════
# DEADLINES
# ═════════════════════════════════════════════════════════════════════════════

class TestDeadlines:
    def test_window_edges(self):
        projects = [
            _project("far", end_date=TODAY + timedelta(days=40)),
            _project("yesterday", end_date=TODAY - timedelta(days=1)),
            _project("soon", end_date=TODAY + timedelta(days=10)),
            _project("undated"),
            _project("today", end_date=TODAY),
            _project("edge", end_date=TODAY + timedelta(days=30)),
        ]
        names = [p.name for p in compute_upcoming_deadlines(projects, 30, today=TODAY)]
        assert names == ["today", "soon", "edge"]

    def test_sort_is_stable_for_equal_dates(self):
        day = TODAY + timedelta(days=5)
        projects = [_project(n, end_date=day) for n in ("x", "y", "z")]
        projects.insert(0, _project("later", end_date=day + timedelta(days=1)))
        names = [p.name for p in compute_upcoming_deadlines(projects, today=TODAY)]
        assert names == ["x", "y", "z", "later"]

    def test_overdue_projects_skip_closed_statuses(self):
        projects = [
            _project("late", end_date=TODAY - timedelta(days=2)),
            _project("later", end_date=TODAY - timedelta(days=9)),
            _project("done", status="DONE", end_date=TODAY - timedelta(days=5)),
            _project("cancelled", status="CANCELLED", end_date=TODAY - timedelta(days=5)),
            _project("future", end_date=TODAY + timedelta(days=1)),
        ]
        names = [p.name for p in compute_overdue_projects(projects, today=TODAY)]
        assert names == ["later", "late"]
