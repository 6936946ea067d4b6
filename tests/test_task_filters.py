"""
Tests — task / project filter engine (app/services/task_filters.py).
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from werkzeug.datastructures import MultiDict

from app.core.exceptions import ValidationError
from app.services.task_filters import (
    TaskFilters,
    apply_filters,
    compute_task_stats,
    filter_projects_by_stats,
)

TODAY = date(2025, 6, 1)


def _task(tid, status="TODO", priority="MEDIUM", assignee_id=None, milestone=None, eta=None):
    return SimpleNamespace(
        id=tid, status=status, priority=priority, assignee_id=assignee_id,
        milestone=milestone, eta=eta,
    )


@pytest.fixture()
def tasks():
    return [
        _task(1, "TODO", "HIGH", 10, "M1", TODAY - timedelta(days=2)),
        _task(2, "IN_PROGRESS", "LOW", 11, "M1", TODAY + timedelta(days=2)),
        _task(3, "DONE", "HIGH", None, None, TODAY - timedelta(days=9)),
        _task(4, "BLOCKED", "URGENT", 10, "M2", None),
        _task(5, "TODO", "MEDIUM", 12, None, TODAY),
    ]


def _ids(items):
    return [t.id for t in items]


class TestApplyFilters:
    def test_none_is_identity(self, tasks):
        assert apply_filters(tasks, None, today=TODAY) == tasks

    def test_empty_filters_are_identity(self, tasks):
        assert apply_filters(tasks, TaskFilters(), today=TODAY) == tasks

    def test_status_set(self, tasks):
        f = TaskFilters(status=frozenset({"TODO", "DONE"}))
        assert _ids(apply_filters(tasks, f, today=TODAY)) == [1, 3, 5]

    def test_assignee_excludes_unassigned(self, tasks):
        f = TaskFilters(assignee_id=frozenset({10}))
        assert _ids(apply_filters(tasks, f, today=TODAY)) == [1, 4]

    def test_milestone_excludes_missing(self, tasks):
        f = TaskFilters(milestone=frozenset({"M1"}))
        assert _ids(apply_filters(tasks, f, today=TODAY)) == [1, 2]

    def test_overdue_needs_eta_before_today(self, tasks):
        f = TaskFilters(overdue=True)
        # eta-based only; status does not matter for the overdue filter
        assert _ids(apply_filters(tasks, f, today=TODAY)) == [1, 3]

    def test_predicates_and_compose(self, tasks):
        f = TaskFilters(priority=frozenset({"HIGH"}), overdue=True, assignee_id=frozenset({10}))
        assert _ids(apply_filters(tasks, f, today=TODAY)) == [1]

    def test_removing_a_predicate_never_removes_results(self, tasks):
        full = TaskFilters(
            status=frozenset({"TODO"}), priority=frozenset({"HIGH"}),
            milestone=frozenset({"M1"}), overdue=True,
        )
        narrowed = set(_ids(apply_filters(tasks, full, today=TODAY)))
        for relaxed in (
            TaskFilters(priority=full.priority, milestone=full.milestone, overdue=True),
            TaskFilters(status=full.status, milestone=full.milestone, overdue=True),
            TaskFilters(status=full.status, priority=full.priority, overdue=True),
            TaskFilters(status=full.status, priority=full.priority, milestone=full.milestone),
        ):
            assert narrowed <= set(_ids(apply_filters(tasks, relaxed, today=TODAY)))


class TestFromMapping:
    def test_repeated_and_comma_values(self):
        args = MultiDict([
            ("status", "todo,in_progress"), ("status", "DONE"),
            ("assigneeId", "3"), ("milestone", "M1"), ("overdue", "true"),
        ])
        f = TaskFilters.from_mapping(args)
        assert f.status == {"TODO", "IN_PROGRESS", "DONE"}
        assert f.assignee_id == {3}
        assert f.milestone == {"M1"}
        assert f.overdue is True
        assert f.has_active_filters

    def test_plain_dict(self):
        f = TaskFilters.from_mapping({"priority": "HIGH"})
        assert f.priority == {"HIGH"}
        assert not TaskFilters.from_mapping({}).has_active_filters

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError) as exc:
            TaskFilters.from_mapping({"status": "TODO,SHIPPED"})
        assert "SHIPPED" in exc.value.message

    def test_bad_assignee_rejected(self):
        with pytest.raises(ValidationError):
            TaskFilters.from_mapping({"assigneeId": "bob"})


class TestStats:
    def test_task_stats(self, tasks):
        stats = compute_task_stats(tasks, today=TODAY)
        assert stats["total"] == 5
        assert stats["completed"] == 1
        assert stats["inProgress"] == 1
        # DONE task 3 is not counted as overdue
        assert stats["overdue"] == 1
        assert stats["progress"] == 20

    def test_project_stats_filter(self):
        projects = [SimpleNamespace(status=s) for s in
                    ("PLANNING", "IN_PROGRESS", "UAT", "DONE", "CANCELLED")]
        assert len(filter_projects_by_stats(projects, "ALL")) == 5
        assert [p.status for p in filter_projects_by_stats(projects, "done")] == ["DONE"]
        assert {p.status for p in filter_projects_by_stats(projects, "ONGOING")} == {
            "PLANNING", "IN_PROGRESS", "UAT",
        }

    def test_unknown_project_stats_filter(self):
        with pytest.raises(ValidationError):
            filter_projects_by_stats([], "ARCHIVED")
