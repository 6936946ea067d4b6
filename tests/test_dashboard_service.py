"""
Tests — portfolio dashboard (app/services/dashboard_service.py + GET /dashboard).
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationError
from app.services.dashboard_service import (
    compute_dashboard_metrics,
    compute_status_breakdown,
    compute_strategic_projects,
)


def _p(name, status="IN_PROGRESS", value=None, impact=5, country=None, team=None):
    return SimpleNamespace(
        name=name, status=status, project_value=value, revenue_uplift=None,
        headcount_saving=None, business_impact=impact, country=country, team=team,
    )


class TestPureAggregates:
    def test_metrics(self):
        projects = [
            _p("a", "IN_PROGRESS", 1_000_000, impact=9, country="DE", team="Core"),
            _p("b", "UAT", 500_000, impact=8, country="DE"),
            _p("c", "DONE", None, team="Web"),
            _p("d", "PLANNING", 2_000_000),
        ]
        m = compute_dashboard_metrics(projects)
        assert m["totalProjects"] == 4
        assert m["activeProjects"] == 2
        assert m["completedProjects"] == 1
        assert m["plannedProjects"] == 1
        assert m["highImpactProjects"] == 2
        assert m["totalProjectValue"] == 3_500_000
        assert m["totalProjectValueDisplay"] == "$3.5M"
        assert m["countries"] == ["DE"]
        assert m["teams"] == ["Core", "Web"]

    def test_status_breakdown_omits_empty_rows(self):
        rows = compute_status_breakdown([_p("a", "DONE", 10), _p("b", "DONE", 5), _p("c", "UAT")])
        assert rows == [
            {"status": "UAT", "count": 1, "value": 0},
            {"status": "DONE", "count": 2, "value": 15},
        ]

    def test_strategic_projects_top_by_value(self):
        projects = [_p(str(v), "IN_PROGRESS", v) for v in (5, 50, 20, 1, 9, 30, 7)]
        projects.append(_p("done", "DONE", 999))
        top = compute_strategic_projects(projects, "ACTIVE", limit=3)
        assert [p.name for p in top] == ["50", "30", "20"]
        assert [p.name for p in compute_strategic_projects(projects, "completed")] == ["done"]

    def test_strategic_mode_validated(self):
        with pytest.raises(ValidationError):
            compute_strategic_projects([], "EVERYTHING")


class TestDashboardApi:
    def _create(self, client, **data):
        res = client.post("/api/v1/projects", json=data)
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]

    def test_full_payload(self, client):
        soon = (date.today() + timedelta(days=10)).isoformat()
        late = (date.today() - timedelta(days=3)).isoformat()
        self._create(client, name="Quick", status="PLANNING", businessImpact=9, techEffort=2,
                     endDate=soon, projectValue=100)
        self._create(client, name="Heavy", status="IN_PROGRESS", businessImpact=9, techEffort=9,
                     endDate=late)
        self._create(client, name="Shipped", status="DONE", projectValue=300)

        res = client.get("/api/v1/dashboard")
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["metrics"]["totalProjects"] == 3
        assert [p["name"] for p in data["matrix"]["Quick Wins"]] == ["Quick"]
        assert [p["name"] for p in data["matrix"]["Major Projects"]] == ["Heavy"]
        assert data["matrix"]["Fill-ins"] == []
        assert [p["name"] for p in data["upcomingDeadlines"]] == ["Quick"]
        assert data["upcomingDeadlines"][0]["daysRemaining"] == 10
        assert [p["name"] for p in data["overdueProjects"]] == ["Heavy"]

    def test_stats_filter_narrows_metrics_only(self, client):
        self._create(client, name="A", status="DONE")
        self._create(client, name="B", status="IN_PROGRESS")
        data = client.get("/api/v1/dashboard?statsFilter=DONE").get_json()["data"]
        assert data["statsFilter"] == "DONE"
        assert data["metrics"]["totalProjects"] == 1
        assert sum(r["count"] for r in data["statusBreakdown"]) == 2

    def test_invalid_stats_filter(self, client):
        res = client.get("/api/v1/dashboard?statsFilter=NOPE")
        assert res.status_code == 400
        assert res.get_json()["success"] is False

    def test_negative_window_rejected(self, client):
        assert client.get("/api/v1/dashboard?windowDays=-1").status_code == 400
