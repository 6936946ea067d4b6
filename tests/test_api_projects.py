"""
Project Portfolio Manager
Tests — Project API.

Covers:
    - Project CRUD + defaults + enumerated partial updates
    - Cascade delete (no orphan rows)
    - Health endpoint
    - Metrics + activity log
"""

from datetime import date, timedelta

from app.models import db
from app.models.activity import ActivityLog
from app.models.change_request import ChangeRequest, change_request_tasks
from app.models.project import Project, ProjectMetric
from app.models.risk import Risk
from app.models.task import Task, task_dependencies


def _count(table_or_model):
    if hasattr(table_or_model, "query"):
        return table_or_model.query.count()
    return db.session.execute(db.select(db.func.count()).select_from(table_or_model)).scalar()


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectCRUD:
    def test_create_applies_defaults(self, client):
        res = client.post("/api/v1/projects", json={"name": "  CRM Migration  "})
        assert res.status_code == 201
        body = res.get_json()
        assert body["success"] is True
        data = body["data"]
        assert data["name"] == "CRM Migration"
        assert data["status"] == "PLANNING"
        assert data["priority"] == "MEDIUM"
        assert data["businessImpact"] == 5
        assert data["techEffort"] == 5
        assert data["statusColor"] == "bg-gray-100 text-gray-800"

    def test_create_requires_name(self, client):
        res = client.post("/api/v1/projects", json={"description": "no name"})
        assert res.status_code == 400
        body = res.get_json()
        assert body["success"] is False
        assert body["error"] == "Project name is required"
        assert body["code"] == "ERR_VALIDATION_REQUIRED"

    def test_create_rejects_out_of_range_scores(self, client):
        res = client.post("/api/v1/projects", json={"name": "X", "businessImpact": 11})
        assert res.status_code == 400
        assert "businessImpact" in res.get_json()["details"]

    def test_create_rejects_bad_url_and_date(self, client):
        assert client.post("/api/v1/projects", json={
            "name": "X", "jiraUrl": "javascript:alert(1)",
        }).status_code == 400
        assert client.post("/api/v1/projects", json={
            "name": "X", "startDate": "31/12/2025",
        }).status_code == 400

    def test_end_date_before_start_rejected(self, client):
        res = client.post("/api/v1/projects", json={
            "name": "X", "startDate": "2025-05-01", "endDate": "2025-04-01",
        })
        assert res.status_code == 400

    def test_session_user_becomes_manager(self, client, user, auth_headers):
        res = client.post("/api/v1/projects", json={"name": "Mine"}, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["data"]["managerId"] == user["id"]
        assert res.get_json()["data"]["manager"]["username"] == "alice"

    def test_list_filters_and_search(self, client):
        client.post("/api/v1/projects", json={"name": "Data Lake", "status": "IN_PROGRESS"})
        client.post("/api/v1/projects", json={"name": "Mobile App", "description": "lake view"})
        client.post("/api/v1/projects", json={"name": "Payroll", "priority": "HIGH"})

        res = client.get("/api/v1/projects")
        assert res.get_json()["count"] == 3

        res = client.get("/api/v1/projects?search=LAKE")
        assert {p["name"] for p in res.get_json()["data"]} == {"Data Lake", "Mobile App"}

        res = client.get("/api/v1/projects?status=in_progress")
        assert [p["name"] for p in res.get_json()["data"]] == ["Data Lake"]

        assert client.get("/api/v1/projects?status=SHELVED").status_code == 400

    def test_get_with_includes(self, client, project, make_task):
        make_task("First")
        res = client.get(f"/api/v1/projects/{project['id']}?include=tasks,activityLogs")
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert [t["title"] for t in data["tasks"]] == ["First"]
        assert data["activityLogs"][0]["action"] == "Created task First"
        assert "risks" not in data

    def test_get_unknown_include(self, client, project):
        res = client.get(f"/api/v1/projects/{project['id']}?include=secrets")
        assert res.status_code == 400

    def test_get_missing_project(self, client):
        res = client.get("/api/v1/projects/999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_partial_update(self, client, project):
        res = client.patch(f"/api/v1/projects/{project['id']}", json={
            "status": "UAT", "techEffort": 7,
        })
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["status"] == "UAT"
        assert data["techEffort"] == 7
        assert data["name"] == project["name"]

        entries = ActivityLog.query.filter_by(project_id=project["id"], field="status").all()
        assert [(e.old_value, e.new_value) for e in entries] == [("IN_PROGRESS", "UAT")]

    def test_update_rejects_unknown_fields(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}", json={
            "status": "DONE", "id": 77, "createdAt": "2020-01-01",
        })
        assert res.status_code == 400
        body = res.get_json()
        assert set(body["details"]) == {"id", "createdAt"}
        # Nothing was applied
        assert db.session.get(Project, project["id"]).status == "IN_PROGRESS"

    def test_update_unknown_manager(self, client, project):
        res = client.patch(f"/api/v1/projects/{project['id']}", json={"managerId": 4242})
        assert res.status_code == 400

    def test_non_json_body_rejected(self, client):
        res = client.post("/api/v1/projects", data="name=x", content_type="text/plain")
        assert res.status_code == 415
        assert res.get_json()["code"] == "ERR_UNSUPPORTED_MEDIA_TYPE"

    def test_unknown_route_and_method(self, client, project):
        res = client.get("/api/v1/portfolios")
        assert res.status_code == 404
        assert res.get_json()["success"] is False
        res = client.post(f"/api/v1/projects/{project['id']}/board", json={})
        assert res.status_code == 405
        assert res.get_json()["code"] == "ERR_METHOD_NOT_ALLOWED"


# ═════════════════════════════════════════════════════════════════════════════
# CASCADE DELETE
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectDelete:
    def test_delete_leaves_no_orphans(self, client, project, make_task):
        pid = project["id"]
        first = make_task("A")
        second = make_task("B", dependencyIds=[first["id"]])
        client.post(f"/api/v1/projects/{pid}/risks", json={"title": "R", "severity": "HIGH"})
        client.post(f"/api/v1/projects/{pid}/change-requests", json={
            "title": "CR", "description": "scope", "linkedTaskIds": [second["id"]],
        })
        client.post(f"/api/v1/projects/{pid}/metrics", json={"name": "NPS", "value": 42})

        other = client.post("/api/v1/projects", json={"name": "Survivor"}).get_json()["data"]
        make_task("Keep", project_id=other["id"])

        assert _count(task_dependencies) == 1
        assert _count(change_request_tasks) == 1

        res = client.delete(f"/api/v1/projects/{pid}")
        assert res.status_code == 200
        body = res.get_json()
        assert body["success"] is True
        assert body["deleted"]["tasks"] == 2

        db.session.expire_all()
        assert db.session.get(Project, pid) is None
        for model in (Task, Risk, ChangeRequest, ProjectMetric, ActivityLog):
            assert model.query.filter_by(project_id=pid).count() == 0
        assert _count(task_dependencies) == 0
        assert _count(change_request_tasks) == 0

        assert Task.query.filter_by(project_id=other["id"]).count() == 1
        assert client.get(f"/api/v1/projects/{other['id']}").status_code == 200

    def test_delete_missing(self, client):
        assert client.delete("/api/v1/projects/12345").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# HEALTH / BOARD
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectHealthApi:
    def test_no_signal_returns_null(self, client, project):
        res = client.get(f"/api/v1/projects/{project['id']}/health")
        assert res.status_code == 200
        assert res.get_json()["data"] is None

    def test_red_when_forty_percent_overdue(self, client, project, make_task):
        past = (date.today() - timedelta(days=2)).isoformat()
        for i in range(4):
            make_task(f"late {i}", eta=past)
        for i in range(6):
            make_task(f"fine {i}")
        data = client.get(f"/api/v1/projects/{project['id']}/health").get_json()["data"]
        assert data["status"] == "red"
        assert data["overdueTasksPercentage"] == 40.0

    def test_exclude_closed_risks_flag(self, client, project):
        pid = project["id"]
        for _ in range(3):
            client.post(f"/api/v1/projects/{pid}/risks", json={
                "title": "Old", "severity": "CRITICAL", "status": "CLOSED",
            })
        assert client.get(f"/api/v1/projects/{pid}/health").get_json()["data"]["status"] == "red"
        data = client.get(f"/api/v1/projects/{pid}/health?excludeClosedRisks=true").get_json()["data"]
        assert data["status"] == "green"

    def test_board_lists_every_column(self, client, project, make_task):
        make_task("Todo")
        make_task("Done", status="DONE")
        res = client.get(f"/api/v1/projects/{project['id']}/board")
        columns = res.get_json()["data"]
        assert [c["id"] for c in columns] == ["todo", "in_progress", "uat", "done", "blocked"]
        assert [t["title"] for t in columns[0]["tasks"]] == ["Todo"]
        assert [t["title"] for t in columns[3]["tasks"]] == ["Done"]


# ═════════════════════════════════════════════════════════════════════════════
# METRICS / ACTIVITY
# ═════════════════════════════════════════════════════════════════════════════

class TestMetricsAndActivity:
    def test_record_and_list_metrics(self, client, project):
        pid = project["id"]
        res = client.post(f"/api/v1/projects/{pid}/metrics", json={
            "name": "Cost savings", "value": 12000, "unit": "USD", "category": "financial",
            "recordedAt": "2025-01-31",
        })
        assert res.status_code == 201
        metric = res.get_json()["data"]
        assert metric["category"] == "FINANCIAL"
        assert metric["recordedAt"].startswith("2025-01-31")

        res = client.get(f"/api/v1/projects/{pid}/metrics?category=FINANCIAL")
        assert res.get_json()["count"] == 1

    def test_metric_requires_value(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/metrics", json={"name": "NPS"})
        assert res.status_code == 400

    def test_activity_newest_first_and_task_filter(self, client, project, make_task):
        pid = project["id"]
        task = make_task("Write docs")
        client.patch(f"/api/v1/tasks/{task['id']}", json={"priority": "HIGH"})
        res = client.post(f"/api/v1/projects/{pid}/activity", json={
            "action": "Commented", "taskId": task["id"], "newValue": "LGTM",
        })
        assert res.status_code == 201

        entries = client.get(f"/api/v1/projects/{pid}/activity").get_json()["data"]
        assert entries[0]["action"] == "Commented"
        assert entries[-1]["action"] == "Created project"

        only_task = client.get(f"/api/v1/projects/{pid}/activity?taskId={task['id']}")
        actions = [e["action"] for e in only_task.get_json()["data"]]
        assert actions == ["Commented", "Updated task priority", "Created task Write docs"]

    def test_activity_rejects_foreign_task(self, client, project, make_task):
        other = client.post("/api/v1/projects", json={"name": "Other"}).get_json()["data"]
        task = make_task("Elsewhere", project_id=other["id"])
        res = client.post(f"/api/v1/projects/{project['id']}/activity", json={
            "action": "Note", "taskId": task["id"],
        })
        assert res.status_code == 400
