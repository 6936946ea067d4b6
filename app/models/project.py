"""
Project domain models.

Models:
    - Project: root aggregate; owns tasks, risks, change requests,
      activity logs and metrics
    - ProjectMetric: recorded KPI values for a project

Deletion of a Project cascades to every owned row, both through the ORM
relationships below and through ``ondelete="CASCADE"`` on the child FKs.
"""

from datetime import datetime, timezone

from app.models import db
from app.models.base import TimestampedModel, iso
from app.utils.classification import priority_color, status_color


# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = ("PLANNING", "IN_PROGRESS", "UAT", "DONE", "CANCELLED")
PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
METRIC_CATEGORIES = ("FINANCIAL", "PERFORMANCE", "QUALITY", "TIMELINE", "RESOURCE")

SCORE_MIN = 1
SCORE_MAX = 10


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT
# ═══════════════════════════════════════════════════════════════════════════

class Project(TimestampedModel):
    """A portfolio project with business-impact / tech-effort scoring."""

    __tablename__ = "projects"

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="PLANNING", index=True)
    priority = db.Column(db.String(20), nullable=False, default="MEDIUM")

    business_impact = db.Column(db.Integer, nullable=False, default=5, comment="1-10 scale")
    tech_effort = db.Column(db.Integer, nullable=False, default=5, comment="1-10 scale")
    revenue_uplift = db.Column(db.Float, comment="Expected revenue uplift (USD)")
    headcount_saving = db.Column(db.Float, comment="Expected FTE saving")
    project_value = db.Column(db.Float, comment="Total project value (USD)")

    team = db.Column(db.String(100))
    country = db.Column(db.String(100))
    pic = db.Column(db.String(100), comment="Person in charge")
    jira_url = db.Column(db.String(500))
    wiki_url = db.Column(db.String(500))

    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date, comment="Doubles as the project ETA")

    manager_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    manager = db.relationship("User", foreign_keys=[manager_id])

    tasks = db.relationship(
        "Task", back_populates="project", cascade="all, delete-orphan",
        passive_deletes=True, order_by="Task.position",
    )
    risks = db.relationship(
        "Risk", back_populates="project", cascade="all, delete-orphan", passive_deletes=True,
    )
    change_requests = db.relationship(
        "ChangeRequest", back_populates="project", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    activity_logs = db.relationship(
        "ActivityLog", back_populates="project", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    metrics = db.relationship(
        "ProjectMetric", back_populates="project", cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self, include=()):
        """Serialise to the camelCase wire format.

        Args:
            include: iterable of child collections to embed; any of
                ``tasks``, ``risks``, ``changeRequests``, ``activityLogs``,
                ``metrics``.
        """
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "statusColor": status_color(self.status),
            "priorityColor": priority_color(self.priority),
            "businessImpact": self.business_impact,
            "techEffort": self.tech_effort,
            "revenueUplift": self.revenue_uplift,
            "headcountSaving": self.headcount_saving,
            "projectValue": self.project_value,
            "team": self.team,
            "country": self.country,
            "pic": self.pic,
            "jiraUrl": self.jira_url,
            "wikiUrl": self.wiki_url,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "managerId": self.manager_id,
            "manager": self.manager.to_summary() if self.manager else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if "tasks" in include:
            data["tasks"] = [t.to_dict() for t in self.tasks]
        if "risks" in include:
            data["risks"] = [r.to_dict() for r in self.risks]
        if "changeRequests" in include:
            data["changeRequests"] = [c.to_dict() for c in self.change_requests]
        if "activityLogs" in include:
            data["activityLogs"] = [
                a.to_dict() for a in sorted(
                    self.activity_logs, key=lambda a: (a.created_at, a.id), reverse=True,
                )
            ]
        if "metrics" in include:
            data["metrics"] = [m.to_dict() for m in self.metrics]
        return data

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT METRIC
# ═══════════════════════════════════════════════════════════════════════════

class ProjectMetric(TimestampedModel):
    """A single recorded KPI value (e.g. "Cost savings" = 12000 USD)."""

    __tablename__ = "project_metrics"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    value = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(50))
    category = db.Column(db.String(20), nullable=False, default="PERFORMANCE")
    recorded_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project", back_populates="metrics")

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "category": self.category,
            "recordedAt": iso(self.recorded_at),
            "createdAt": iso(self.created_at),
        }

    def __repr__(self):
        return f"<ProjectMetric {self.id}: {self.name}={self.value}>"
