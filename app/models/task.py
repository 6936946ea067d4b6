"""
Task model — project work items shown on the Kanban board.

Board placement is (column_id, position): within one project and column,
positions form 0..n-1 once a reorder has been persisted.

Dependencies are a self-referential many-to-many (``task_dependencies``):
a row (task_id, depends_on_id) means *task_id* cannot finish before
*depends_on_id*.
"""

from app.models import db
from app.models.base import TimestampedModel, iso
from app.utils.classification import priority_color, status_color

TASK_STATUSES = ("TODO", "IN_PROGRESS", "UAT", "DONE", "BLOCKED")
TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")

TASK_SCORE_MIN = 1
TASK_SCORE_MAX = 5


task_dependencies = db.Table(
    "task_dependencies",
    db.Column(
        "task_id", db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True,
    ),
    db.Column(
        "depends_on_id", db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Task(TimestampedModel):
    __tablename__ = "tasks"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="TODO", index=True)
    priority = db.Column(db.String(20), nullable=False, default="MEDIUM")
    milestone = db.Column(db.String(200))

    impact = db.Column(db.Integer, nullable=False, default=3, comment="1-5 scale")
    effort = db.Column(db.Integer, nullable=False, default=3, comment="1-5 scale")

    # Kanban placement
    column_id = db.Column(db.String(50), nullable=False, default="todo")
    position = db.Column(db.Integer, nullable=False, default=0)

    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    eta = db.Column(db.Date, comment="Expected completion; drives overdue")
    due_date = db.Column(db.Date)

    assignee_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
    )

    project = db.relationship("Project", back_populates="tasks")
    assignee = db.relationship("User", foreign_keys=[assignee_id])
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    dependencies = db.relationship(
        "Task",
        secondary=task_dependencies,
        primaryjoin=lambda: Task.id == task_dependencies.c.task_id,
        secondaryjoin=lambda: Task.id == task_dependencies.c.depends_on_id,
        backref=db.backref("dependents", lazy="select"),
        lazy="select",
    )

    __table_args__ = (
        db.Index("ix_tasks_project_column_position", "project_id", "column_id", "position"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "statusColor": status_color(self.status),
            "priorityColor": priority_color(self.priority),
            "milestone": self.milestone,
            "impact": self.impact,
            "effort": self.effort,
            "columnId": self.column_id,
            "position": self.position,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "eta": iso(self.eta),
            "dueDate": iso(self.due_date),
            "assigneeId": self.assignee_id,
            "assignee": self.assignee.to_summary() if self.assignee else None,
            "createdById": self.created_by_id,
            "dependencyIds": sorted(t.id for t in self.dependencies),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]} [{self.column_id}#{self.position}]>"
