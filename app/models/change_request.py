"""
Change request model.

Lifecycle: PENDING → APPROVED | REJECTED. Decided requests are terminal.
Linked tasks must belong to the same project (enforced in the service).
"""

from datetime import date

from app.models import db
from app.models.base import TimestampedModel, iso

CR_STATUSES = ("PENDING", "APPROVED", "REJECTED")

CR_TRANSITIONS = {
    "PENDING": {"APPROVED", "REJECTED"},
    "APPROVED": set(),
    "REJECTED": set(),
}

# Listing order: pending first, then approved, then rejected
CR_STATUS_ORDER = {"PENDING": 0, "APPROVED": 1, "REJECTED": 2}


change_request_tasks = db.Table(
    "change_request_tasks",
    db.Column(
        "change_request_id", db.Integer,
        db.ForeignKey("change_requests.id", ondelete="CASCADE"), primary_key=True,
    ),
    db.Column(
        "task_id", db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True,
    ),
)


def validate_cr_transition(old_status, new_status):
    """Return True if the ChangeRequest status transition is valid."""
    return new_status in CR_TRANSITIONS.get(old_status, set())


class ChangeRequest(TimestampedModel):
    __tablename__ = "change_requests"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False)
    impact = db.Column(db.Text, comment="Free-text impact assessment")
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    date = db.Column(db.Date, nullable=False, default=date.today)
    requested_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    project = db.relationship("Project", back_populates="change_requests")
    requested_by = db.relationship("User", foreign_keys=[requested_by_id])
    linked_tasks = db.relationship("Task", secondary=change_request_tasks, lazy="select")

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "status": self.status,
            "date": iso(self.date),
            "requestedById": self.requested_by_id,
            "requestedBy": self.requested_by.to_summary() if self.requested_by else None,
            "linkedTaskIds": sorted(t.id for t in self.linked_tasks),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ChangeRequest {self.id}: {self.title[:40]} [{self.status}]>"
