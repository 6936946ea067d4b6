"""
Activity log — append-only history of changes within a project.

Rows are written by ``app.services.activity_service.log_activity`` and are
never updated; the only other operation is listing.
"""

from datetime import datetime, timezone

from app.models import db
from app.models.base import iso


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(300), nullable=False)
    field = db.Column(db.String(100))
    old_value = db.Column(db.Text)
    new_value = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc), index=True,
    )

    project = db.relationship("Project", back_populates="activity_logs")
    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "taskId": self.task_id,
            "userId": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "action": self.action,
            "field": self.field,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "createdAt": iso(self.created_at),
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action[:40]}>"
