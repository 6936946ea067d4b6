"""
Risk register model.

Risk score = probability (1-5) × impact (1-5), range 1–25, stored on the
row and recomputed by ``recalculate_score`` whenever either factor changes.
Severity/likelihood are the qualitative labels captured by the UI; they feed
the project-health "high risk" count but never the score.
"""

from app.models import db
from app.models.base import TimestampedModel, iso
from app.utils.classification import calculate_risk_score, risk_level as level_for_score


# ── Constants ────────────────────────────────────────────────────────────────

RISK_CATEGORIES = ("TECHNICAL", "BUSINESS", "RESOURCE", "SCHEDULE", "QUALITY", "EXTERNAL")
RISK_SEVERITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
RISK_LIKELIHOODS = ("LOW", "MEDIUM", "HIGH")
RISK_STATUSES = ("IDENTIFIED", "ASSESSED", "MITIGATED", "CLOSED")

HIGH_SEVERITIES = frozenset({"HIGH", "CRITICAL"})

RISK_FACTOR_MIN = 1
RISK_FACTOR_MAX = 5


class Risk(TimestampedModel):
    """A risk identified and tracked for a project."""

    __tablename__ = "risks"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(20), nullable=False, default="TECHNICAL")
    severity = db.Column(db.String(20), nullable=False, default="MEDIUM", index=True)
    likelihood = db.Column(db.String(20), nullable=False, default="MEDIUM")
    probability = db.Column(db.Integer, nullable=False, default=3, comment="1-5 scale")
    impact = db.Column(db.Integer, nullable=False, default=3, comment="1-5 scale")
    risk_score = db.Column(db.Integer, nullable=False, default=9, comment="probability × impact")
    status = db.Column(db.String(20), nullable=False, default="IDENTIFIED", index=True)
    mitigation_plan = db.Column(db.Text)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assessor_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    project = db.relationship("Project", back_populates="risks")
    owner = db.relationship("User", foreign_keys=[owner_id])
    assessor = db.relationship("User", foreign_keys=[assessor_id])

    def recalculate_score(self):
        self.risk_score = calculate_risk_score(self.probability, self.impact)

    @property
    def risk_level(self):
        return level_for_score(self.risk_score or 0)

    @property
    def is_high(self):
        return self.severity in HIGH_SEVERITIES

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "severity": self.severity,
            "likelihood": self.likelihood,
            "probability": self.probability,
            "impact": self.impact,
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level,
            "status": self.status,
            "mitigationPlan": self.mitigation_plan,
            "ownerId": self.owner_id,
            "owner": self.owner.to_summary() if self.owner else None,
            "assessorId": self.assessor_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Risk {self.id}: {self.title[:40]} score={self.risk_score}>"
