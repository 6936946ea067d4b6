"""Risk register service — CRUD with auto-scoring, summary, heatmap.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Scoring: risk_score = probability × impact, recomputed whenever either
factor changes.
"""
import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.risk import (
    RISK_CATEGORIES,
    RISK_FACTOR_MAX,
    RISK_FACTOR_MIN,
    RISK_LIKELIHOODS,
    RISK_SEVERITIES,
    RISK_STATUSES,
    Risk,
)
from app.services import activity_service
from app.services.helpers.field_updates import (
    Field,
    apply_fields,
    enum,
    foreign_key,
    int_range,
    text,
)
from app.services.user_service import require_user
from app.utils.classification import RISK_LEVELS

logger = logging.getLogger(__name__)

RISK_FIELDS = {
    "title": Field("title", text(max_len=300, required=True)),
    "description": Field("description", text()),
    "category": Field("category", enum(RISK_CATEGORIES)),
    "severity": Field("severity", enum(RISK_SEVERITIES)),
    "likelihood": Field("likelihood", enum(RISK_LIKELIHOODS)),
    "probability": Field("probability", int_range(RISK_FACTOR_MIN, RISK_FACTOR_MAX)),
    "impact": Field("impact", int_range(RISK_FACTOR_MIN, RISK_FACTOR_MAX)),
    "status": Field("status", enum(RISK_STATUSES)),
    "mitigationPlan": Field("mitigation_plan", text()),
    "ownerId": Field("owner_id", foreign_key(require_user)),
    "assessorId": Field("assessor_id", foreign_key(require_user)),
}

RISK_UPDATE_FIELDS = RISK_FIELDS

HEATMAP_LABELS = {
    "probability": ["Very Low", "Low", "Medium", "High", "Very High"],
    "impact": ["Negligible", "Minor", "Moderate", "Major", "Severe"],
}


def get_risk(risk_id):
    risk = db.session.get(Risk, risk_id)
    if risk is None:
        raise NotFoundError("Risk", risk_id)
    return risk


def list_risks(project_id, status=None, severity=None):
    """Highest score first."""
    q = Risk.query.filter_by(project_id=project_id)
    if status:
        q = q.filter_by(status=enum(RISK_STATUSES)("status", status))
    if severity:
        q = q.filter_by(severity=enum(RISK_SEVERITIES)("severity", severity))
    return q.order_by(Risk.risk_score.desc(), Risk.id).all()


def create_risk(project_id, data, user_id=None):
    """Create a risk with auto-scoring.

    Returns:
        Risk instance (already flushed).
    """
    if not isinstance(data, dict) or not (data.get("title") or "").strip():
        raise ValidationError("Risk title is required", details={"title": "required"})

    risk = Risk(
        project_id=project_id,
        category="TECHNICAL",
        severity="MEDIUM",
        likelihood="MEDIUM",
        probability=3,
        impact=3,
        status="IDENTIFIED",
    )
    apply_fields(risk, data, RISK_FIELDS)
    risk.recalculate_score()
    db.session.add(risk)
    db.session.flush()

    activity_service.log_activity(
        project_id, f"Identified risk {risk.title}", user_id=user_id,
        field="riskScore", new_value=risk.risk_score,
    )
    if risk.is_high:
        logger.info("High risk identified id=%s project=%s severity=%s",
                    risk.id, project_id, risk.severity)
    return risk


def update_risk(risk, data, user_id=None):
    """Update a risk, recalculating the score if probability/impact changed."""
    old_score = risk.risk_score
    changes = apply_fields(risk, data, RISK_UPDATE_FIELDS)
    risk.recalculate_score()
    if risk.risk_score != old_score:
        changes.append(("riskScore", old_score, risk.risk_score))
    activity_service.log_field_changes(risk.project_id, changes, user_id=user_id, subject="risk")
    db.session.flush()
    return risk


def delete_risk(risk, user_id=None):
    project_id, title = risk.project_id, risk.title
    db.session.delete(risk)
    activity_service.log_activity(project_id, f"Deleted risk {title}", user_id=user_id)
    db.session.flush()


def compute_risk_summary(risks):
    """Counts per severity, status and level, plus the average score."""
    risks = list(risks)
    by_severity = {s: 0 for s in RISK_SEVERITIES}
    by_status = {s: 0 for s in RISK_STATUSES}
    by_level = {lvl: 0 for lvl in RISK_LEVELS}
    for r in risks:
        by_severity[r.severity] = by_severity.get(r.severity, 0) + 1
        by_status[r.status] = by_status.get(r.status, 0) + 1
        by_level[r.risk_level] += 1
    return {
        "total": len(risks),
        "open": sum(1 for r in risks if r.status != "CLOSED"),
        "bySeverity": by_severity,
        "byStatus": by_status,
        "byLevel": by_level,
        "averageScore": round(sum(r.risk_score for r in risks) / len(risks), 2) if risks else 0,
    }


def compute_heatmap(risks):
    """5×5 probability × impact matrix of non-closed risks.

    ``matrix[p-1][i-1]`` holds the risks with probability p and impact i.
    """
    matrix = [[[] for _ in range(5)] for _ in range(5)]
    for r in risks:
        if r.status == "CLOSED":
            continue
        p = max(1, min(5, r.probability)) - 1
        i = max(1, min(5, r.impact)) - 1
        matrix[p][i].append({
            "id": r.id,
            "title": r.title,
            "riskScore": r.risk_score,
            "riskLevel": r.risk_level,
        })
    return {"matrix": matrix, "labels": HEATMAP_LABELS}
