"""
Project Portfolio Manager
Risk register blueprint.

Endpoints summary:
    RISK   /api/v1/projects/<pid>/risks             GET (?status&severity), POST
           /api/v1/projects/<pid>/risks/summary     GET
           /api/v1/projects/<pid>/risks/heatmap     GET   (5×5 probability × impact)
           /api/v1/risks/<id>                       GET, PUT, PATCH, DELETE
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, listing, ok, register_error_handlers
from app.middleware.jwt_auth import current_user_id
from app.services import risk_service
from app.services.project_service import get_project
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

risk_bp = Blueprint("risks", __name__, url_prefix="/api/v1")
register_error_handlers(risk_bp)


@risk_bp.route("/projects/<int:pid>/risks", methods=["GET"])
def list_risks(pid):
    get_project(pid)
    risks = risk_service.list_risks(
        pid, status=request.args.get("status"), severity=request.args.get("severity"),
    )
    return listing(risks)


@risk_bp.route("/projects/<int:pid>/risks", methods=["POST"])
def create_risk(pid):
    get_project(pid)
    risk = risk_service.create_risk(pid, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(risk.to_dict(), 201, message="Risk created successfully")


@risk_bp.route("/projects/<int:pid>/risks/summary", methods=["GET"])
def risk_summary(pid):
    get_project(pid)
    return ok(risk_service.compute_risk_summary(risk_service.list_risks(pid)))


@risk_bp.route("/projects/<int:pid>/risks/heatmap", methods=["GET"])
def risk_heatmap(pid):
    get_project(pid)
    return ok(risk_service.compute_heatmap(risk_service.list_risks(pid)))


@risk_bp.route("/risks/<int:risk_id>", methods=["GET"])
def get_risk(risk_id):
    return ok(risk_service.get_risk(risk_id).to_dict())


@risk_bp.route("/risks/<int:risk_id>", methods=["PUT", "PATCH"])
def update_risk(risk_id):
    risk = risk_service.get_risk(risk_id)
    risk_service.update_risk(risk, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(risk.to_dict())


@risk_bp.route("/risks/<int:risk_id>", methods=["DELETE"])
def delete_risk(risk_id):
    risk = risk_service.get_risk(risk_id)
    title = risk.title
    risk_service.delete_risk(risk, user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True, "message": f"Risk '{title}' deleted"}), 200
