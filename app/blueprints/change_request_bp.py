"""
Project Portfolio Manager
Change request blueprint.

Endpoints summary:
    CR   /api/v1/projects/<pid>/change-requests      GET (+ summary), POST
         /api/v1/change-requests/<id>                GET, PUT, PATCH, DELETE
         /api/v1/change-requests/<id>/decision       POST  { decision: APPROVED | REJECTED }
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import json_body, ok, register_error_handlers
from app.middleware.jwt_auth import current_user_id
from app.services import change_request_service as cr_service
from app.services.project_service import get_project
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

change_request_bp = Blueprint("change_requests", __name__, url_prefix="/api/v1")
register_error_handlers(change_request_bp)


@change_request_bp.route("/projects/<int:pid>/change-requests", methods=["GET"])
def list_change_requests(pid):
    """Pending first, then approved, then rejected; newest date first within each."""
    get_project(pid)
    items = cr_service.list_change_requests(pid)
    return jsonify({
        "success": True,
        "data": [c.to_dict() for c in items],
        "count": len(items),
        "summary": cr_service.summarize(items),
    }), 200


@change_request_bp.route("/projects/<int:pid>/change-requests", methods=["POST"])
def create_change_request(pid):
    get_project(pid)
    cr = cr_service.create_change_request(pid, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(cr.to_dict(), 201, message="Change request submitted")


@change_request_bp.route("/change-requests/<int:cr_id>", methods=["GET"])
def get_change_request(cr_id):
    return ok(cr_service.get_change_request(cr_id).to_dict())


@change_request_bp.route("/change-requests/<int:cr_id>", methods=["PUT", "PATCH"])
def update_change_request(cr_id):
    cr = cr_service.get_change_request(cr_id)
    cr_service.update_change_request(cr, json_body(), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(cr.to_dict())


@change_request_bp.route("/change-requests/<int:cr_id>/decision", methods=["POST"])
def decide_change_request(cr_id):
    cr = cr_service.get_change_request(cr_id)
    cr_service.decide_change_request(cr, json_body().get("decision"), user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return ok(cr.to_dict(), message=f"Change request {cr.status.lower()}")


@change_request_bp.route("/change-requests/<int:cr_id>", methods=["DELETE"])
def delete_change_request(cr_id):
    cr = cr_service.get_change_request(cr_id)
    title = cr.title
    cr_service.delete_change_request(cr, user_id=current_user_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True, "message": f"Change request '{title}' deleted"}), 200
