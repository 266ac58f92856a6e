"""
Assignment Blueprint — mapping branches to branch representatives.

Endpoints:
    GET    /api/v1/assignments            — {branch_id: [assignment, ...]}
    POST   /api/v1/assignments            — {"user_id", "branch_id"}
    DELETE /api/v1/assignments            — {"user_id", "branch_id"}
    GET    /api/v1/assignments/branches   — branches with BH counts (category, search, location)
"""

import logging

from flask import Blueprint, jsonify, request

from branchvisit.auth import current_actor, require_role
from branchvisit.models.user import REVIEWER_ROLES
from branchvisit.services import assignment_service
from branchvisit.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

assignment_bp = Blueprint("assignment", __name__, url_prefix="/api/v1/assignments")
register_error_handlers(assignment_bp, logger)


def _pair():
    """(user_id, branch_id, err_response) from the JSON body."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return None, None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    user_id = str(data.get("user_id") or "").strip()
    branch_id = str(data.get("branch_id") or "").strip()
    missing = [name for name, value in (("user_id", user_id), ("branch_id", branch_id)) if not value]
    if missing:
        return None, None, api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} required")
    return user_id, branch_id, None


@assignment_bp.route("", methods=["GET"])
@require_role(*REVIEWER_ROLES)
def list_assignments():
    return jsonify(assignment_service.list_assignments_by_branch()), 200


@assignment_bp.route("", methods=["POST"])
@require_role(*REVIEWER_ROLES)
def assign():
    user_id, branch_id, err = _pair()
    if err:
        return err
    assignment = assignment_service.assign_branch(current_actor(), user_id, branch_id)
    return jsonify(assignment.to_dict()), 201


@assignment_bp.route("", methods=["DELETE"])
@require_role(*REVIEWER_ROLES)
def unassign():
    user_id, branch_id, err = _pair()
    if err:
        return err
    return jsonify(assignment_service.unassign_branch(current_actor(), user_id, branch_id)), 200


@assignment_bp.route("/branches", methods=["GET"])
@require_role(*REVIEWER_ROLES)
def branches_with_counts():
    items = assignment_service.list_branches_with_counts(
        category=request.args.get("category"),
        search=request.args.get("search"),
        location=request.args.get("location"),
    )
    return jsonify({"items": items, "total": len(items)}), 200
