"""
Visit Blueprint — branch representatives recording visits.

Endpoints:
    GET    /api/v1/branches                       — branches the actor can pick
    POST   /api/v1/visits                         — create a draft
    GET    /api/v1/visits/mine                    — own visits (filters below)
    GET    /api/v1/visits/<visit_id>              — one visit
    PATCH  /api/v1/visits/<visit_id>              — save draft changes
    POST   /api/v1/visits/<visit_id>/submit       — send for review
    DELETE /api/v1/visits/<visit_id>              — delete a draft
    GET    /api/v1/visits/<visit_id>/transitions  — actions open to the actor
    GET    /api/v1/visits/<visit_id>/history      — audit rows, oldest first

List filters (query string): status, category, search, month + year.

Layer contract:
    - No ORM calls here; all DB work goes through visit_lifecycle.
    - Service exceptions are mapped to JSON by register_error_handlers.
"""

import logging

from flask import Blueprint, jsonify, request

from branchvisit.auth import current_actor, require_auth, require_role
from branchvisit.models.user import VISIT_OWNER_ROLES
from branchvisit.models.visit import VISIT_STATUSES
from branchvisit.services import assignment_service, visit_lifecycle
from branchvisit.utils.errors import E, api_error, register_error_handlers
from branchvisit.utils.helpers import parse_month_year

logger = logging.getLogger(__name__)

visit_bp = Blueprint("visit", __name__, url_prefix="/api/v1")
register_error_handlers(visit_bp, logger)


# ── Private helpers ──────────────────────────────────────────────────────────


def _json_body():
    """Request JSON as a dict, or (None, error response)."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


def list_filters(args) -> tuple[dict, tuple | None]:
    """Shared list filters for own-visit and review listings.

    Returns (filters, err_response).
    """
    filters = {}
    status = args.get("status")
    if status:
        if status not in VISIT_STATUSES:
            return {}, api_error(
                E.VALIDATION_INVALID,
                f"status must be one of {', '.join(VISIT_STATUSES)}",
            )
        filters["status"] = status
    if args.get("month") or args.get("year"):
        try:
            filters["month"] = parse_month_year(args)
        except ValueError as exc:
            return {}, api_error(E.VALIDATION_INVALID, str(exc))
    for key in ("category", "search"):
        if args.get(key):
            filters[key] = args[key].strip()
    return filters, None


# ── Branches ─────────────────────────────────────────────────────────────────


@visit_bp.route("/branches", methods=["GET"])
@require_auth
def list_branches():
    """Branches for the visit form; BHs only see their assigned branches."""
    branches = assignment_service.list_branches_for(
        current_actor(),
        category=request.args.get("category"),
        search=request.args.get("search"),
    )
    return jsonify({"items": branches, "total": len(branches)}), 200


# ── Visits ───────────────────────────────────────────────────────────────────


@visit_bp.route("/visits", methods=["POST"])
@require_role(*VISIT_OWNER_ROLES)
def create_visit():
    data, err = _json_body()
    if err:
        return err
    visit = visit_lifecycle.create_visit(current_actor(), data)
    return jsonify(visit.to_dict()), 201


@visit_bp.route("/visits/mine", methods=["GET"])
@require_role(*VISIT_OWNER_ROLES)
def my_visits():
    filters, err = list_filters(request.args)
    if err:
        return err
    visits = visit_lifecycle.list_my_visits(current_actor(), **filters)
    return jsonify({"items": [v.to_dict() for v in visits], "total": len(visits)}), 200


@visit_bp.route("/visits/<visit_id>", methods=["GET"])
@require_auth
def get_visit(visit_id):
    actor = current_actor()
    visit = visit_lifecycle.get_visit_for(actor, visit_id)
    body = visit.to_dict()
    body["available_transitions"] = visit_lifecycle.get_available_transitions(visit, actor)
    return jsonify(body), 200


@visit_bp.route("/visits/<visit_id>", methods=["PATCH"])
@require_role(*VISIT_OWNER_ROLES)
def save_visit(visit_id):
    data, err = _json_body()
    if err:
        return err
    visit = visit_lifecycle.save_draft(current_actor(), visit_id, data)
    return jsonify(visit.to_dict()), 200


@visit_bp.route("/visits/<visit_id>/submit", methods=["POST"])
@require_role(*VISIT_OWNER_ROLES)
def submit_visit(visit_id):
    return jsonify(visit_lifecycle.submit_visit(current_actor(), visit_id)), 200


@visit_bp.route("/visits/<visit_id>", methods=["DELETE"])
@require_role(*VISIT_OWNER_ROLES)
def delete_visit(visit_id):
    return jsonify(visit_lifecycle.delete_visit(current_actor(), visit_id)), 200


@visit_bp.route("/visits/<visit_id>/transitions", methods=["GET"])
@require_auth
def visit_transitions(visit_id):
    actor = current_actor()
    visit = visit_lifecycle.get_visit_for(actor, visit_id)
    return jsonify({
        "visit_id": visit.id,
        "status": visit.status,
        "available_transitions": visit_lifecycle.get_available_transitions(visit, actor),
    }), 200


@visit_bp.route("/visits/<visit_id>/history", methods=["GET"])
@require_auth
def visit_history(visit_id):
    items = visit_lifecycle.get_visit_history(current_actor(), visit_id)
    return jsonify({"visit_id": visit_id, "items": items, "total": len(items)}), 200
