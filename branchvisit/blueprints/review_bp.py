"""
Review Blueprint — zonal heads approving or rejecting submitted visits.

Endpoints:
    GET  /api/v1/review/visits                        — review queue (default: submitted)
    POST /api/v1/review/visits/<visit_id>/approve     — approve, optional {"comment"}
    POST /api/v1/review/visits/<visit_id>/reject      — reject, optional {"comment"}
    GET  /api/v1/review/representatives               — BHs (location, search)
    GET  /api/v1/review/representatives/<user_id>     — BH detail
    GET  /api/v1/review/audit                         — audit trail (entity_type, entity_id, action, actor_id)
"""

import logging

from flask import Blueprint, jsonify, request

from branchvisit.auth import current_actor, require_role
from branchvisit.blueprints.visit_bp import list_filters
from branchvisit.models.audit import AUDIT_ENTITY_TYPES
from branchvisit.models.user import REVIEWER_ROLES
from branchvisit.services import assignment_service, store, visit_lifecycle
from branchvisit.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

review_bp = Blueprint("review", __name__, url_prefix="/api/v1/review")
register_error_handlers(review_bp, logger)

MAX_COMMENT_CHARS = 1000
MAX_AUDIT_PAGE = 200


def _review_comment():
    """Optional reviewer comment from the JSON body; returns (comment, err)."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    comment = data.get("comment")
    if comment is None:
        return None, None
    if not isinstance(comment, str):
        return None, api_error(E.VALIDATION_INVALID, "comment must be a string")
    comment = comment.strip()
    if len(comment) > MAX_COMMENT_CHARS:
        return None, api_error(
            E.VALIDATION_INVALID, f"comment must be at most {MAX_COMMENT_CHARS} characters",
        )
    return comment or None, None


@review_bp.route("/visits", methods=["GET"])
@require_role(*REVIEWER_ROLES)
def review_queue():
    filters, err = list_filters(request.args)
    if err:
        return err
    if request.args.get("user_id"):
        filters["user_id"] = request.args["user_id"]
    visits = visit_lifecycle.list_visits_for_review(current_actor(), **filters)
    return jsonify({"items": [v.to_dict() for v in visits], "total": len(visits)}), 200


@review_bp.route("/visits/<visit_id>/approve", methods=["POST"])
@require_role(*REVIEWER_ROLES)
def approve(visit_id):
    comment, err = _review_comment()
    if err:
        return err
    return jsonify(visit_lifecycle.approve_visit(current_actor(), visit_id, comment=comment)), 200


@review_bp.route("/visits/<visit_id>/reject", methods=["POST"])
@require_role(*REVIEWER_ROLES)
def reject(visit_id):
    comment, err = _review_comment()
    if err:
        return err
    return jsonify(visit_lifecycle.reject_visit(current_actor(), visit_id, comment=comment)), 200


# ── Representatives ──────────────────────────────────────────────────────────


@review_bp.route("/representatives", methods=["GET"])
@require_role(*REVIEWER_ROLES)
def representatives():
    items = assignment_service.list_representatives(
        location=request.args.get("location"),
        search=request.args.get("search"),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@review_bp.route("/representatives/<user_id>", methods=["GET"])
@require_role(*REVIEWER_ROLES)
def representative(user_id):
    return jsonify(assignment_service.representative_detail(user_id)), 200


# ── Audit trail ──────────────────────────────────────────────────────────────


@review_bp.route("/audit", methods=["GET"])
@require_role(*REVIEWER_ROLES)
def audit_trail():
    """
    Paginated audit rows, newest first.

    Query params:
        entity_type  — branch_visit | branch_assignment
        entity_id    — visit or assignment id
        action       — prefix match, e.g. "visit." or "visit.reject"
        actor_id     — acting user
        page         — default 1
        per_page     — default 50, max 200
    """
    entity_type = request.args.get("entity_type") or None
    if entity_type and entity_type not in AUDIT_ENTITY_TYPES:
        return api_error(
            E.VALIDATION_INVALID,
            f"entity_type must be one of {', '.join(sorted(AUDIT_ENTITY_TYPES))}",
        )
    page = max(1, request.args.get("page", 1, type=int))
    per_page = min(MAX_AUDIT_PAGE, max(1, request.args.get("per_page", 50, type=int)))

    result = store.unwrap(store.query_audit(
        entity_type=entity_type,
        entity_id=request.args.get("entity_id") or None,
        action=request.args.get("action") or None,
        actor_id=request.args.get("actor_id") or None,
        page=page,
        per_page=per_page,
    ))
    return jsonify({
        "items": [log.to_dict() for log in result.items],
        "total": result.total,
        "page": result.page,
        "per_page": result.per_page,
        "pages": result.pages,
    }), 200
