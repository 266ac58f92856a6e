"""
Visit Lifecycle Service

Manages branch visit status transitions with:
  - Transition validation (VISIT_TRANSITIONS)
  - Actor checks (owner for create/save/submit/delete, reviewer for approve/reject)
  - Field validation on create/save (partial) and submit (complete)
  - Audit trail via write_audit

State machine:
  create  → draft
  draft   --save-->    draft       (owner)
  draft   --submit-->  submitted   (owner, full validation)
  submitted --approve--> approved  (reviewer)
  submitted --reject-->  rejected  (reviewer)
  draft   --delete-->  removed     (owner)

approved and rejected are terminal: there is no resubmission path.

Every refusal (AuthorizationError, TransitionError, ValidationError) is
raised before the visit row is touched.  Concurrent transitions on the
same visit are not coordinated; the last commit wins.

Usage:
    from branchvisit.services.visit_lifecycle import submit_visit

    result = submit_visit(actor, visit_id)
"""

import logging
from datetime import date, datetime, timezone

from flask import current_app, has_app_context

from branchvisit.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    RequiredError,
    TransitionError,
    ValidationError,
)
from branchvisit.models.audit import ENTITY_VISIT, write_audit
from branchvisit.models.user import ANALYST_ROLES, REVIEWER_ROLES, VISIT_OWNER_ROLES, User
from branchvisit.models.visit import (
    COUNT_FIELDS,
    DELETABLE_STATUSES,
    EDITABLE_FIELDS,
    PERCENTAGE_FIELDS,
    QUALITATIVE_FIELDS,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    VISIT_TRANSITIONS,
    BranchVisit,
)
from branchvisit.services import store
from branchvisit.services.visit_validator import (
    DEFAULT_MAX_CHARS,
    DEFAULT_MAX_WORDS,
    REQUIRED_FIELDS,
    validate_visit,
)
from branchvisit.utils.helpers import month_bounds

logger = logging.getLogger(__name__)

# Actor class → roles allowed to act in that capacity
_ACTOR_ROLES = {
    "owner": VISIT_OWNER_ROLES,
    "reviewer": REVIEWER_ROLES,
}

REVIEW_ACTIONS = ("approve", "reject")

# A visit sees at most create + a few saves + submit + review
MAX_HISTORY_ROWS = 200


# ── Helpers ──────────────────────────────────────────────────────────────────


def _limits() -> dict:
    if has_app_context():
        return {
            "max_words": current_app.config.get("VISIT_FEEDBACK_MAX_WORDS", DEFAULT_MAX_WORDS),
            "max_chars": current_app.config.get("VISIT_FEEDBACK_MAX_CHARS", DEFAULT_MAX_CHARS),
        }
    return {"max_words": DEFAULT_MAX_WORDS, "max_chars": DEFAULT_MAX_CHARS}


def _editable(data: dict) -> dict:
    """Drop keys a representative may not write (status, user_id, ids...)."""
    return {k: v for k, v in (data or {}).items() if k in EDITABLE_FIELDS}


def _load_visit(visit_id: str) -> BranchVisit:
    visit = store.unwrap(store.get_visit(visit_id))
    if visit is None:
        raise NotFoundError(resource="Visit", resource_id=visit_id)
    return visit


def _load_branch(branch_id: str):
    branch = store.unwrap(store.get_branch(branch_id))
    if branch is None:
        raise NotFoundError(resource="Branch", resource_id=branch_id)
    return branch


def _record_values(visit: BranchVisit) -> dict:
    """Current persisted field values in validator input shape."""
    values = {
        "branch_id": visit.branch_id,
        "visit_date": visit.visit_date,
        "hr_connect_session": visit.hr_connect_session,
        "performance_level": visit.performance_level,
        "feedback": visit.feedback,
    }
    for field in PERCENTAGE_FIELDS + COUNT_FIELDS + tuple(QUALITATIVE_FIELDS):
        values[field] = getattr(visit, field)
    return values


def _touch(visit: BranchVisit) -> datetime:
    now = datetime.now(timezone.utc)
    visit.updated_at = now
    return now


def is_owner(visit: BranchVisit, actor: User) -> bool:
    return actor is not None and visit.user_id == actor.id


def can_perform(visit: BranchVisit, action: str, actor: User | None) -> bool:
    """Whether *actor* is the right kind of user for *action* on *visit*."""
    rule = VISIT_TRANSITIONS.get(action)
    if rule is None or actor is None:
        return False
    if actor.role not in _ACTOR_ROLES[rule["actor"]]:
        return False
    if rule["actor"] == "owner":
        return is_owner(visit, actor)
    return True


def _authorize(visit: BranchVisit, action: str, actor: User) -> None:
    if action not in VISIT_TRANSITIONS:
        return  # unknown actions are rejected by validate_transition
    if not can_perform(visit, action, actor):
        capacity = VISIT_TRANSITIONS[action]["actor"]
        raise AuthorizationError(
            getattr(actor, "id", None), f"{action} visit",
            reason=f"only the {capacity} may do this",
        )


def validate_transition(visit: BranchVisit, action: str) -> dict:
    """
    Validate whether an action is valid for the current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = VISIT_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": visit.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if visit.status not in rule["from"]:
        return {"valid": False, "from": visit.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{visit.status}'"}

    return {"valid": True, "from": visit.status, "to": rule["to"], "reason": None}


def _require_transition(visit: BranchVisit, action: str) -> dict:
    validation = validate_transition(visit, action)
    if not validation["valid"]:
        raise TransitionError(visit.id, action, visit.status, validation["reason"])
    return validation


def get_available_transitions(visit: BranchVisit, actor: User | None = None) -> list[str]:
    """Actions valid from the visit's current status (and for *actor*, if given)."""
    actions = [
        action for action, rule in VISIT_TRANSITIONS.items()
        if visit.status in rule["from"]
    ]
    if actor is not None:
        actions = [a for a in actions if can_perform(visit, a, actor)]
    if visit.status in DELETABLE_STATUSES and (actor is None or can_perform(visit, "save", actor)):
        actions.append("delete")
    return actions


def _audit(visit: BranchVisit, action: str, actor: User, diff: dict) -> None:
    write_audit(
        entity_type=ENTITY_VISIT,
        entity_id=visit.id,
        action=f"visit.{action}",
        actor_id=actor.id,
        diff=diff,
    )


def _result(visit: BranchVisit, action: str, previous_status: str | None) -> dict:
    return {
        "visit_id": visit.id,
        "previous_status": previous_status,
        "new_status": visit.status,
        "action": action,
        "visit": visit.to_dict(),
    }


# ── Create / save ────────────────────────────────────────────────────────────


def create_visit(actor: User, data: dict, *, today: date | None = None) -> BranchVisit:
    """
    Create a draft visit owned by *actor*.

    branch_id and visit_date are required; every provided metric is checked.
    The branch's current category is copied onto the visit.

    Raises:
        AuthorizationError, ValidationError, NotFoundError
    """
    if actor is None or actor.role not in VISIT_OWNER_ROLES:
        raise AuthorizationError(getattr(actor, "id", None), "create visit",
                                 reason="only branch representatives record visits")

    normalized, failures = validate_visit(_editable(data), today=today, **_limits())
    if failures:
        raise ValidationError.from_failures(failures, "Visit report is invalid")

    branch = _load_branch(normalized["branch_id"])

    visit = BranchVisit(
        user_id=actor.id,
        status=STATUS_DRAFT,
        branch_category=branch.category_label,
        **normalized,
    )
    store.unwrap(store.insert(visit))
    _audit(visit, "create", actor, {"status": {"old": None, "new": STATUS_DRAFT}})
    store.unwrap(store.commit())

    logger.info(
        "Visit %s created for branch %s", visit.id, branch.id,
        extra={"actor_id": actor.id, "visit_id": visit.id},
    )
    return visit


def save_draft(actor: User, visit_id: str, data: dict, *, today: date | None = None) -> BranchVisit:
    """
    Apply a partial update to a draft.  Completeness is not checked; each
    provided field still has to be valid and required fields cannot be cleared.

    Raises:
        NotFoundError, AuthorizationError, TransitionError, ValidationError
    """
    visit = _load_visit(visit_id)
    _authorize(visit, "save", actor)
    _require_transition(visit, "save")

    normalized, failures = validate_visit(
        _editable(data), partial=True, today=today, **_limits(),
    )
    for field in REQUIRED_FIELDS:
        if field in normalized and normalized[field] is None:
            failures.append(RequiredError(field, "cannot be cleared"))
    if failures:
        raise ValidationError.from_failures(failures, "Visit report is invalid")

    new_branch = None
    if "branch_id" in normalized and normalized["branch_id"] != visit.branch_id:
        new_branch = _load_branch(normalized["branch_id"])

    diff = {}
    for field, value in normalized.items():
        old = getattr(visit, field)
        if old != value:
            diff[field] = {"old": old, "new": value}
            setattr(visit, field, value)
    if new_branch is not None:
        diff["branch_category"] = {"old": visit.branch_category, "new": new_branch.category_label}
        visit.branch_category = new_branch.category_label

    _touch(visit)
    _audit(visit, "save", actor, diff)
    store.unwrap(store.commit())

    logger.info(
        "Visit %s draft saved (%d field(s) changed)", visit.id, len(diff),
        extra={"actor_id": actor.id, "visit_id": visit.id},
    )
    return visit


# ── Transitions ──────────────────────────────────────────────────────────────


def submit_visit(actor: User, visit_id: str, *, today: date | None = None) -> dict:
    """
    Send a draft for review.  The stored record must pass full validation.

    Returns:
        {"visit_id", "previous_status", "new_status", "action", "visit"}

    Raises:
        NotFoundError, AuthorizationError, TransitionError, ValidationError
    """
    visit = _load_visit(visit_id)
    _authorize(visit, "submit", actor)
    validation = _require_transition(visit, "submit")

    _, failures = validate_visit(_record_values(visit), today=today, **_limits())
    if failures:
        raise ValidationError.from_failures(failures, "Visit report is incomplete")

    previous_status = visit.status
    visit.status = validation["to"]
    _touch(visit)
    _audit(visit, "submit", actor, {"status": {"old": previous_status, "new": visit.status}})
    store.unwrap(store.commit())

    logger.info(
        "Visit %s submitted", visit.id,
        extra={"actor_id": actor.id, "visit_id": visit.id},
    )
    return _result(visit, "submit", previous_status)


def review_visit(actor: User, visit_id: str, action: str, *, comment: str | None = None) -> dict:
    """
    Approve or reject a submitted visit.

    Args:
        actor: Reviewing user (zh / admin).
        visit_id: Visit to transition.
        action: "approve" | "reject".
        comment: Optional reviewer note, kept in the audit diff.

    Raises:
        NotFoundError, AuthorizationError, TransitionError
    """
    visit = _load_visit(visit_id)
    if action not in REVIEW_ACTIONS:
        raise TransitionError(visit.id, action, visit.status, f"Unknown review action: {action}")
    _authorize(visit, action, actor)
    validation = _require_transition(visit, action)

    previous_status = visit.status
    now = _touch(visit)
    visit.status = validation["to"]
    visit.reviewed_by_id = actor.id
    visit.reviewed_at = now

    diff = {
        "status": {"old": previous_status, "new": visit.status},
        "reviewed_by_id": {"old": None, "new": actor.id},
    }
    if comment:
        diff["comment"] = {"old": None, "new": comment}
    _audit(visit, action, actor, diff)
    store.unwrap(store.commit())

    logger.info(
        "Visit %s %s", visit.id, "approved" if action == "approve" else "rejected",
        extra={"actor_id": actor.id, "visit_id": visit.id},
    )
    return _result(visit, action, previous_status)


def approve_visit(actor: User, visit_id: str, *, comment: str | None = None) -> dict:
    return review_visit(actor, visit_id, "approve", comment=comment)


def reject_visit(actor: User, visit_id: str, *, comment: str | None = None) -> dict:
    return review_visit(actor, visit_id, "reject", comment=comment)


def delete_visit(actor: User, visit_id: str) -> dict:
    """
    Remove a draft visit.  Submitted, approved and rejected visits stay.

    Raises:
        NotFoundError, AuthorizationError, TransitionError
    """
    visit = _load_visit(visit_id)
    _authorize(visit, "save", actor)
    if visit.status not in DELETABLE_STATUSES:
        raise TransitionError(visit.id, "delete", visit.status,
                              "Only draft visits can be deleted")

    _audit(visit, "delete", actor, {"status": {"old": visit.status, "new": None}})
    store.unwrap(store.delete(visit))
    store.unwrap(store.commit())

    logger.info(
        "Visit %s deleted", visit_id,
        extra={"actor_id": actor.id, "visit_id": visit_id},
    )
    return {"visit_id": visit_id, "deleted": True}


# ── Reads ────────────────────────────────────────────────────────────────────


def get_visit_for(actor: User, visit_id: str) -> BranchVisit:
    """Fetch a visit the actor may read: the owner, or any reviewer/analyst."""
    visit = _load_visit(visit_id)
    if actor is None or not (is_owner(visit, actor) or actor.role in ANALYST_ROLES):
        raise AuthorizationError(getattr(actor, "id", None), "view visit")
    return visit


def get_visit_history(actor: User, visit_id: str) -> list[dict]:
    """Audit rows for one visit, oldest first.  Same read rule as get_visit_for."""
    visit = get_visit_for(actor, visit_id)
    page = store.unwrap(store.query_audit(
        entity_type=ENTITY_VISIT, entity_id=visit.id, per_page=MAX_HISTORY_ROWS,
    ))
    return [log.to_dict() for log in reversed(page.items)]


def _list_filters(filters: dict) -> dict:
    kwargs = {}
    if filters.get("status"):
        kwargs["statuses"] = [filters["status"]]
    if filters.get("month"):
        year, month = filters["month"]
        kwargs["date_from"], kwargs["date_to"] = month_bounds(year, month)
    if filters.get("category"):
        kwargs["branch_category"] = filters["category"]
    if filters.get("search"):
        kwargs["search"] = filters["search"]
    return kwargs


def list_my_visits(actor: User, **filters) -> list[BranchVisit]:
    """The actor's own visits, newest first.

    Filters: status, month=(year, month), category (live branch), search
    (branch name or location).
    """
    if actor is None or actor.role not in VISIT_OWNER_ROLES:
        raise AuthorizationError(getattr(actor, "id", None), "list own visits")
    return store.unwrap(store.query_visits(user_id=actor.id, **_list_filters(filters)))


def list_visits_for_review(actor: User, **filters) -> list[BranchVisit]:
    """Visits visible to reviewers; defaults to the submitted queue."""
    if actor is None or actor.role not in REVIEWER_ROLES:
        raise AuthorizationError(getattr(actor, "id", None), "list visits for review")
    filters.setdefault("status", STATUS_SUBMITTED)
    kwargs = _list_filters(filters)
    if filters.get("user_id"):
        kwargs["user_id"] = filters["user_id"]
    return store.unwrap(store.query_visits(**kwargs))
