"""
Data-access layer for visits, branches, users, assignments and the audit trail.

Every function returns a ``(value, error)`` tuple instead of raising:

    visits, err = store.query_visits(statuses=["approved"])
    if err:
        ...              # err = {"error", "code", "status", "operation"}

SQLAlchemy failures are caught here, logged, and the session is rolled
back, so a database hiccup never surfaces as an unhandled exception in a
service or blueprint.  Callers decide how to report the failure; most
services hand the tuple to ``unwrap`` which turns it into a
``StoreUnavailableError`` (HTTP 503).

Business rules do NOT live here; functions are thin query builders.
"""

import functools
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from branchvisit.core.exceptions import ConflictError, StoreUnavailableError
from branchvisit.models import db
from branchvisit.models.audit import AuditLog
from branchvisit.models.branch import Branch, BranchAssignment, UNKNOWN_CATEGORY
from branchvisit.models.user import User
from branchvisit.models.visit import BranchVisit
from branchvisit.utils.errors import E

logger = logging.getLogger(__name__)


def store_error(operation: str, exc: Exception | None = None, *, status: int = 503) -> dict:
    """Build the failure half of a store result."""
    return {
        "error": "Data store unavailable, please retry",
        "code": E.STORE_UNAVAILABLE if status == 503 else E.DATABASE,
        "status": status,
        "operation": operation,
        "detail": str(exc) if exc is not None else None,
    }


def _result(operation: str):
    """Wrap a store function so it returns ``(value, None)`` or ``(None, err)``."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs), None
            except IntegrityError:
                # Constraint violations are a business outcome, not an outage.
                db.session.rollback()
                raise
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.exception("Store operation failed: %s", operation)
                return None, store_error(operation, exc)
        return wrapper
    return decorator


def unwrap(result: tuple):
    """Return the value of a store result or raise StoreUnavailableError."""
    value, err = result
    if err:
        raise StoreUnavailableError(err["operation"], err.get("detail"))
    return value


# ── Single-row lookups ───────────────────────────────────────────────────────


@_result("get_visit")
def get_visit(visit_id: str) -> BranchVisit | None:
    return db.session.get(BranchVisit, visit_id)


@_result("get_branch")
def get_branch(branch_id: str) -> Branch | None:
    return db.session.get(Branch, branch_id)


@_result("get_user")
def get_user(user_id: str) -> User | None:
    return db.session.get(User, user_id)


@_result("find_assignment")
def find_assignment(user_id: str, branch_id: str) -> BranchAssignment | None:
    return BranchAssignment.query.filter_by(user_id=user_id, branch_id=branch_id).first()


# ── Filtered selects ─────────────────────────────────────────────────────────


@_result("query_visits")
def query_visits(
    *,
    user_id: str | None = None,
    statuses=None,
    date_from=None,
    date_to=None,
    branch_ids=None,
    branch_category: str | None = None,
    search: str | None = None,
    newest_first: bool = True,
) -> list[BranchVisit]:
    """Select visits with equality / range / "in" filters.

    ``branch_category`` filters on the LIVE branch category (joined), which
    is what list screens and the heatmap filter use.  Month statistics use
    the snapshot stored on the visit instead and do their grouping in the
    aggregation layer.
    """
    q = BranchVisit.query
    joined = False
    if user_id is not None:
        q = q.filter(BranchVisit.user_id == user_id)
    if statuses:
        q = q.filter(BranchVisit.status.in_(list(statuses)))
    if date_from is not None:
        q = q.filter(BranchVisit.visit_date >= date_from)
    if date_to is not None:
        q = q.filter(BranchVisit.visit_date <= date_to)
    if branch_ids is not None:
        q = q.filter(BranchVisit.branch_id.in_(list(branch_ids)))
    if branch_category:
        q = q.join(Branch, Branch.id == BranchVisit.branch_id)
        joined = True
        if branch_category == UNKNOWN_CATEGORY:
            q = q.filter(or_(Branch.category.is_(None), Branch.category == UNKNOWN_CATEGORY))
        else:
            q = q.filter(Branch.category == branch_category)
    if search:
        if not joined:
            q = q.join(Branch, Branch.id == BranchVisit.branch_id)
        like = f"%{search.strip()}%"
        q = q.filter(or_(Branch.name.ilike(like), Branch.location.ilike(like)))
    order = BranchVisit.created_at.desc() if newest_first else BranchVisit.created_at.asc()
    return q.order_by(order, BranchVisit.id).all()


@_result("query_branches")
def query_branches(
    *,
    category: str | None = None,
    location: str | None = None,
    search: str | None = None,
) -> list[Branch]:
    q = Branch.query
    if category:
        if category == UNKNOWN_CATEGORY:
            q = q.filter(or_(Branch.category.is_(None), Branch.category == UNKNOWN_CATEGORY))
        else:
            q = q.filter(Branch.category == category)
    if location:
        q = q.filter(Branch.location == location)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Branch.name.ilike(like), Branch.location.ilike(like)))
    return q.order_by(Branch.name, Branch.id).all()


@_result("query_users")
def query_users(
    *,
    role: str | None = None,
    roles=None,
    location: str | None = None,
    search: str | None = None,
) -> list[User]:
    q = User.query.filter(User.is_active.is_(True))
    if role:
        q = q.filter(User.role == role)
    if roles:
        q = q.filter(User.role.in_(sorted(roles)))
    if location:
        q = q.filter(User.location == location)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(User.full_name.ilike(like), User.employee_code.ilike(like)))
    return q.order_by(User.full_name, User.id).all()


@_result("query_assignments")
def query_assignments(
    *,
    user_id: str | None = None,
    branch_id: str | None = None,
) -> list[BranchAssignment]:
    q = BranchAssignment.query
    if user_id is not None:
        q = q.filter(BranchAssignment.user_id == user_id)
    if branch_id is not None:
        q = q.filter(BranchAssignment.branch_id == branch_id)
    return q.order_by(BranchAssignment.assigned_date, BranchAssignment.id).all()


@_result("query_audit")
def query_audit(
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    actor_id: str | None = None,
    page: int = 1,
    per_page: int = 50,
):
    """Audit rows, newest first.  ``action`` is a prefix match (e.g. "visit.").

    Returns a Flask-SQLAlchemy pagination object.
    """
    q = AuditLog.query
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)
    if action:
        q = q.filter(AuditLog.action.startswith(action))
    if actor_id:
        q = q.filter(AuditLog.actor_id == actor_id)
    q = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    return q.paginate(page=page, per_page=per_page, error_out=False)


# ── Mutations ────────────────────────────────────────────────────────────────


@_result("insert")
def insert(obj):
    """Add a row and flush so its defaults (id, timestamps) are populated."""
    db.session.add(obj)
    db.session.flush()
    return obj


@_result("delete")
def delete(obj):
    db.session.delete(obj)
    db.session.flush()
    return obj


@_result("commit")
def commit():
    db.session.commit()
    return True


def commit_or_conflict(resource: str, field: str, value: str | None = None):
    """Commit; map a unique-constraint violation to ConflictError.

    Returns the store result tuple for every other outcome.
    """
    try:
        return commit()
    except IntegrityError as exc:
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(resource, field, value) from exc
