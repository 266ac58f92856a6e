"""
Branch Assignment Service

Business logic for mapping branches to branch representatives (BH).
Only reviewers (zh / admin) may change assignments.

  - assign_branch / unassign_branch
  - list_branches_with_counts:  branches + number of assigned BHs
  - list_assignments_by_branch: {branch_id: [assignment, ...]}
  - list_representatives:       BH users + number of assigned branches
  - representative_detail:      profile, branches, report stats, recent visits
  - list_branches_for:          branches selectable by an actor (BH: assigned only)
"""

import logging
from collections import Counter, defaultdict

from sqlalchemy.exc import IntegrityError

from branchvisit.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from branchvisit.models.audit import ENTITY_ASSIGNMENT, write_audit
from branchvisit.models.branch import BranchAssignment, normalize_category
from branchvisit.models.user import REVIEWER_ROLES, ROLE_BH, User
from branchvisit.services import aggregation, store

logger = logging.getLogger(__name__)

RECENT_VISITS_LIMIT = 10


def _require_manager(actor: User | None, action: str) -> None:
    if actor is None or actor.role not in REVIEWER_ROLES:
        raise AuthorizationError(getattr(actor, "id", None), action,
                                 reason="only zonal heads manage branch assignments")


def _load_representative(user_id: str) -> User:
    user = store.unwrap(store.get_user(user_id))
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    if user.role != ROLE_BH:
        raise ValidationError(
            "Branches can only be assigned to branch representatives",
            details={"user_id": f"user role is '{user.role}', expected '{ROLE_BH}'"},
        )
    return user


def assign_branch(actor: User, user_id: str, branch_id: str) -> BranchAssignment:
    """
    Assign a branch to a representative.

    Raises:
        AuthorizationError, NotFoundError, ValidationError, ConflictError
    """
    _require_manager(actor, "assign branch")
    user = _load_representative(user_id)
    branch = store.unwrap(store.get_branch(branch_id))
    if branch is None:
        raise NotFoundError(resource="Branch", resource_id=branch_id)

    if store.unwrap(store.find_assignment(user.id, branch.id)) is not None:
        raise ConflictError("BranchAssignment", "user_id,branch_id", f"{user.id},{branch.id}")

    assignment = BranchAssignment(user_id=user.id, branch_id=branch.id)
    try:
        store.unwrap(store.insert(assignment))
    except IntegrityError as exc:
        raise ConflictError("BranchAssignment", "user_id,branch_id",
                            f"{user.id},{branch.id}") from exc
    write_audit(
        entity_type=ENTITY_ASSIGNMENT,
        entity_id=assignment.id,
        action="assignment.assign",
        actor_id=actor.id,
        diff={"user_id": user.id, "branch_id": branch.id},
    )
    store.unwrap(store.commit_or_conflict("BranchAssignment", "user_id,branch_id"))

    logger.info(
        "Branch %s assigned to %s", branch.id, user.id,
        extra={"actor_id": actor.id},
    )
    return assignment


def unassign_branch(actor: User, user_id: str, branch_id: str) -> dict:
    """
    Remove a branch assignment.

    Raises:
        AuthorizationError, NotFoundError
    """
    _require_manager(actor, "unassign branch")
    assignment = store.unwrap(store.find_assignment(user_id, branch_id))
    if assignment is None:
        raise NotFoundError(resource="BranchAssignment", resource_id=f"{user_id}/{branch_id}")

    assignment_id = assignment.id
    write_audit(
        entity_type=ENTITY_ASSIGNMENT,
        entity_id=assignment_id,
        action="assignment.unassign",
        actor_id=actor.id,
        diff={"user_id": user_id, "branch_id": branch_id},
    )
    store.unwrap(store.delete(assignment))
    store.unwrap(store.commit())

    logger.info(
        "Branch %s unassigned from %s", branch_id, user_id,
        extra={"actor_id": actor.id},
    )
    return {"assignment_id": assignment_id, "user_id": user_id,
            "branch_id": branch_id, "deleted": True}


# ── Listings ─────────────────────────────────────────────────────────────────


def list_branches_with_counts(
    category: str | None = None,
    search: str | None = None,
    location: str | None = None,
) -> list[dict]:
    """Branches (filtered) with the number of BHs assigned to each."""
    branches = store.unwrap(store.query_branches(
        category=category, search=search, location=location,
    ))
    assignments = store.unwrap(store.query_assignments())
    counts = Counter(a.branch_id for a in assignments)
    return [{**b.to_dict(), "bh_count": counts.get(b.id, 0)} for b in branches]


def list_assignments_by_branch() -> dict[str, list[dict]]:
    assignments = store.unwrap(store.query_assignments())
    grouped = defaultdict(list)
    for a in assignments:
        grouped[a.branch_id].append(a.to_dict())
    return dict(grouped)


def list_representatives(location: str | None = None, search: str | None = None) -> list[dict]:
    """BH users (filtered by location / name-or-code search) with assignment counts."""
    users = store.unwrap(store.query_users(role=ROLE_BH, location=location, search=search))
    assignments = store.unwrap(store.query_assignments())
    counts = Counter(a.user_id for a in assignments)
    return [{**u.to_dict(), "branches_assigned": counts.get(u.id, 0)} for u in users]


def representative_detail(user_id: str) -> dict:
    """Profile, assigned branches, report statistics and recent visits for one BH."""
    user = store.unwrap(store.get_user(user_id))
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)

    assignments = store.unwrap(store.query_assignments(user_id=user_id))
    visits = store.unwrap(store.query_visits(user_id=user_id))
    return {
        "user": user.to_dict(),
        "branches": [
            {**a.branch.to_dict(), "assigned_date": a.to_dict()["assigned_date"]}
            for a in assignments if a.branch is not None
        ],
        "report_stats": aggregation.report_stats(visits),
        "recent_visits": [v.to_dict() for v in visits[:RECENT_VISITS_LIMIT]],
    }


def list_branches_for(actor: User, category: str | None = None, search: str | None = None) -> list[dict]:
    """Branches an actor may pick from: a BH sees only assigned branches."""
    if actor is not None and actor.role == ROLE_BH:
        assignments = store.unwrap(store.query_assignments(user_id=actor.id))
        wanted = normalize_category(category) if category else None
        needle = (search or "").strip().casefold()
        branches = []
        for a in assignments:
            b = a.branch
            if b is None:
                continue
            if wanted and normalize_category(b.category) != wanted:
                continue
            if needle and needle not in f"{b.name} {b.location or ''}".casefold():
                continue
            branches.append(b)
        branches.sort(key=lambda b: b.name.casefold())
        return [b.to_dict() for b in branches]
    return [b.to_dict() for b in store.unwrap(store.query_branches(category=category, search=search))]
