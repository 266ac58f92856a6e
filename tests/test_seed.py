"""
Demo seed tests.

pytest markers: integration
"""

from datetime import date

from branchvisit.models.branch import Branch, BranchAssignment
from branchvisit.models.user import User
from branchvisit.models.visit import VISIT_STATUSES, BranchVisit
from branchvisit.seed import ASSIGNMENTS, BRANCHES, USERS, seed_demo
from conftest import make_user

TODAY = date(2024, 6, 15)


def test_seed_counts():
    counts = seed_demo(today=TODAY)
    assert counts["users"] == len(USERS) == User.query.count()
    assert counts["branches"] == len(BRANCHES) == Branch.query.count()
    assert counts["assignments"] == sum(len(v) for v in ASSIGNMENTS.values())
    assert counts["visits"] == BranchVisit.query.count()


def test_seed_is_deterministic_and_valid():
    seed_demo(today=TODAY, seed=7)
    visits = BranchVisit.query.all()
    assert {v.status for v in visits} <= set(VISIT_STATUSES)
    assert all(v.visit_date <= TODAY for v in visits)
    for v in visits:
        assert v.total_participants <= v.total_employees_invited
        if v.status in ("approved", "rejected"):
            assert v.reviewed_by_id is not None
        else:
            assert v.reviewed_by_id is None


def test_seed_assignments_only_to_representatives():
    seed_demo(today=TODAY)
    roles = {a.user.role for a in BranchAssignment.query.all()}
    assert roles == {"bh"}


def test_seed_skips_when_users_exist():
    make_user("admin", name="Existing Admin")
    counts = seed_demo(today=TODAY)
    assert counts == {"users": 0, "branches": 0, "assignments": 0, "visits": 0}
    assert Branch.query.count() == 0


def test_seed_cli(app):
    result = app.test_cli_runner().invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "users=8" in result.output
