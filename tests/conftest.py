"""
Shared pytest fixtures for the Branch Visit Reporting test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - bh / bh2 / zh / ch / admin: one pre-created user per role
    - branch / other_branch: pre-created branches, branch assigned to bh
    - auth_headers(user): X-User-Id header for API calls
"""

from datetime import date, timedelta

import pytest

from branchvisit import create_app
from branchvisit.models import db as _db
from branchvisit.models.branch import Branch, BranchAssignment
from branchvisit.models.user import User
from branchvisit.models.visit import BranchVisit

TODAY = date.today()
YESTERDAY = TODAY - timedelta(days=1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Builders ─────────────────────────────────────────────────────────────


def make_user(role="bh", *, name=None, code=None, location="Istanbul", active=True) -> User:
    user = User(
        full_name=name or f"{role.upper()} User",
        employee_code=code,
        role=role,
        location=location,
        is_active=active,
    )
    _db.session.add(user)
    _db.session.flush()
    return user


def make_branch(name="Levent Central", *, category="gold", location="Istanbul", code=None) -> Branch:
    branch = Branch(name=name, category=category, location=location, branch_code=code)
    _db.session.add(branch)
    _db.session.flush()
    return branch


def assign(user: User, branch: Branch) -> BranchAssignment:
    assignment = BranchAssignment(user_id=user.id, branch_id=branch.id)
    _db.session.add(assignment)
    _db.session.flush()
    return assignment


def make_visit(user: User, branch: Branch, *, status="draft", visit_date=None,
               category=None, **fields) -> BranchVisit:
    """Insert a visit row directly (bypassing the lifecycle service)."""
    visit = BranchVisit(
        user_id=user.id,
        branch_id=branch.id,
        visit_date=visit_date or YESTERDAY,
        status=status,
        branch_category=category if category is not None else branch.category_label,
        **fields,
    )
    _db.session.add(visit)
    _db.session.flush()
    return visit


def auth_headers(user: User) -> dict:
    return {"X-User-Id": user.id}


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def bh():
    return make_user("bh", name="Deniz Arslan", code="E4001")


@pytest.fixture()
def bh2():
    return make_user("bh", name="Ece Sahin", code="E4002")


@pytest.fixture()
def zh():
    return make_user("zh", name="Selin Kaya", code="E3001")


@pytest.fixture()
def ch():
    return make_user("ch", name="Kerem Aydin", code="E2001")


@pytest.fixture()
def admin():
    return make_user("admin", name="Aylin Demir", code="E1001")


@pytest.fixture()
def branch(bh):
    b = make_branch("Levent Central", category="gold", code="BR-001")
    assign(bh, b)
    _db.session.commit()
    return b


@pytest.fixture()
def other_branch():
    b = make_branch("Ulus Market", category="bronze", location="Ankara", code="BR-007")
    _db.session.commit()
    return b


@pytest.fixture()
def complete_payload(branch):
    """A visit body that passes full validation."""
    return {
        "branch_id": branch.id,
        "visit_date": YESTERDAY.isoformat(),
        "hr_connect_session": True,
        "total_employees_invited": 20,
        "total_participants": 15,
        "manning_percentage": 90,
        "attrition_percentage": 5,
        "non_vendor_percentage": 60,
        "er_percentage": 80,
        "cwt_cases": 1,
        "performance_level": "high",
        "leaders_aligned_with_code": "yes",
        "employees_feel_safe": True,
        "leaders_abusive_language": "no",
        "feedback": "Good engagement across teams.",
    }
