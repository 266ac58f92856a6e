"""
Demo data seed.

Creates a small, realistic data set for local demos:
  - one admin, one channel head, two zonal heads, four branch representatives
  - ten branches across all tiers
  - assignments (two or three branches per representative)
  - visits over the last three months in every status

Usage:
    flask --app wsgi seed-demo            # add demo data (skips if users exist)
    flask --app wsgi seed-demo --reset    # drop + recreate tables first
"""

import logging
import random
from datetime import date, timedelta

from branchvisit.models import db
from branchvisit.models.branch import Branch, BranchAssignment
from branchvisit.models.user import ROLE_ADMIN, ROLE_BH, ROLE_CH, ROLE_ZH, User
from branchvisit.models.visit import (
    QUALITATIVE_FIELDS,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_REJECTED,
    STATUS_SUBMITTED,
    BranchVisit,
)

logger = logging.getLogger(__name__)

USERS = [
    ("Aylin Demir", "E1001", "Istanbul", ROLE_ADMIN),
    ("Kerem Aydin", "E2001", "Istanbul", ROLE_CH),
    ("Selin Kaya", "E3001", "Istanbul", ROLE_ZH),
    ("Mert Yilmaz", "E3002", "Ankara", ROLE_ZH),
    ("Deniz Arslan", "E4001", "Istanbul", ROLE_BH),
    ("Ece Sahin", "E4002", "Istanbul", ROLE_BH),
    ("Burak Celik", "E4003", "Ankara", ROLE_BH),
    ("Zeynep Ozturk", "E4004", "Izmir", ROLE_BH),
]

BRANCHES = [
    ("Levent Central", "BR-001", "Istanbul", "platinum"),
    ("Kadikoy Square", "BR-002", "Istanbul", "diamond"),
    ("Besiktas Pier", "BR-003", "Istanbul", "gold"),
    ("Uskudar Hills", "BR-004", "Istanbul", "silver"),
    ("Kizilay Plaza", "BR-005", "Ankara", "platinum"),
    ("Cankaya Park", "BR-006", "Ankara", "gold"),
    ("Ulus Market", "BR-007", "Ankara", "bronze"),
    ("Alsancak Port", "BR-008", "Izmir", "diamond"),
    ("Bornova Campus", "BR-009", "Izmir", "silver"),
    ("Karsiyaka Shore", "BR-010", "Izmir", None),
]

# representative e-code → branch codes
ASSIGNMENTS = {
    "E4001": ("BR-001", "BR-002", "BR-003"),
    "E4002": ("BR-003", "BR-004"),
    "E4003": ("BR-005", "BR-006", "BR-007"),
    "E4004": ("BR-008", "BR-009", "BR-010"),
}

_STATUS_WEIGHTS = (
    (STATUS_APPROVED, 5),
    (STATUS_SUBMITTED, 3),
    (STATUS_REJECTED, 1),
    (STATUS_DRAFT, 1),
)


def _pick_status(rng: random.Random) -> str:
    statuses, weights = zip(*_STATUS_WEIGHTS)
    return rng.choices(statuses, weights=weights, k=1)[0]


def _visit_values(rng: random.Random) -> dict:
    invited = rng.randint(10, 40)
    values = {
        "hr_connect_session": rng.random() < 0.6,
        "total_employees_invited": invited,
        "total_participants": rng.randint(invited // 2, invited),
        "manning_percentage": rng.randint(70, 100),
        "attrition_percentage": rng.randint(0, 20),
        "non_vendor_percentage": rng.randint(40, 90),
        "er_percentage": rng.randint(50, 100),
        "cwt_cases": rng.randint(0, 4),
        "performance_level": rng.choice(("low", "medium", "high")),
        "new_employees_total": rng.randint(0, 6),
        "star_employees_total": rng.randint(0, 4),
        "feedback": "Team engaged; follow up on open escalations next visit.",
    }
    values["new_employees_covered"] = rng.randint(0, values["new_employees_total"])
    values["star_employees_covered"] = rng.randint(0, values["star_employees_total"])
    for field, meta in QUALITATIVE_FIELDS.items():
        favourable = rng.random() < 0.8
        yes = not favourable if meta["inverted"] else favourable
        values[field] = "yes" if yes else "no"
    return values


def seed_demo(*, today: date | None = None, seed: int = 42) -> dict:
    """Insert the demo data set and commit.  Returns counts per entity.

    Does nothing when users already exist.
    """
    if db.session.query(User.id).first() is not None:
        logger.info("Demo seed skipped: users already present")
        return {"users": 0, "branches": 0, "assignments": 0, "visits": 0}

    rng = random.Random(seed)
    today = today or date.today()

    users = {}
    for name, code, location, role in USERS:
        user = User(full_name=name, employee_code=code, location=location, role=role,
                    email=f"{code.lower()}@example.com")
        db.session.add(user)
        users[code] = user

    branches = {}
    for name, code, location, category in BRANCHES:
        branch = Branch(name=name, branch_code=code, location=location, category=category)
        db.session.add(branch)
        branches[code] = branch
    db.session.flush()

    assignment_count = 0
    for user_code, branch_codes in ASSIGNMENTS.items():
        for branch_code in branch_codes:
            db.session.add(BranchAssignment(
                user_id=users[user_code].id,
                branch_id=branches[branch_code].id,
                assigned_date=today - timedelta(days=120),
            ))
            assignment_count += 1

    reviewer = users["E3001"]
    visit_count = 0
    for user_code, branch_codes in ASSIGNMENTS.items():
        for branch_code in branch_codes:
            branch = branches[branch_code]
            for _ in range(rng.randint(2, 4)):
                status = _pick_status(rng)
                visit = BranchVisit(
                    branch_id=branch.id,
                    user_id=users[user_code].id,
                    visit_date=today - timedelta(days=rng.randint(0, 90)),
                    status=status,
                    branch_category=branch.category,
                    **_visit_values(rng),
                )
                if status in (STATUS_APPROVED, STATUS_REJECTED):
                    visit.reviewed_by_id = reviewer.id
                db.session.add(visit)
                visit_count += 1

    db.session.commit()
    counts = {
        "users": len(users),
        "branches": len(branches),
        "assignments": assignment_count,
        "visits": visit_count,
    }
    logger.info("Demo data seeded: %s", counts)
    return counts
