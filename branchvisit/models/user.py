"""
Branch Visit Reporting Platform
User / representative model.

Users are provisioned by the upstream identity system; this service only
reads them (demo seeding and tests are the exception).
"""

import uuid
from datetime import datetime, timezone

from branchvisit.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ROLE_BH = "bh"
ROLE_ZH = "zh"
ROLE_CH = "ch"
ROLE_ADMIN = "admin"

USER_ROLES = frozenset({ROLE_BH, ROLE_ZH, ROLE_CH, ROLE_ADMIN})

# Role groups used by the authorization checks
VISIT_OWNER_ROLES = frozenset({ROLE_BH, ROLE_ADMIN})
REVIEWER_ROLES = frozenset({ROLE_ZH, ROLE_ADMIN})
ANALYST_ROLES = frozenset({ROLE_CH, ROLE_ZH, ROLE_ADMIN})


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    """A platform user: branch representative, zonal head, channel head or admin."""

    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    full_name = db.Column(db.String(150), nullable=False)
    employee_code = db.Column(
        db.String(30), nullable=True, unique=True,
        comment="HR employee code (E-code)",
    )
    email = db.Column(db.String(200), nullable=True)
    location = db.Column(db.String(100), nullable=True, index=True)
    role = db.Column(
        db.String(10), nullable=False, default=ROLE_BH, index=True,
        comment="bh | zh | ch | admin",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    @property
    def is_analyst(self) -> bool:
        return self.role in ANALYST_ROLES

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "employee_code": self.employee_code,
            "email": self.email,
            "location": self.location,
            "role": self.role,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.id[:8]} {self.full_name} ({self.role})>"
