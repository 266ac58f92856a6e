"""
Branch Visit Reporting Platform
Branch and branch-assignment models.

Models:
    - Branch: a physical branch with a tier category.
    - BranchAssignment: representative ↔ branch link (many-to-many).
"""

import uuid
from datetime import date, datetime, timezone

from branchvisit.models import db

# ── Constants ────────────────────────────────────────────────────────────────

UNKNOWN_CATEGORY = "unknown"

# Display order: highest tier first
BRANCH_CATEGORIES = ("platinum", "diamond", "gold", "silver", "bronze", UNKNOWN_CATEGORY)

CATEGORY_COLORS = {
    "platinum": "#6366f1",
    "diamond": "#3b82f6",
    "gold": "#f59e0b",
    "silver": "#6b7280",
    "bronze": "#f97316",
    UNKNOWN_CATEGORY: "#9ca3af",
}


def normalize_category(value: str | None) -> str:
    """Lower-case a category label; NULL or unrecognised labels read as 'unknown'."""
    if not value:
        return UNKNOWN_CATEGORY
    value = str(value).strip().lower()
    return value if value in BRANCH_CATEGORIES else UNKNOWN_CATEGORY


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Branch(db.Model):
    """A branch location.  Managed by master data; read-only for visit workflows."""

    __tablename__ = "branches"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(100), nullable=True, index=True)
    category = db.Column(
        db.String(20), nullable=True, index=True,
        comment="platinum | diamond | gold | silver | bronze | unknown",
    )
    branch_code = db.Column(db.String(30), nullable=True, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    assignments = db.relationship(
        "BranchAssignment", back_populates="branch", cascade="all, delete-orphan",
        lazy="select",
    )

    @property
    def category_label(self) -> str:
        return normalize_category(self.category)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "category": self.category_label,
            "branch_code": self.branch_code,
        }

    def __repr__(self):
        return f"<Branch {self.branch_code or self.id[:8]} {self.name}>"


class BranchAssignment(db.Model):
    """
    Assignment of a branch to a representative.

    Rows are deleted on unassign; the audit log is the only history.
    """

    __tablename__ = "branch_assignments"
    __table_args__ = (
        db.UniqueConstraint("user_id", "branch_id", name="uq_assignment_user_branch"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    branch_id = db.Column(
        db.String(36), db.ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    assigned_date = db.Column(db.Date, nullable=False, default=date.today)

    branch = db.relationship("Branch", back_populates="assignments")
    user = db.relationship("User", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "assigned_date": self.assigned_date.isoformat() if self.assigned_date else None,
            "bh_name": self.user.full_name if self.user else None,
            "bh_code": self.user.employee_code if self.user else None,
        }

    def __repr__(self):
        return f"<BranchAssignment {self.user_id[:8]} → {self.branch_id[:8]}>"
