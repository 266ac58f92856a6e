"""
Branch Visit Reporting Platform
Branch visit domain model.

Models:
    - BranchVisit: one visit report for one branch by one representative on one date.

Constants:
    - VISIT_STATUSES / VISIT_TRANSITIONS: lifecycle state machine table.
    - PERCENTAGE_FIELDS / COUNT_FIELDS: quantitative metric columns.
    - QUALITATIVE_FIELDS: the six yes/no culture questions with labels.
"""

import uuid
from datetime import datetime, timezone

from branchvisit.models import db
from branchvisit.models.branch import normalize_category

# ── Lifecycle ────────────────────────────────────────────────────────────────

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

VISIT_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED, STATUS_REJECTED)
TERMINAL_STATUSES = frozenset({STATUS_APPROVED, STATUS_REJECTED})
# Statuses counted in trends / category stats (sent for review or accepted)
REPORTED_STATUSES = (STATUS_SUBMITTED, STATUS_APPROVED)

# action → {from: [...], to: status, actor: owner|reviewer}
VISIT_TRANSITIONS = {
    "save": {"from": [STATUS_DRAFT], "to": STATUS_DRAFT, "actor": "owner"},
    "submit": {"from": [STATUS_DRAFT], "to": STATUS_SUBMITTED, "actor": "owner"},
    "approve": {"from": [STATUS_SUBMITTED], "to": STATUS_APPROVED, "actor": "reviewer"},
    "reject": {"from": [STATUS_SUBMITTED], "to": STATUS_REJECTED, "actor": "reviewer"},
}

DELETABLE_STATUSES = frozenset({STATUS_DRAFT})

# ── Metric fields ────────────────────────────────────────────────────────────

PERCENTAGE_FIELDS = (
    "manning_percentage",
    "attrition_percentage",
    "non_vendor_percentage",
    "er_percentage",
)

COUNT_FIELDS = (
    "total_employees_invited",
    "total_participants",
    "cwt_cases",
    "new_employees_total",
    "new_employees_covered",
    "star_employees_total",
    "star_employees_covered",
)

PERFORMANCE_LEVELS = ("low", "medium", "high")

QUALITATIVE_FIELDS = {
    "leaders_aligned_with_code": {
        "label": "Leaders Aligned with Code",
        "question": "Do leaders conduct business/work that is aligned with company's code of conduct?",
        "inverted": False,
    },
    "employees_feel_safe": {
        "label": "Employees Feel Safe",
        "question": "Do employees feel safe & secure at their workplace?",
        "inverted": False,
    },
    "employees_feel_motivated": {
        "label": "Employees Feel Motivated",
        "question": "Do employees feel motivated at workplace?",
        "inverted": False,
    },
    "leaders_abusive_language": {
        "label": "Leaders Using Abusive Language",
        "question": (
            "Do leaders use abusive and rude language in meetings or on the floor or in person?"
        ),
        "inverted": True,
    },
    "employees_comfort_escalation": {
        "label": "Comfort with Escalation",
        "question": (
            "Do employees feel comfortable to escalate or raise malpractice "
            "or ethically wrong things?"
        ),
        "inverted": False,
    },
    "inclusive_culture": {
        "label": "Inclusive Culture",
        "question": (
            "Do employees feel workplace culture is inclusive with respect to "
            "caste, gender & religion?"
        ),
        "inverted": False,
    },
}

# Fields a representative may write through create / save
EDITABLE_FIELDS = (
    ("branch_id", "visit_date", "hr_connect_session", "performance_level", "feedback")
    + PERCENTAGE_FIELDS
    + COUNT_FIELDS
    + tuple(QUALITATIVE_FIELDS)
)


def coverage_percentage(invited, participants) -> int:
    """round(participants / invited * 100); 0 when invited is 0 or unset."""
    if not invited:
        return 0
    return round((participants or 0) / invited * 100)


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class BranchVisit(db.Model):
    """
    A branch visit report.

    ``branch_category`` is a snapshot of the branch tier at the time the
    report was written; analytics grouped by month read the snapshot, not
    the live branch category.
    """

    __tablename__ = "branch_visits"
    __table_args__ = (
        db.Index("idx_visit_user_status", "user_id", "status"),
        db.Index("idx_visit_date_status", "visit_date", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    branch_id = db.Column(
        db.String(36), db.ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False, index=True,
        comment="Owning representative",
    )
    visit_date = db.Column(db.Date, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_DRAFT,
        comment="draft | submitted | approved | rejected",
    )
    branch_category = db.Column(
        db.String(20), nullable=True,
        comment="Snapshot of branches.category when the visit was recorded",
    )

    # HR connect session
    hr_connect_session = db.Column(db.Boolean, nullable=True)
    total_employees_invited = db.Column(db.Integer, nullable=True)
    total_participants = db.Column(db.Integer, nullable=True)

    # Branch metrics
    manning_percentage = db.Column(db.Float, nullable=True)
    attrition_percentage = db.Column(db.Float, nullable=True)
    non_vendor_percentage = db.Column(db.Float, nullable=True)
    er_percentage = db.Column(db.Float, nullable=True)
    cwt_cases = db.Column(db.Integer, nullable=True)
    performance_level = db.Column(db.String(10), nullable=True, comment="low | medium | high")

    # Employee coverage
    new_employees_total = db.Column(db.Integer, nullable=True)
    new_employees_covered = db.Column(db.Integer, nullable=True)
    star_employees_total = db.Column(db.Integer, nullable=True)
    star_employees_covered = db.Column(db.Integer, nullable=True)

    # Qualitative assessment ("yes" | "no" | NULL)
    leaders_aligned_with_code = db.Column(db.String(3), nullable=True)
    employees_feel_safe = db.Column(db.String(3), nullable=True)
    employees_feel_motivated = db.Column(db.String(3), nullable=True)
    leaders_abusive_language = db.Column(db.String(3), nullable=True)
    employees_comfort_escalation = db.Column(db.String(3), nullable=True)
    inclusive_culture = db.Column(db.String(3), nullable=True)

    feedback = db.Column(db.Text, nullable=True)

    # Review bookkeeping
    reviewed_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    branch = db.relationship("Branch", lazy="joined")
    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")

    @property
    def coverage_percentage(self) -> int:
        return coverage_percentage(self.total_employees_invited, self.total_participants)

    @property
    def category_label(self) -> str:
        return normalize_category(self.branch_category)

    def to_dict(self, include_branch: bool = True):
        d = {
            "id": self.id,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "visit_date": self.visit_date.isoformat() if self.visit_date else None,
            "status": self.status,
            "branch_category": self.category_label,
            "hr_connect_session": self.hr_connect_session,
            "performance_level": self.performance_level,
            "feedback": self.feedback,
            "coverage_percentage": self.coverage_percentage,
            "reviewed_by_id": self.reviewed_by_id,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        for field in PERCENTAGE_FIELDS + COUNT_FIELDS:
            d[field] = getattr(self, field)
        for field in QUALITATIVE_FIELDS:
            d[field] = getattr(self, field)
        if include_branch and self.branch is not None:
            d["branch"] = {
                "name": self.branch.name,
                "location": self.branch.location,
                "category": self.branch.category_label,
                "branch_code": self.branch.branch_code,
            }
        if self.user is not None:
            d["bh_name"] = self.user.full_name
            d["bh_code"] = self.user.employee_code
        return d

    def __repr__(self):
        return f"<BranchVisit {self.id[:8]} {self.visit_date} [{self.status}]>"
