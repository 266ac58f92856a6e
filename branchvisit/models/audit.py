"""
Audit trail model.

Every visit lifecycle step and every branch (un)assignment appends exactly
one ``AuditLog`` row in the same transaction as the change itself.  Rows
are never updated or deleted; a deleted draft keeps its history.
"""

import json
from datetime import datetime, timezone

from flask import g, has_request_context

from branchvisit.models import db

ENTITY_VISIT = "branch_visit"
ENTITY_ASSIGNMENT = "branch_assignment"
AUDIT_ENTITY_TYPES = frozenset({ENTITY_VISIT, ENTITY_ASSIGNMENT})

AUDIT_ACTIONS = frozenset({
    "visit.create",
    "visit.save",
    "visit.submit",
    "visit.approve",
    "visit.reject",
    "visit.delete",
    "assignment.assign",
    "assignment.unassign",
})


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_actor", "actor_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(30), nullable=False, comment="branch_visit | branch_assignment")
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(40), nullable=False, comment="visit.submit | assignment.assign | ...")
    actor_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    request_id = db.Column(db.String(64), nullable=True)
    diff_json = db.Column(db.Text, default="{}", comment="JSON: {field: {old, new}} or action payload")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    actor = db.relationship("User", lazy="joined")

    @property
    def diff(self) -> dict:
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "actor_name": self.actor.full_name if self.actor else None,
            "request_id": self.request_id,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} {self.entity_type}/{self.entity_id[:8]}>"


def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append one audit row and flush; the caller owns the commit.

    The current request id (set by the timing middleware) is attached when
    called inside a request.  Unknown entity types or actions raise
    ValueError, which is a programming error rather than user input.
    """
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type}")
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    request_id = getattr(g, "request_id", None) if has_request_context() else None
    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_id=actor_id,
        request_id=request_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
