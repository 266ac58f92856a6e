"""
Branch assignment service + API tests.

Covers:
  - assign / unassign with audit rows
  - duplicate assignment → 409, missing → 404
  - only BH users can receive branches; only zh/admin may assign
  - branch listing with BH counts, representatives with branch counts
  - representative detail
"""

import pytest

from branchvisit.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from branchvisit.models import db
from branchvisit.models.audit import AuditLog
from branchvisit.models.branch import BranchAssignment
from branchvisit.services import assignment_service
from conftest import assign, auth_headers, make_branch, make_user, make_visit


class TestAssignService:
    def test_assign(self, zh, bh2, other_branch):
        assignment = assignment_service.assign_branch(zh, bh2.id, other_branch.id)
        assert assignment.user_id == bh2.id
        assert BranchAssignment.query.count() == 1
        log = AuditLog.query.filter_by(action="assignment.assign").one()
        assert log.actor_id == zh.id

    def test_duplicate(self, zh, bh, branch):
        with pytest.raises(ConflictError):
            assignment_service.assign_branch(zh, bh.id, branch.id)

    def test_only_bh_can_be_assigned(self, zh, ch, other_branch):
        with pytest.raises(ValidationError):
            assignment_service.assign_branch(zh, ch.id, other_branch.id)

    def test_unknown_user_and_branch(self, zh, bh, other_branch):
        with pytest.raises(NotFoundError):
            assignment_service.assign_branch(zh, "nobody", other_branch.id)
        with pytest.raises(NotFoundError):
            assignment_service.assign_branch(zh, bh.id, "nowhere")

    def test_bh_cannot_assign(self, bh, bh2, other_branch):
        with pytest.raises(AuthorizationError):
            assignment_service.assign_branch(bh, bh2.id, other_branch.id)

    def test_unassign(self, zh, bh, branch):
        result = assignment_service.unassign_branch(zh, bh.id, branch.id)
        assert result["deleted"] is True
        assert BranchAssignment.query.count() == 0
        assert AuditLog.query.filter_by(action="assignment.unassign").count() == 1

    def test_unassign_missing(self, zh, bh, other_branch):
        with pytest.raises(NotFoundError):
            assignment_service.unassign_branch(zh, bh.id, other_branch.id)


class TestListings:
    def test_branches_with_counts(self, bh, bh2, branch, other_branch):
        assign(bh2, branch)
        db.session.commit()
        counts = {b["name"]: b["bh_count"] for b in assignment_service.list_branches_with_counts()}
        assert counts == {"Levent Central": 2, "Ulus Market": 0}

    def test_branches_with_counts_search(self, branch, other_branch):
        items = assignment_service.list_branches_with_counts(search="ulus")
        assert [b["name"] for b in items] == ["Ulus Market"]

    def test_assignments_by_branch(self, bh, branch):
        grouped = assignment_service.list_assignments_by_branch()
        assert list(grouped) == [branch.id]
        assert grouped[branch.id][0]["bh_name"] == "Deniz Arslan"

    def test_representatives(self, bh, bh2, zh, branch):
        reps = {r["full_name"]: r["branches_assigned"]
                for r in assignment_service.list_representatives()}
        assert reps == {"Deniz Arslan": 1, "Ece Sahin": 0}

    def test_representatives_search_by_code(self, bh, bh2, branch):
        reps = assignment_service.list_representatives(search="E4002")
        assert [r["full_name"] for r in reps] == ["Ece Sahin"]

    def test_representative_detail(self, bh, branch):
        make_visit(bh, branch, status="approved")
        make_visit(bh, branch, status="draft")
        db.session.commit()
        detail = assignment_service.representative_detail(bh.id)
        assert detail["user"]["id"] == bh.id
        assert [b["id"] for b in detail["branches"]] == [branch.id]
        assert detail["report_stats"]["total"] == 2
        assert detail["report_stats"]["approved"] == 1
        assert len(detail["recent_visits"]) == 2

    def test_representative_detail_missing(self):
        with pytest.raises(NotFoundError):
            assignment_service.representative_detail("ghost")


class TestAssignmentAPI:
    def test_assign_and_unassign(self, client, zh, bh2, other_branch):
        body = {"user_id": bh2.id, "branch_id": other_branch.id}
        res = client.post("/api/v1/assignments", json=body, headers=auth_headers(zh))
        assert res.status_code == 201
        assert res.get_json()["branch_id"] == other_branch.id

        res = client.post("/api/v1/assignments", json=body, headers=auth_headers(zh))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

        res = client.delete("/api/v1/assignments", json=body, headers=auth_headers(zh))
        assert res.status_code == 200
        assert res.get_json()["deleted"] is True

        res = client.delete("/api/v1/assignments", json=body, headers=auth_headers(zh))
        assert res.status_code == 404

    def test_missing_fields(self, client, zh):
        res = client.post("/api/v1/assignments", json={"user_id": "x"}, headers=auth_headers(zh))
        assert res.status_code == 400
        assert "branch_id" in res.get_json()["error"]

    def test_channel_head_forbidden(self, client, ch, bh, other_branch):
        res = client.post("/api/v1/assignments", json={"user_id": bh.id, "branch_id": other_branch.id},
                          headers=auth_headers(ch))
        assert res.status_code == 403

    def test_admin_allowed(self, client, admin, bh2, other_branch):
        res = client.post("/api/v1/assignments",
                          json={"user_id": bh2.id, "branch_id": other_branch.id},
                          headers=auth_headers(admin))
        assert res.status_code == 201

    def test_listing_endpoints(self, client, zh, bh, branch, other_branch):
        res = client.get("/api/v1/assignments", headers=auth_headers(zh))
        assert res.status_code == 200
        assert branch.id in res.get_json()

        res = client.get("/api/v1/assignments/branches?category=gold", headers=auth_headers(zh))
        assert [b["bh_count"] for b in res.get_json()["items"]] == [1]

    def test_representative_endpoints(self, client, zh, bh, branch):
        res = client.get("/api/v1/review/representatives", headers=auth_headers(zh))
        assert res.status_code == 200
        assert res.get_json()["total"] == 1

        res = client.get(f"/api/v1/review/representatives/{bh.id}", headers=auth_headers(zh))
        assert res.status_code == 200
        assert res.get_json()["user"]["employee_code"] == "E4001"

        res = client.get("/api/v1/review/representatives/ghost", headers=auth_headers(zh))
        assert res.status_code == 404

    def test_new_branch_is_assignable(self, client, zh, bh):
        fresh = make_branch("Bornova Campus", category="silver", location="Izmir")
        db.session.commit()
        res = client.post("/api/v1/assignments", json={"user_id": bh.id, "branch_id": fresh.id},
                          headers=auth_headers(zh))
        assert res.status_code == 201

    def test_inactive_bh_not_listed(self, client, zh, bh, branch):
        make_user("bh", name="Former Rep", active=False)
        db.session.commit()
        res = client.get("/api/v1/review/representatives", headers=auth_headers(zh))
        assert [r["full_name"] for r in res.get_json()["items"]] == ["Deniz Arslan"]
