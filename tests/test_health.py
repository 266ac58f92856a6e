"""
Health probes and response-header middleware.

pytest markers: integration
"""

from branchvisit.blueprints import health_bp as health_module
from conftest import auth_headers


def test_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_live_reports_dependencies(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["schema"]["status"] == "ok"
    assert body["checks"]["rate_limit_storage"]["backend"] == "memory"
    assert body["checks"]["app"]["testing"] is True


def test_live_degraded_when_table_missing(client, monkeypatch):
    monkeypatch.setattr(health_module, "REQUIRED_TABLES", ("users", "visit_photos"))
    res = client.get("/api/v1/health/live")
    assert res.status_code == 503
    body = res.get_json()
    assert body["status"] == "degraded"
    assert body["checks"]["schema"]["missing_tables"] == ["visit_photos"]
    assert body["checks"]["database"]["status"] == "ok"

def test_health_needs_no_actor(client):
    assert client.get("/api/v1/health/ready", headers={"X-User-Id": "ghost"}).status_code == 200


def test_security_headers(client):
    res = client.get("/api/v1/health/ready")
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"
    assert res.headers["Referrer-Policy"] == "no-referrer"
    assert "default-src 'none'" in res.headers["Content-Security-Policy"]
    assert res.headers["Cache-Control"] == "private, no-cache"
    assert "Server" not in res.headers


def test_error_responses_not_cached(client):
    res = client.get("/api/v1/visits/mine")
    assert res.status_code == 401
    assert res.headers["Cache-Control"] == "no-store"


def test_request_id_echoed(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert float(res.headers["X-Request-Duration-Ms"]) >= 0


def test_request_id_generated(client, bh):
    res = client.get("/api/v1/visits/mine", headers=auth_headers(bh))
    assert res.status_code == 200
    assert len(res.headers["X-Request-ID"]) == 12


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/nothing-here")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_method_not_allowed_is_json(client):
    res = client.put("/api/v1/health/ready", json={})
    assert res.status_code == 405
    assert "error" in res.get_json()
