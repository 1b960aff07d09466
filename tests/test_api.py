"""Tests for the HTTP routes (FastAPI TestClient with dependency overrides)."""

import httpx
import pytest
from fastapi.testclient import TestClient

from app.analyzer.aggregator import MetricsAggregator
from app.api.project_routes import get_credential_validator, get_metrics_aggregator
from app.connectors.supabase.validator import CredentialValidator
from app.database import get_project_repository, get_rule_repository
from app.main import app

PROJECT_BODY = {
    "name": "  Shop  ",
    "url": " https://abcd1234.example-host.co ",
    "serviceRoleKey": " k1 ",
    "personalAccessToken": "pat-1",
}


def relation_missing(request):
    return httpx.Response(404, json={"code": "42P01", "message": "missing"})


def down(request):
    return httpx.Response(500)


@pytest.fixture
def upstream():
    """Mutable handler slot so tests can swap upstream behaviour."""
    return {"handler": relation_missing}


@pytest.fixture
def client(projects, rules, upstream):
    def dispatch(request):
        return upstream["handler"](request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(dispatch))
    app.dependency_overrides[get_project_repository] = lambda: projects
    app.dependency_overrides[get_rule_repository] = lambda: rules
    app.dependency_overrides[get_credential_validator] = lambda: CredentialValidator(
        http_client=http
    )
    app.dependency_overrides[get_metrics_aggregator] = lambda: MetricsAggregator(http)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def registered(client):
    resp = client.post("/projects", json=PROJECT_BODY)
    assert resp.status_code == 201
    return resp.json()


class TestProjectRoutes:

    def test_register(self, registered, projects):
        assert registered["name"] == "Shop"
        assert registered["projectRef"] == "abcd1234"
        assert registered["url"] == "https://abcd1234.example-host.co"
        assert registered["status"] == "healthy"
        assert registered["hasSecondaryToken"] is True
        stored = projects.get(registered["id"])
        assert stored.credential.get_secret_value() == "k1"

    def test_register_never_echoes_secrets(self, client):
        body = client.post("/projects", json=PROJECT_BODY).text
        assert "k1" not in body
        assert "pat-1" not in body

    def test_default_name(self, client):
        resp = client.post("/projects", json={**PROJECT_BODY, "name": ""})
        assert resp.json()["name"] == "My Project"

    def test_invalid_url(self, client, projects):
        resp = client.post("/projects", json={**PROJECT_BODY, "url": "https://nope.io"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "InvalidUrlFormat"
        assert projects.list() == []

    def test_rejected_credential(self, client, upstream, projects):
        upstream["handler"] = lambda r: httpx.Response(401, json={"message": "Invalid API key"})
        resp = client.post("/projects", json=PROJECT_BODY)
        assert resp.status_code == 400
        assert resp.json()["detail"] == {
            "error": "CredentialRejected",
            "message": "Invalid API key",
        }
        assert projects.list() == []

    def test_missing_fields(self, client):
        resp = client.post("/projects", json={**PROJECT_BODY, "serviceRoleKey": "  "})
        assert resp.status_code == 422

    def test_list_and_get(self, client, registered):
        assert [p["id"] for p in client.get("/projects").json()] == [registered["id"]]
        assert client.get(f"/projects/{registered['id']}").json() == registered

    def test_get_missing(self, client):
        assert client.get("/projects/nope").status_code == 404

    def test_replace_keeps_identity(self, client, registered, projects):
        resp = client.put(
            f"/projects/{registered['id']}",
            json={**PROJECT_BODY, "name": "Renamed", "personalAccessToken": None},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == registered["id"]
        assert body["createdAt"] == registered["createdAt"]
        assert body["name"] == "Renamed"
        assert body["hasSecondaryToken"] is False
        assert len(projects.list()) == 1

    def test_delete_keeps_rules_by_default(self, client, registered, rules, make_rule):
        rules.upsert(make_rule(project_id=registered["id"]))
        assert client.delete(f"/projects/{registered['id']}").status_code == 204
        assert client.get("/projects").json() == []
        assert len(rules.list()) == 1

    def test_delete_cascade(self, client, registered, rules, make_rule):
        rules.upsert(make_rule(project_id=registered["id"]))
        rules.upsert(make_rule(project_id="other"))
        client.delete(f"/projects/{registered['id']}", params={"cascade": "true"})
        assert [r.project_id for r in rules.list()] == ["other"]

    def test_delete_missing_is_noop(self, client):
        assert client.delete("/projects/nope").status_code == 204

    def test_dashboard_with_upstream_down(self, client, registered, upstream):
        upstream["handler"] = down
        resp = client.get(f"/projects/{registered['id']}/dashboard")
        assert resp.status_code == 200
        assert resp.json() == {
            "stats": {
                "totalUsers": 0,
                "activeUsers": 0,
                "apiRequests": 0,
                "databaseSize": "0 MB",
                "usersTrend": 0,
                "activeUsersTrend": 0,
                "requestsTrend": 0,
            },
            "usage": {"cpu": 0, "memory": 0, "disk": 0},
            "activity": [],
        }

    def test_dashboard_missing_project(self, client):
        assert client.get("/projects/nope/dashboard").status_code == 404


class TestRuleRoutes:

    RULE = {
        "projectId": "p1",
        "name": "CPU high",
        "triggerType": "threshold",
        "threshold": {"metric": "cpu", "value": 90},
        "tableName": "ignored",
        "message": "CPU above 90%",
    }

    def test_create(self, client):
        resp = client.post("/rules", json=self.RULE)
        assert resp.status_code == 201
        body = resp.json()
        assert body["enabled"] is True
        assert body["threshold"] == {"metric": "cpu", "value": 90.0}
        assert body["tableName"] is None

    def test_create_invalid(self, client):
        resp = client.post("/rules", json={**self.RULE, "triggerType": "new_row", "tableName": ""})
        assert resp.status_code == 422

    def test_list_filtered(self, client):
        for project_id in ("p1", "p1", "p2"):
            client.post("/rules", json={**self.RULE, "projectId": project_id})
        assert len(client.get("/rules", params={"projectId": "p1"}).json()) == 2
        assert len(client.get("/rules").json()) == 3

    def test_replace(self, client):
        created = client.post("/rules", json=self.RULE).json()
        resp = client.put(
            f"/rules/{created['id']}",
            json={**self.RULE, "triggerType": "new_user", "name": "Signups"},
        )
        body = resp.json()
        assert body["id"] == created["id"]
        assert body["createdAt"] == created["createdAt"]
        assert body["threshold"] is None
        assert body["name"] == "Signups"

    def test_replace_missing(self, client):
        assert client.put("/rules/nope", json=self.RULE).status_code == 404

    def test_toggle(self, client, rules):
        created = client.post("/rules", json=self.RULE).json()
        resp = client.patch(f"/rules/{created['id']}/enabled", json={"enabled": False})
        assert resp.status_code == 204
        assert rules.get(created["id"]).enabled is False

    def test_toggle_missing_is_silent(self, client, rules):
        client.post("/rules", json=self.RULE)
        before = rules.list()
        assert client.patch("/rules/rX/enabled", json={"enabled": False}).status_code == 204
        assert rules.list() == before

    def test_delete(self, client, rules):
        created = client.post("/rules", json=self.RULE).json()
        assert client.delete(f"/rules/{created['id']}").status_code == 204
        assert client.delete(f"/rules/{created['id']}").status_code == 204
        assert rules.list() == []


def test_health():
    assert TestClient(app).get("/health").json()["status"] == "healthy"
