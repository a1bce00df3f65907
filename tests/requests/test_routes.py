"""HTTP tests for the request routes."""

import json

import pytest
from fastapi.testclient import TestClient

from intake_svc.config import Config
from intake_svc.main import build_components, create_app
from intake_svc.notifications.channels import LoggingChannel

from tests.conftest import (
    LEGAL_ENTITY_ID,
    MISSING_DIVISION_ID,
    OTHER_LEGAL_ENTITY_ID,
    employee_payload,
    legal_entity_payload,
)

pytestmark = pytest.mark.integration


def _headers(
    consumer_id: str = "hr-1",
    client_id: str = LEGAL_ENTITY_ID,
    email: str = "hr@example.com",
) -> dict[str, str]:
    return {
        "X-Consumer-Id": consumer_id,
        "X-Consumer-Metadata": json.dumps({"client_id": client_id, "email": email}),
    }


@pytest.fixture
def client(registry):
    config = Config()
    components = build_components(config, registry=registry, channel=LoggingChannel())
    with TestClient(create_app(config, components=components)) as client:
        yield client


def _submit(client, **overrides) -> str:
    response = client.post("/requests/employee_request", json=employee_payload(**overrides), headers=_headers())
    assert response.status_code == 201
    return response.json()["id"]


class TestSubmit:

    def test_submit(self, client):
        response = client.post("/requests/employee_request", json=employee_payload(), headers=_headers())

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "NEW"
        assert body["kind"] == "employee_request"

        stored = client.get(f"/requests/{body['id']}").json()
        assert stored["data"] == employee_payload()
        assert stored["created_by"] == "hr-1"

    def test_schema_violations(self, client):
        payload = employee_payload(start_date="yesterday")

        response = client.post("/requests/employee_request", json=payload, headers=_headers())

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["violations"] == [
            {"path": "$.start_date", "message": body["violations"][0]["message"], "rule": "format"},
        ]

    def test_invalid_reference(self, client):
        response = client.post(
            "/requests/employee_request",
            json=employee_payload(division_id=MISSING_DIVISION_ID),
            headers=_headers(),
        )

        assert response.status_code == 422
        assert response.json()["references"] == [
            {"field": "division_id", "entity_type": "divisions", "id": MISSING_DIVISION_ID},
        ]

    def test_registry_unavailable(self, client, registry):
        registry.unavailable.add("divisions")

        response = client.post("/requests/employee_request", json=employee_payload(), headers=_headers())

        assert response.status_code == 503
        assert response.json()["retryable"] is True

    def test_unknown_kind(self, client):
        response = client.post("/requests/nope", json={}, headers=_headers())
        assert response.status_code == 404

    def test_missing_identity(self, client):
        response = client.post("/requests/employee_request", json=employee_payload())
        assert response.status_code == 401


class TestQueries:

    def test_list_scoped_to_caller(self, client):
        mine = _submit(client)
        _submit(client, legal_entity_id=OTHER_LEGAL_ENTITY_ID)

        response = client.get("/requests", headers=_headers())

        assert response.status_code == 200
        body = response.json()
        assert [r["id"] for r in body["data"]] == [mine]
        assert body["data"][0]["scope"] == LEGAL_ENTITY_ID
        assert body["paging"]["total_entries"] == 1

    def test_list_includes_unscoped_kinds(self, client):
        mine = _submit(client)
        clinic = client.post("/requests/legal_entity_request", json=legal_entity_payload(), headers=_headers())
        assert clinic.status_code == 201

        body = client.get("/requests", headers=_headers()).json()

        assert {r["id"] for r in body["data"]} == {mine, clinic.json()["id"]}
        scopes = {r["kind"]: r["scope"] for r in body["data"]}
        assert scopes == {"employee_request": LEGAL_ENTITY_ID, "legal_entity_request": None}

    def test_list_requires_organization_scope(self, client):
        _submit(client)

        response = client.get("/requests", headers={"X-Consumer-Id": "reviewer-1"})

        assert response.status_code == 403
        assert "data" not in response.json()

    def test_list_invalid_status(self, client):
        response = client.get("/requests?status=PENDING", headers=_headers())
        assert response.status_code == 400

    def test_get_unknown(self, client):
        response = client.get("/requests/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Not found"

    def test_list_kinds(self, client):
        response = client.get("/requests/kinds")

        names = {k["name"] for k in response.json()}
        assert {"employee_request", "legal_entity_request", "medication_request_request"} <= names

    def test_invitee(self, client):
        request_id = _submit(client)

        invitee = client.get(f"/requests/{request_id}/invitee", headers=_headers("petro", email="Petro@example.com"))
        assert invitee.status_code == 200
        assert invitee.json()["id"] == request_id

        assert client.get(f"/requests/{request_id}/invitee", headers=_headers()).status_code == 403

    def test_invitee_ignores_query_email(self, client):
        request_id = _submit(client)

        spoofed = client.get(f"/requests/{request_id}/invitee?email=petro@example.com", headers=_headers())
        anonymous = client.get(f"/requests/{request_id}/invitee?email=petro@example.com")

        assert spoofed.status_code == 403
        assert anonymous.status_code == 401


class TestActions:

    def test_approve_then_conflict(self, client, registry):
        request_id = _submit(client)

        approved = client.post(f"/requests/{request_id}/actions/approve", headers=_headers("reviewer-1"))
        again = client.post(f"/requests/{request_id}/actions/approve", headers=_headers("reviewer-1"))

        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"
        assert approved.json()["updated_by"] == "reviewer-1"
        assert len(registry.created) == 1

        assert again.status_code == 409
        assert again.json()["detail"] == "Request status is APPROVED and cannot be updated"
        assert again.json()["current_status"] == "APPROVED"

    def test_approve_remote_failure(self, client, registry):
        request_id = _submit(client)
        registry.fail_create.add("employees")

        response = client.post(f"/requests/{request_id}/actions/approve", headers=_headers())

        assert response.status_code == 502
        assert response.json()["stage"] == "create_entity"
        assert client.get(f"/requests/{request_id}").json()["status"] == "NEW"

    def test_reject(self, client):
        request_id = _submit(client)

        response = client.post(f"/requests/{request_id}/actions/reject", headers=_headers())

        assert response.status_code == 200
        assert response.json()["status"] == "REJECTED"


class TestHealth:

    def test_health(self, client):
        _submit(client)

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["requests"]["NEW"] == 1
        assert body["notifications"]["sent"] == 1
