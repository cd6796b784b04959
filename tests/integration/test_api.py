"""End-to-end tests for the HTTP and WebSocket API."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from formbuilder.main import app
from formbuilder.models.database import get_db
from formbuilder.routes import templates as template_routes
from formbuilder.services.analytics_store import get_analytics_store
from formbuilder.services.form_loader import FormTemplateLoader
from formbuilder.services.token_signer import TokenSigner

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"


@pytest.fixture
def client(db_engine, monkeypatch):
    """Test client backed by the in-memory test database."""
    TestSessionLocal = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    loader = FormTemplateLoader(templates_dir=str(TEMPLATES_DIR))
    monkeypatch.setattr(template_routes, "get_template_loader", lambda: loader)

    app.dependency_overrides[get_db] = override_get_db
    get_analytics_store().clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(client, owner_id="owner-1") -> dict:
    token = client.post("/api/auth/token", json={"ownerId": owner_id}).json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(client):
    return _auth(client)


@pytest.fixture
def form_id(client, headers, feedback_fields):
    response = client.post("/api/forms", json={"title": "Feedback", "fields": feedback_fields}, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def published_id(client, headers, form_id):
    response = client.post(f"/api/forms/{form_id}/publish", headers=headers)
    assert response.status_code == 200
    return form_id


ANSWERS = {"likes": "Yes", "why": "great", "topics": ["Speed"], "score": 4, "email": "a@example.com"}


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestAuth:
    """Tests for owner authentication."""

    def test_token_required(self, client):
        assert client.get("/api/forms").status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/api/forms", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_bad_owner_id(self, client):
        assert client.post("/api/auth/token", json={"ownerId": ""}).status_code == 422

    def test_issued_token_is_jwt(self, client):
        token = client.post("/api/auth/token", json={"ownerId": "owner-1"}).json()["token"]
        assert token.count(".") == 2
        assert TokenSigner.verify(token).owner_id == "owner-1"

    def test_non_bearer_scheme_rejected(self, client):
        token = client.post("/api/auth/token", json={"ownerId": "owner-1"}).json()["token"]
        response = client.get("/api/forms", headers={"Authorization": f"Basic {token}"})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestFormsApi:
    """Tests for form authoring endpoints."""

    def test_create_and_get(self, client, headers, form_id):
        data = client.get(f"/api/forms/{form_id}", headers=headers).json()

        assert data["status"] == "draft"
        assert data["fields"][1]["showIf"] == {"fieldId": "likes", "equals": "Yes"}
        assert data["ownerId"] == "owner-1"

    def test_list(self, client, headers, form_id):
        assert [f["id"] for f in client.get("/api/forms", headers=headers).json()] == [form_id]

    def test_other_owner_gets_404(self, client, form_id):
        response = client.get(f"/api/forms/{form_id}", headers=_auth(client, "owner-2"))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_invalid_schema(self, client, headers):
        response = client.post("/api/forms", headers=headers, json={
            "title": "Bad",
            "fields": [{"id": "a", "label": "A", "type": "text", "showIf": {"fieldId": "zz", "equals": "x"}}],
        })
        assert response.status_code == 422
        assert response.json()["error"] == "schema_invalid"

    def test_commands(self, client, headers, form_id):
        response = client.post(f"/api/forms/{form_id}/commands", headers=headers, json={"commands": [
            {"op": "duplicate_field", "fieldId": "score", "newFieldId": "score_2"},
            {"op": "reorder_field", "fromIndex": 5, "toIndex": 0},
        ]})
        assert response.status_code == 200
        assert response.json()["fields"][0]["label"] == "Score (Copy)"

    def test_publish_failure_lists_reasons(self, client, headers):
        form_id = client.post("/api/forms", headers=headers, json={
            "title": "T", "fields": [{"id": "a", "label": "Name", "type": "text"}],
        }).json()["id"]

        response = client.post(f"/api/forms/{form_id}/publish", headers=headers)

        assert response.status_code == 422
        assert response.json()["details"]["reasons"] == ["At least one field must be required"]

    def test_published_form_locked(self, client, headers, published_id, feedback_fields):
        response = client.put(
            f"/api/forms/{published_id}", headers=headers, json={"title": "New", "fields": feedback_fields}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "form_locked"

        commands = client.post(f"/api/forms/{published_id}/commands", headers=headers, json={
            "commands": [{"op": "remove_field", "fieldId": "why"}],
        })
        assert commands.status_code == 409

    def test_publish_twice(self, client, headers, published_id):
        response = client.post(f"/api/forms/{published_id}/publish", headers=headers)
        assert response.status_code == 422
        assert response.json()["details"]["reasons"] == ["Form is already published"]

    def test_delete_draft(self, client, headers, form_id):
        assert client.delete(f"/api/forms/{form_id}", headers=headers).status_code == 204
        assert client.get(f"/api/forms/{form_id}", headers=headers).status_code == 404


class TestRespondentApi:
    """Tests for the public form and submissions."""

    def test_draft_not_public(self, client, form_id):
        assert client.get(f"/api/public/forms/{form_id}").status_code == 404

    def test_public_form(self, client, published_id):
        data = client.get(f"/api/public/forms/{published_id}").json()
        assert data["status"] == "published"
        assert "ownerId" not in data

    def test_submit(self, client, headers, published_id):
        response = client.post(f"/api/forms/{published_id}/responses", json={"answers": ANSWERS})

        assert response.status_code == 201
        receipt = response.json()
        assert receipt["formId"] == published_id

        stored = client.get(f"/api/forms/{published_id}/responses/{receipt['id']}", headers=headers)
        assert stored.json()["answers"] == ANSWERS

    def test_submit_invalid(self, client, published_id):
        response = client.post(f"/api/forms/{published_id}/responses", json={"answers": {"likes": "Yes"}})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "response_invalid"
        assert body["details"] == {"fieldId": "why", "label": "Why?", "kind": "required",
                                   "message": "Please answer: Why?"}


class TestAnalyticsApi:
    """Tests for analytics, export and live updates."""

    def test_analytics(self, client, headers, published_id):
        client.post(f"/api/forms/{published_id}/responses", json={"answers": ANSWERS})
        client.post(f"/api/forms/{published_id}/responses",
                    json={"answers": {"likes": "No", "score": 2, "email": "b@example.com"}})

        data = client.get(f"/api/forms/{published_id}/analytics", headers=headers).json()

        assert data["count"] == 2
        assert data["fieldBreakdown"]["likes"] == {"buckets": {"Yes": 1, "No": 1}}
        assert data["averageRating"] == {"score": 3.0}
        assert "email" not in data["fieldBreakdown"]
        assert len(data["responseTrends"]) == 7
        assert sum(point["count"] for point in data["responseTrends"]) == 2
        assert {skipped["fieldId"] for skipped in data["skippedFields"]} == {"likes", "why", "topics", "score"}
        assert 0 < data["completionRate"] <= 100

    def test_export(self, client, headers, published_id):
        client.post(f"/api/forms/{published_id}/responses", json={"answers": ANSWERS})

        response = client.get(f"/api/forms/{published_id}/export.csv", headers=headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "a@example.com" not in response.text

    def test_live_update_signal(self, client, published_id):
        """Test dashboard sockets are told to re-fetch after a submission."""
        with client.websocket_connect(f"/ws/forms/{published_id}") as websocket:
            client.post(f"/api/forms/{published_id}/responses", json={"answers": ANSWERS})
            assert websocket.receive_json() == {"type": "analytics_changed", "formId": published_id}


class TestTemplatesApi:
    """Tests for template endpoints."""

    def test_list(self, client, headers):
        assert "event_feedback" in client.get("/api/templates", headers=headers).json()

    def test_create_from_template(self, client, headers):
        response = client.post("/api/templates/event_feedback/forms", headers=headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "draft"
        assert data["title"] == "Event Feedback"

        publish = client.post(f"/api/forms/{data['id']}/publish", headers=headers)
        assert publish.status_code == 200

    def test_unknown_template(self, client, headers):
        assert client.post("/api/templates/nope/forms", headers=headers).status_code == 404
