"""
Integration Tests for the HTTP API.

Each test builds a fresh app over an in-memory repository and drives it
with FastAPI's TestClient (startup seeds the owner account).

Usage:
    cd backend && pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from conftest import member_app_answers
from portal.main import create_app
from portal.services.user_service import OWNER_EMAIL, OWNER_PASSWORD
from portal.store import InMemoryDocumentStore, PortalRepository

API = "/api/v1"


# ============================================================================
# TEST FIXTURES
# ============================================================================


@pytest.fixture
def client():
    app = create_app(PortalRepository(InMemoryDocumentStore()))
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email="member@example.com", password="secret1", name="Member") -> str:
    response = client.post(f"{API}/auth/register", json={"email": email, "password": password, "display_name": name})
    assert response.status_code == 201, response.text
    return response.json()["token"]


def owner_token(client) -> str:
    response = client.post(f"{API}/auth/login", json={"email": OWNER_EMAIL, "password": OWNER_PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["token"]


# ============================================================================
# Public endpoints
# ============================================================================


class TestPublic:
    def test_health(self, client):
        assert client.get(f"{API}/health").json()["status"] == "healthy"

    def test_site_has_no_secrets(self, client):
        body = client.get(f"{API}/site").json()
        assert body["registration_enabled"] is True
        assert "discord_config" not in body

    def test_forms(self, client):
        forms = client.get(f"{API}/forms").json()["forms"]
        assert [f["id"] for f in forms] == ["member-app", "staff-app", "ban-appeal"]
        assert client.get(f"{API}/forms/nope").status_code == 404

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get(f"{API}/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not Found"}

    def test_wrong_method_uses_error_envelope(self, client):
        response = client.delete(f"{API}/health")
        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method Not Allowed"}

    def test_route(self, client):
        assert client.get(f"{API}/route", params={"fragment": "#portal"}).json()["route"] == "auth"
        token = register(client)
        response = client.get(f"{API}/route", params={"fragment": "#portal"}, headers=auth_header(token))
        assert response.json()["route"] == "portal"

    def test_security_headers(self, client):
        response = client.get(f"{API}/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers


# ============================================================================
# Auth
# ============================================================================


class TestAuth:
    def test_register_me_logout(self, client):
        token = register(client)
        me = client.get(f"{API}/auth/me", headers=auth_header(token)).json()
        assert me["user"]["email"] == "member@example.com"
        assert "hashed_password" not in me["user"]
        assert me["permissions"] == []

        assert client.post(f"{API}/auth/logout", headers=auth_header(token)).json() == {"success": True}
        assert client.get(f"{API}/auth/me", headers=auth_header(token)).status_code == 401

    def test_error_envelope(self, client):
        response = client.post(f"{API}/auth/login", json={"email": "x@example.com", "password": "secret1"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "No account found with this email."}

    def test_duplicate_registration(self, client):
        register(client)
        response = client.post(f"{API}/auth/register", json={"email": "member@example.com", "password": "secret1"})
        assert response.status_code == 409

    def test_validation_error_envelope(self, client):
        response = client.post(f"{API}/auth/login", json={"email": "x@example.com"})
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_owner_permissions(self, client):
        me = client.get(f"{API}/auth/me", headers=auth_header(owner_token(client))).json()
        assert "delete_users" in me["permissions"]

    def test_oauth_not_configured(self, client):
        response = client.get(f"{API}/auth/oauth/discord/authorize-url")
        assert response.status_code == 400
        assert "not configured" in response.json()["error"]


# ============================================================================
# Applicant flow and administration
# ============================================================================


class TestApplicationFlow:
    def test_submit_review_and_chat(self, client):
        member = register(client)
        owner = owner_token(client)

        response = client.post(
            f"{API}/applications",
            json={"form_id": "member-app", "responses": member_app_answers()},
            headers=auth_header(member),
        )
        assert response.status_code == 201, response.text
        app_id = response.json()["application"]["id"]

        mine = client.get(f"{API}/applications/mine", headers=auth_header(member)).json()["applications"]
        assert [a["id"] for a in mine] == [app_id]

        response = client.patch(
            f"{API}/admin/applications/{app_id}/status", json={"status": "approved"}, headers=auth_header(owner)
        )
        assert response.json()["application"]["status"] == "approved"

        client.post(f"{API}/applications/{app_id}/chat", json={"text": "Thanks!"}, headers=auth_header(member))
        chat = client.get(f"{API}/applications/{app_id}/chat", headers=auth_header(member)).json()["chat"]
        assert chat["messages"][0]["text"] == "Thanks!"

        stats = client.get(f"{API}/admin/applications/stats", headers=auth_header(owner)).json()
        assert stats["approved"] == 1

    def test_submit_requires_sign_in(self, client):
        response = client.post(f"{API}/applications", json={"form_id": "member-app", "responses": {}})
        assert response.status_code == 401

    def test_missing_fields(self, client):
        member = register(client)
        response = client.post(
            f"{API}/applications", json={"form_id": "member-app", "responses": {}}, headers=auth_header(member)
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Please fill in all required fields")


class TestAdmin:
    def test_members_blocked_from_admin(self, client):
        member = register(client)
        assert client.get(f"{API}/admin/users", headers=auth_header(member)).status_code == 403
        assert client.get(f"{API}/admin/users").status_code == 401

    def test_role_change_applies_to_live_session(self, client):
        member = register(client)
        owner = owner_token(client)
        users = client.get(f"{API}/admin/users", headers=auth_header(owner)).json()
        member_id = next(u["id"] for u in users["users"] if u["email"] == "member@example.com")

        response = client.put(
            f"{API}/admin/users/{member_id}/role", json={"role": "staff"}, headers=auth_header(owner)
        )
        assert response.status_code == 200, response.text
        assert client.get(f"{API}/admin/users", headers=auth_header(member)).status_code == 200

    def test_registration_toggle(self, client):
        owner = owner_token(client)
        response = client.patch(
            f"{API}/admin/settings/access", json={"registration_enabled": False}, headers=auth_header(owner)
        )
        assert response.status_code == 200, response.text
        response = client.post(f"{API}/auth/register", json={"email": "late@example.com", "password": "secret1"})
        assert response.status_code == 403

    def test_form_builder(self, client):
        owner = auth_header(owner_token(client))
        response = client.post(f"{API}/admin/forms", json={"name": "Event"}, headers=owner)
        assert response.status_code == 201, response.text
        response = client.post(
            f"{API}/admin/forms/event/fields", json={"label": "Team Name", "required": True}, headers=owner
        )
        assert response.status_code == 201, response.text
        assert client.delete(f"{API}/admin/forms/member-app", headers=owner).status_code == 403
        assert client.delete(f"{API}/admin/forms/event", headers=owner).json()["selected_form_id"] == "member-app"

    def test_custom_role_lifecycle(self, client):
        owner = auth_header(owner_token(client))
        response = client.post(
            f"{API}/admin/roles", json={"name": "Event Host", "permissions": ["access_admin"]}, headers=owner
        )
        assert response.status_code == 201, response.text
        roles = client.get(f"{API}/admin/roles", headers=owner).json()
        assert "event-host" in [r["id"] for r in roles["roles"]]
        assert client.delete(f"{API}/admin/roles/event-host", headers=owner).json()["reassigned_users"] == 0
