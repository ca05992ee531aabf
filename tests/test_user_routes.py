from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from servicedesk.core.config import Settings, get_settings
from servicedesk.core.errors import InvalidValueError
from servicedesk.dependencies import tickets as ticket_deps
from servicedesk.main import create_app
from servicedesk.users.models import User, UserRole

NOW = datetime(2026, 3, 4, 9, 30, tzinfo=timezone.utc)
AGENT = User(id="u-2", email="agent@example.com", name="Agent", department="IT", role=UserRole.AGENT, created_at=NOW)


def _client(*, admin_key: str | None = "secret"):
    app = create_app()
    service = AsyncMock()

    async def override_service():
        return service

    app.dependency_overrides[ticket_deps.get_user_service] = override_service
    app.dependency_overrides[get_settings] = lambda: Settings(admin_key=admin_key)
    return app, TestClient(app), service


@pytest.fixture
def user_client():
    app, client, service = _client()
    try:
        yield client, service
    finally:
        app.dependency_overrides.clear()


def test_me_returns_known_user(user_client):
    client, service = user_client
    service.get_by_email = AsyncMock(return_value=AGENT)

    response = client.get("/api/me", params={"email": " agent@example.com "})

    assert response.status_code == 200
    assert response.json()["user"]["role"] == "AGENT"
    service.get_by_email.assert_awaited_with("agent@example.com")


def test_me_defaults_unknown_user_to_requester(user_client):
    client, service = user_client
    service.get_by_email = AsyncMock(return_value=None)

    response = client.get("/api/me", params={"email": "new@example.com"})

    user = response.json()["user"]
    assert user["id"] is None
    assert user["email"] == "new@example.com"
    assert user["role"] == "REQUESTER"
    assert user["name"] is None and user["department"] is None


def test_me_requires_email(user_client):
    client, _ = user_client
    response = client.get("/api/me")
    assert response.status_code == 400
    assert response.json()["detail"] == "email is required"


def test_admin_search_requires_key(user_client):
    client, service = user_client
    service.search = AsyncMock(return_value=[AGENT])

    assert client.get("/api/admin/users").status_code == 401
    assert client.get("/api/admin/users", headers={"x-admin-key": "wrong"}).status_code == 401

    response = client.get("/api/admin/users", params={"query": "agent"}, headers={"x-admin-key": "secret"})
    assert response.status_code == 200
    assert response.json()["users"][0]["email"] == "agent@example.com"
    service.search.assert_awaited_once_with("agent")


def test_admin_routes_fail_closed_without_configured_key():
    app, client, service = _client(admin_key=None)
    try:
        response = client.get("/api/admin/users", headers={"x-admin-key": "anything"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json()["detail"] == "ADMIN_KEY not configured in server env"
    service.search.assert_not_awaited()


def test_role_update_upserts_user(user_client):
    client, service = user_client
    service.upsert_role = AsyncMock(return_value=AGENT)

    response = client.patch(
        "/api/admin/users/role",
        json={"email": "agent@example.com", "role": "agent", "department": "IT"},
        headers={"x-admin-key": "secret"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "user": {
            "id": "u-2",
            "email": "agent@example.com",
            "name": "Agent",
            "department": "IT",
            "role": "AGENT",
            "createdAt": "2026-03-04T09:30:00Z",
        },
    }
    service.upsert_role.assert_awaited_once_with("agent@example.com", "agent", name=None, department="IT")


def test_role_update_rejects_unknown_role(user_client):
    client, service = user_client
    service.upsert_role = AsyncMock(side_effect=InvalidValueError("role", "root", ("REQUESTER", "AGENT", "ADMIN")))

    response = client.patch(
        "/api/admin/users/role",
        json={"email": "agent@example.com", "role": "root"},
        headers={"x-admin-key": "secret"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "role must be REQUESTER|AGENT|ADMIN"
