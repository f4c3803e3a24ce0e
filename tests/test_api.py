"""
HTTP tests: envelope shape, status mapping and the auth dependency.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from taskhub.api.app import create_app
from taskhub.core.utils import utc_now
from taskhub.storage import create_local_storage

from conftest import PASSWORD

API = "/api/v1"


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings, store=create_local_storage())) as client:
        yield client


def register(client, name, email):
    response = client.post(f"{API}/auth/register", json={
        "name": name,
        "email": email,
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}


@pytest.fixture
def alice(client):
    return register(client, "Alice", "alice@example.com")


@pytest.fixture
def bob(client):
    return register(client, "Bob", "bob@example.com")


@pytest.fixture
def carol(client):
    return register(client, "Carol", "carol@example.com")


@pytest.fixture
def project_id(client, alice, bob):
    _, headers = alice
    bob_id, _ = bob
    response = client.post(f"{API}/projects", headers=headers, json={
        "name": "Website Redesign",
        "description": "New marketing site",
        "members": [bob_id],
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


# =============================================================================
# Health & envelope
# =============================================================================


class TestBasics:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nope")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"

    def test_validation_error_is_400(self, client):
        response = client.post(f"{API}/auth/register", json={
            "name": "Dana",
            "email": "not-an-email",
            "password": "weak",
            "confirm_password": "weak",
        })
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        fields = {d["field"] for d in error["details"]}
        assert {"email", "password"} <= fields

    def test_password_confirmation(self, client):
        response = client.post(f"{API}/auth/register", json={
            "name": "Dana",
            "email": "dana@example.com",
            "password": PASSWORD,
            "confirm_password": "Other123!",
        })
        assert response.status_code == 400

    def test_unexpected_error_is_500(self, settings):
        app = create_app(settings.model_copy(update={"environment": "production"}))

        @app.get("/boom")
        async def boom():
            raise RuntimeError("database password is hunter2")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.text


# =============================================================================
# Auth
# =============================================================================


class TestAuth:
    def test_register_login_me(self, client, alice):
        user_id, headers = alice
        me = client.get(f"{API}/auth/me", headers=headers)
        assert me.status_code == 200
        body = me.json()
        assert body["success"] is True
        assert body["data"]["id"] == user_id
        assert "password_hash" not in body["data"]

        login = client.post(f"{API}/auth/login", json={"email": "ALICE@example.com", "password": PASSWORD})
        assert login.status_code == 200
        assert login.json()["data"]["token_type"] == "bearer"

    def test_duplicate_registration(self, client, alice):
        response = client.post(f"{API}/auth/register", json={
            "name": "Alice Again",
            "email": "alice@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        })
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "USER_EXISTS"

    def test_wrong_password(self, client, alice):
        response = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "password": "Wrong123!"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    @pytest.mark.parametrize("headers, code", [
        ({}, "MISSING_TOKEN"),
        ({"Authorization": "Bearer garbage"}, "INVALID_TOKEN"),
    ])
    def test_token_errors(self, client, headers, code):
        response = client.get(f"{API}/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == code

    def test_refresh_token(self, client):
        client.post(f"{API}/auth/register", json={
            "name": "Dana",
            "email": "dana@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        })
        login = client.post(f"{API}/auth/login", json={"email": "dana@example.com", "password": PASSWORD})
        refresh = login.json()["data"]["refresh_token"]

        response = client.post(f"{API}/auth/refresh-token", json={"refresh_token": refresh})
        assert response.status_code == 200
        token = response.json()["data"]["access_token"]
        assert client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 200

        # Refresh tokens do not work as access tokens
        bad = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {refresh}"})
        assert bad.json()["error"]["code"] == "INVALID_TOKEN"

    def test_deactivated_user_locked_out(self, client, alice):
        user_id, headers = alice
        services = client.app.state.services
        client.portal.call(services.repos.users.update_by_id, user_id, {"is_active": False})

        response = client.get(f"{API}/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_USER"


# =============================================================================
# Rate limiting & persistence
# =============================================================================


def login(client, password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"email": "alice@example.com", "password": password})


class TestRateLimiting:
    def test_auth_requests_over_limit_get_429(self, settings):
        limited = settings.model_copy(update={"auth_rate_limit": "3 per minute"})
        with TestClient(create_app(limited, store=create_local_storage())) as client:
            register(client, "Alice", "alice@example.com")
            assert login(client).status_code == 200
            assert login(client, "Wrong123!").status_code == 401

            response = login(client)
            assert response.status_code == 429
            body = response.json()
            assert body["success"] is False
            assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"

            # Register draws on the same budget
            blocked = client.post(f"{API}/auth/register", json={
                "name": "Bob",
                "email": "bob@example.com",
                "password": PASSWORD,
                "confirm_password": PASSWORD,
            })
            assert blocked.status_code == 429

            # Other endpoints are not limited
            assert client.get("/health").status_code == 200

    def test_new_app_starts_with_fresh_budget(self, settings):
        limited = settings.model_copy(update={"auth_rate_limit": "1 per minute"})
        with TestClient(create_app(limited, store=create_local_storage())) as client:
            assert login(client).status_code == 401
            assert login(client).status_code == 429

        with TestClient(create_app(limited, store=create_local_storage())) as client:
            assert login(client).status_code == 401

    def test_disabled(self, settings):
        unlimited = settings.model_copy(
            update={"auth_rate_limit": "1 per minute", "rate_limit_enabled": False}
        )
        with TestClient(create_app(unlimited, store=create_local_storage())) as client:
            for _ in range(5):
                assert login(client).status_code == 401


class TestFileBackend:
    def test_users_survive_restart(self, settings, tmp_path):
        durable = settings.model_copy(
            update={"storage_backend": "file", "storage_path": str(tmp_path)}
        )
        with TestClient(create_app(durable)) as client:
            user_id, _ = register(client, "Alice", "alice@example.com")

        with TestClient(create_app(durable)) as client:
            response = login(client)
            assert response.status_code == 200, response.text
            assert response.json()["data"]["user"]["id"] == user_id


# =============================================================================
# Projects & tasks
# =============================================================================


class TestProjectsAndTasks:
    def test_outsider_gets_403(self, client, project_id, carol):
        _, headers = carol
        response = client.get(f"{API}/projects/{project_id}", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PROJECT_ACCESS_DENIED"

    def test_missing_and_malformed_ids(self, client, alice):
        _, headers = alice
        missing = client.get(f"{API}/projects/{'f' * 24}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "PROJECT_NOT_FOUND"

        malformed = client.get(f"{API}/projects/not-an-id", headers=headers)
        assert malformed.status_code == 400
        assert malformed.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_membership_endpoints(self, client, project_id, alice, carol):
        alice_id, headers = alice
        carol_id, _ = carol

        added = client.post(f"{API}/projects/{project_id}/members", headers=headers, json={"user_id": carol_id})
        assert added.status_code == 200
        assert carol_id in added.json()["data"]["members"]

        again = client.post(f"{API}/projects/{project_id}/members", headers=headers, json={"user_id": carol_id})
        assert again.status_code == 400
        assert again.json()["error"]["code"] == "ALREADY_MEMBER"

        ghost = client.post(f"{API}/projects/{project_id}/members", headers=headers, json={"user_id": "f" * 24})
        assert ghost.status_code == 400
        assert ghost.json()["error"]["code"] == "INVALID_USER"

        owner = client.request(
            "DELETE", f"{API}/projects/{project_id}/members", headers=headers, json={"user_id": alice_id}
        )
        assert owner.status_code == 400
        assert owner.json()["error"]["code"] == "CANNOT_REMOVE_OWNER"

        removed = client.request(
            "DELETE", f"{API}/projects/{project_id}/members", headers=headers, json={"user_id": carol_id}
        )
        assert removed.status_code == 200

    def test_task_lifecycle(self, client, project_id, bob, carol):
        bob_id, headers = bob
        due = (utc_now() + timedelta(days=2)).isoformat()

        created = client.post(f"{API}/tasks", headers=headers, json={
            "title": "Write copy",
            "description": "Landing page copy",
            "project_id": project_id,
            "assigned_to": bob_id,
            "due_date": due,
        })
        assert created.status_code == 201, created.text
        task = created.json()["data"]
        assert task["is_overdue"] is False

        _, carol_headers = carol
        denied = client.get(f"{API}/tasks/{task['id']}", headers=carol_headers)
        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == "TASK_ACCESS_DENIED"

        done = client.put(f"{API}/tasks/{task['id']}", headers=headers, json={"status": "completed"})
        assert done.json()["data"]["completed_at"] is not None

        bulk = client.patch(f"{API}/tasks/bulk-update", headers=headers, json={
            "task_ids": [task["id"]],
            "status": "in_progress",
        })
        assert bulk.json()["data"] == {"updated": 1}

        fetched = client.get(f"{API}/tasks/{task['id']}", headers=headers).json()["data"]
        assert fetched["status"] == "in_progress"
        assert fetched["completed_at"] is None

    def test_past_due_date_rejected(self, client, project_id, bob):
        bob_id, headers = bob
        response = client.post(f"{API}/tasks", headers=headers, json={
            "title": "Too late",
            "description": "Already due",
            "project_id": project_id,
            "assigned_to": bob_id,
            "due_date": (utc_now() - timedelta(days=1)).isoformat(),
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_pagination_meta(self, client, project_id, alice):
        _, headers = alice
        response = client.get(f"{API}/projects/my-projects", headers=headers, params={"limit": 1})
        body = response.json()
        assert body["meta"]["total"] == 1
        assert body["meta"]["has_next_page"] is False

    def test_dashboard(self, client, project_id, bob):
        _, headers = bob
        response = client.get(f"{API}/dashboard", headers=headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["projects"]["my_projects"]["member"] == 1

        admin_only = client.get(f"{API}/dashboard/admin", headers=headers)
        assert admin_only.status_code == 403
