"""Tests for admin user management and audit log endpoints."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from portal.models.account import Account


class TestAdminAccess:
    """Admin endpoints reject anonymous and client callers."""

    def test_requires_auth(self, client: TestClient):
        for method, path in [
            ("get", "/api/v1/admin/users"),
            ("post", "/api/v1/admin/users/1/toggle-admin"),
            ("delete", "/api/v1/admin/users/1"),
            ("get", "/api/v1/admin/audit-logs"),
        ]:
            response = getattr(client, method)(path)
            assert response.status_code == 401, path
            assert response.json()["error"] == "authentication_error"

    def test_client_is_forbidden(self, client: TestClient, test_user: dict, login_as):
        login_as(test_user)
        response = client.get("/api/v1/admin/users")
        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

        response = client.post(f"/api/v1/admin/users/{test_user['id']}/toggle-admin")
        assert response.status_code == 403


class TestUserManagement:
    """Listing, promoting, demoting and deleting accounts."""

    def test_list_users(self, client: TestClient, admin_user: dict, test_user: dict, login_as):
        login_as(admin_user)
        response = client.get("/api/v1/admin/users")
        assert response.status_code == 200
        users = {u["email"]: u for u in response.json()}
        assert users[test_user["email"]] == {
            "id": test_user["id"],
            "email": test_user["email"],
            "name": test_user["name"],
            "is_admin": False,
            "is_verified": True,
        }
        assert users[admin_user["email"]]["is_admin"] is True

    def test_promote_client(self, client: TestClient, admin_user: dict, test_user: dict, login_as):
        """Promotion flips the flag and audits USER_PROMOTED with the target email."""
        login_as(admin_user)
        response = client.post(f"/api/v1/admin/users/{test_user['id']}/toggle-admin")
        assert response.status_code == 200
        assert response.json()["is_admin"] is True

        logs = client.get("/api/v1/admin/audit-logs").json()
        assert logs[0]["action"] == "USER_PROMOTED"
        assert test_user["email"] in logs[0]["detail"]
        assert logs[0]["actor_id"] == admin_user["id"]

    def test_promoted_client_gains_admin_access(self, client: TestClient, admin_user: dict, test_user: dict, login_as):
        login_as(admin_user)
        client.post(f"/api/v1/admin/users/{test_user['id']}/toggle-admin")
        client.post("/api/v1/auth/logout")

        login_as(test_user)
        assert client.get("/api/v1/admin/users").status_code == 200

    def test_demote_takes_effect_on_existing_session(
        self, client: TestClient, admin_user: dict, test_user: dict, db_session: Session, login_as
    ):
        """The admin flag is read from the store on each request, not cached in the session."""
        login_as(admin_user)
        account = db_session.get(Account, admin_user["id"])
        account.is_admin = False
        db_session.commit()
        assert client.get("/api/v1/admin/users").status_code == 403

    def test_cannot_toggle_self(self, client: TestClient, admin_user: dict, login_as):
        login_as(admin_user)
        response = client.post(f"/api/v1/admin/users/{admin_user['id']}/toggle-admin")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_cannot_delete_self(self, client: TestClient, admin_user: dict, login_as):
        login_as(admin_user)
        response = client.delete(f"/api/v1/admin/users/{admin_user['id']}")
        assert response.status_code == 400
        assert client.get("/api/v1/auth/me").status_code == 200

    def test_delete_user(self, client: TestClient, admin_user: dict, test_user: dict, db_session: Session, login_as):
        login_as(admin_user)
        response = client.delete(f"/api/v1/admin/users/{test_user['id']}")
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert db_session.get(Account, test_user["id"]) is None

        logs = client.get("/api/v1/admin/audit-logs").json()
        assert logs[0]["action"] == "USER_DELETED"
        assert logs[0]["detail"] == test_user["email"]

    def test_delete_unknown_user(self, client: TestClient, admin_user: dict, login_as):
        login_as(admin_user)
        response = client.delete("/api/v1/admin/users/9999")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestAuditLog:
    """Audit log query."""

    def test_audit_log_newest_first(self, client: TestClient, admin_user: dict, test_user: dict, login_as):
        login_as(admin_user)
        client.post(f"/api/v1/admin/users/{test_user['id']}/toggle-admin")
        client.post(f"/api/v1/admin/users/{test_user['id']}/toggle-admin")

        logs = client.get("/api/v1/admin/audit-logs").json()
        assert [entry["action"] for entry in logs] == ["USER_DEMOTED", "USER_PROMOTED"]
        assert logs[0]["resource_type"] == "user"
        assert logs[0]["resource_id"] == str(test_user["id"])


class TestMalformedPaths:
    """Non-numeric ids are rejected with the common error body."""

    def test_toggle_admin_with_text_id(self, client: TestClient, admin_user: dict, login_as):
        login_as(admin_user)
        response = client.post("/api/v1/admin/users/abc/toggle-admin")
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid request", "error": "validation_error"}

    def test_delete_with_text_id(self, client: TestClient, admin_user: dict, login_as):
        login_as(admin_user)
        response = client.delete("/api/v1/admin/users/abc")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
