# ACPN Live API Tests - Authentication & Authorization
#
# Tests for:
# - Health endpoint
# - Login/logout flows and the session cookie
# - Role gating (401 vs 403)

import pytest

from tests.conftest import APIClient, LiveFailure, assert_response


class TestHealth:

    @pytest.mark.smoke
    def test_health_reports_healthy(self, client: APIClient):
        response = client.get("/api/health")
        assert_response(response, 200, "Health check after seeding", "backend/acpn/routes/system.py")

        body = response.json()
        if body["status"] != "healthy":
            raise LiveFailure(
                scenario="Seeded database should be healthy",
                expected="status == healthy",
                actual=f"status == {body['status']}",
                likely_cause="Default roles missing or database unreachable",
                code_location="backend/acpn/routes/system.py:check_authorization_health",
                response=response
            )


class TestLogin:

    @pytest.mark.smoke
    @pytest.mark.auth
    def test_login_returns_token_and_cookie(self, client: APIClient):
        response = client.post("/api/auth/login", json={
            "email": "admin@live.test",
            "password": "TestPass123!"
        })
        assert_response(response, 200, "Login with valid credentials", "backend/acpn/routes/auth.py:login_route")

        data = response.json()
        assert data["success"] is True
        assert data["token"]
        assert data["data"]["role"] == "admin"
        assert "token" in response.cookies

    @pytest.mark.auth
    def test_login_invalid_password(self, client: APIClient):
        response = client.post("/api/auth/login", json={
            "email": "admin@live.test",
            "password": "WrongPassword123!"
        })
        assert_response(
            response, 401,
            scenario="Login with wrong password",
            code_location="backend/acpn/services/auth_service.py:authenticate",
            expected_message="Invalid credentials"
        )

    @pytest.mark.auth
    def test_me_with_token(self, admin_client: APIClient):
        response = admin_client.get("/api/auth/me")
        assert_response(response, 200, "Current user", "backend/acpn/routes/auth.py:me_route")
        assert response.json()["data"]["email"] == "admin@live.test"

    @pytest.mark.auth
    def test_me_permissions(self, member_client: APIClient):
        response = member_client.get("/api/auth/me/permissions")
        assert_response(response, 200, "Member permission list", "backend/acpn/routes/auth.py")
        actions = {p["action"] for p in response.json()["data"]["permissions"]}
        assert actions == {"read"}

    @pytest.mark.auth
    def test_logout(self, admin_client: APIClient):
        admin_client.logout()
        response = admin_client.get("/api/auth/me")
        assert_response(response, 401, "Request after logout", "backend/acpn/decorators.py:require_auth")


class TestRoleGating:

    @pytest.mark.rbac
    @pytest.mark.parametrize("path", ["/api/users", "/api/dues", "/api/financial-records", "/api/audit-trail"])
    def test_unauthenticated(self, client: APIClient, path: str):
        assert_response(client.get(path), 401, f"GET {path} without token", "backend/acpn/decorators.py")

    @pytest.mark.rbac
    @pytest.mark.parametrize("path", ["/api/users", "/api/dues", "/api/financial-records", "/api/audit-trail"])
    def test_member_forbidden(self, member_client: APIClient, path: str):
        assert_response(
            member_client.get(path), 403,
            scenario=f"GET {path} as member",
            code_location="backend/acpn/decorators.py:require_roles",
            expected_message="Role 'member' is not authorized to access this route"
        )

    @pytest.mark.rbac
    def test_treasurer_reads_finance(self, treasurer_client: APIClient):
        response = treasurer_client.get("/api/financial-records/summary")
        assert_response(response, 200, "Treasurer reads finance summary", "backend/acpn/routes/financial_records.py")
