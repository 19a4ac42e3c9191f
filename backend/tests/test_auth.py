"""
Authentication flow tests: registration, verification, approval gate, login
and password management.
"""

import pytest

from acpn.errors import BadRequest, Unauthorized
from acpn.permissions import UserStatuses
from acpn.services import auth_service, session_service


REGISTRATION = {
    "firstName": "Ada",
    "lastName": "Okafor",
    "email": "Ada@Pharmacy.test",
    "password": "Secret123",
}


def _login(client, email="ada@pharmacy.test", password="Secret123"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestRegistrationFlow:

    def test_register_route(self, client, db_session):
        resp = client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["email"] == "ada@pharmacy.test"
        assert data["role"] == "member"
        assert data["status"] == UserStatuses.PENDING

        resp = _login(client)
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Please verify your email first"

    def test_verify_then_approve(self, client, admin):
        user, raw_token = auth_service.register_user(dict(REGISTRATION))

        resp = client.get(f"/api/auth/verify-email/{raw_token}")
        assert resp.status_code == 200
        assert user.email_verified is True

        resp = _login(client)
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Your account is pending approval by an administrator"

        auth_service.approve_user(user.id, admin)
        resp = _login(client)
        assert resp.status_code == 200
        body = resp.get_json()
        assert session_service.decode_token(body["token"])["id"] == user.id
        assert "token=" in resp.headers["Set-Cookie"]
        assert "HttpOnly" in resp.headers["Set-Cookie"]

    def test_verification_token_is_single_use(self, client, db_session):
        _, raw_token = auth_service.register_user(dict(REGISTRATION))
        assert client.get(f"/api/auth/verify-email/{raw_token}").status_code == 200
        assert client.get(f"/api/auth/verify-email/{raw_token}").status_code == 400

    def test_duplicate_email(self, client, db_session):
        client.post("/api/auth/register", json=REGISTRATION)
        resp = client.post("/api/auth/register", json=dict(REGISTRATION, email="ada@pharmacy.test"))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "User with this email already exists"

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "x@y.test"})
        assert resp.status_code == 400

    def test_non_string_email(self, client, db_session):
        resp = client.post("/api/auth/register", json=dict(REGISTRATION, email=42))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Please provide a valid email"

    def test_bad_verification_token(self, client, db_session):
        resp = client.get("/api/auth/verify-email/nope")
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid or expired token"


class TestLogin:

    def test_wrong_password(self, client, member):
        resp = _login(client, member.email, "WrongPass1")
        assert resp.status_code == 401
        assert resp.get_json() == {"success": False, "message": "Invalid credentials"}

    def test_unknown_email(self, client, db_session):
        resp = _login(client, "ghost@acpn.test")
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "body",
        [
            {"email": 123, "password": "Secret123"},
            {"email": "ada@pharmacy.test", "password": ["Secret123"]},
        ],
    )
    def test_non_string_credentials(self, client, db_session, body):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "Email and password must be strings"}

    def test_inactive_account(self, client, make_user, seed_roles):
        user = make_user(status=UserStatuses.SUSPENDED)
        resp = _login(client, user.email, "Password123!")
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Your account is not active. Please contact an administrator."

    def test_unapproved_admin_may_log_in(self, client, make_user, seed_roles):
        user = make_user("admin", is_approved=False)
        resp = _login(client, user.email, "Password123!")
        assert resp.status_code == 200

    def test_logout_clears_cookie(self, client, db_session):
        resp = client.get("/api/auth/logout")
        assert resp.status_code == 200
        assert "token=;" in resp.headers["Set-Cookie"]


class TestPasswords:

    def test_password_hash_is_bcrypt(self, db_session):
        hashed = auth_service.hash_password("Secret123")
        assert hashed.startswith("$2")
        assert auth_service.verify_password("Secret123", hashed)
        assert not auth_service.verify_password("secret123", hashed)

    def test_short_password(self, db_session):
        with pytest.raises(BadRequest):
            auth_service.register_user(dict(REGISTRATION, password="abc"))

    def test_update_password(self, member):
        with pytest.raises(Unauthorized) as exc:
            auth_service.update_password(member, "not-it", "NewSecret1")
        assert exc.value.message == "Current password is incorrect"

        auth_service.update_password(member, "Password123!", "NewSecret1")
        assert auth_service.verify_password("NewSecret1", member.password_hash)

    def test_forgot_and_reset(self, client, member):
        _, raw_token = auth_service.forgot_password(member.email)
        resp = client.put(f"/api/auth/resetpassword/{raw_token}", json={"password": "Brand-New-1"})
        assert resp.status_code == 200
        assert auth_service.verify_password("Brand-New-1", member.password_hash)

        resp = client.put(f"/api/auth/resetpassword/{raw_token}", json={"password": "Again-123"})
        assert resp.status_code == 400
