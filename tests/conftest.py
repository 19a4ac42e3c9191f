# ACPN Live API Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - A Flask server on an ephemeral SQLite database per test run
# - Seeded roles, permissions, due types and users
# - An httpx client with auth helpers
# - Failure message formatting

import os
import sys
import time
import tempfile
import subprocess
import shutil
from pathlib import Path
from datetime import datetime
from typing import Generator, Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))

TEST_PASSWORD = "TestPass123!"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LiveConfig:
    """Live-suite configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class LiveFailure(Exception):
    """
    Exception with a human-readable failure report.

    Structure:
    1. Scenario: What was being tested
    2. Expected / Actual
    3. Likely Cause
    4. Code Location: Where to look in the codebase
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]
        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.text[:1000]}",
            ])
        for key, value in self.extra_context.items():
            lines.append(f"  {key}: {value}")
        lines.append("=" * 80)
        return "\n".join(lines)


def _infer_cause(response: httpx.Response) -> str:
    causes = {
        400: "Invalid request - missing field, validation or business rule failed",
        401: "Authentication failed - token missing, invalid or expired",
        403: "Role not allowed on this route, or account not active",
        404: "Resource not found - wrong ID or already deleted",
        500: "Server error - check backend logs for stack trace",
        503: "Health check degraded - database or roles not initialized",
    }
    return causes.get(response.status_code, f"Unexpected status code {response.status_code}")


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_message: Optional[str] = None
):
    """Assert status (and optionally the envelope message); raise LiveFailure otherwise."""
    if response.status_code != expected_status:
        raise LiveFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )
    if expected_message is not None:
        message = response.json().get("message")
        if message != expected_message:
            raise LiveFailure(
                scenario=scenario,
                expected=f"message == {expected_message!r}",
                actual=f"message == {message!r}",
                likely_cause="Error wording changed",
                code_location=code_location,
                response=response
            )


# =============================================================================
# HTTP CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """httpx wrapper that carries the bearer token from login."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)
        self.token: Optional[str] = None
        self.current_user: Optional[Dict] = None

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(f"{self.base_url}{path}", headers=self._headers(), params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.put(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        return self.client.delete(f"{self.base_url}{path}", headers=self._headers(), **kwargs)

    def login(self, email: str, password: str = TEST_PASSWORD) -> bool:
        response = self.post("/api/auth/login", json={"email": email, "password": password})
        if response.status_code == 200:
            data = response.json()
            self.token = data.get("token")
            self.current_user = data.get("data")
            return True
        return False

    def logout(self) -> None:
        self.get("/api/auth/logout")
        self.token = None
        self.current_user = None
        self.client.cookies.clear()

    def close(self):
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """Runs `flask run` against a temporary SQLite file."""

    def __init__(self, config: LiveConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None

    @property
    def db_url(self) -> str:
        return f"sqlite:///{self.db_file}"

    def start(self) -> bool:
        temp_dir = tempfile.mkdtemp(prefix="acpn_test_")
        self.db_file = Path(temp_dir) / "test_acpn.sqlite3"

        env = os.environ.copy()
        env["DATABASE_URL"] = self.db_url
        env["FLASK_APP"] = "acpn"
        env["BCRYPT_ROUNDS"] = "4"

        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "run", "--port", "5001"],
            cwd=str(BACKEND_DIR),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return self._wait_for_server()

    def _wait_for_server(self) -> bool:
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/health", timeout=2.0)
                if response.status_code in (200, 503):  # 503 until the schema exists
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None
        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)

    def initialize_db(self):
        """Create the schema and seed one user per role plus a member pharmacy."""
        from acpn import create_app
        from acpn.extensions import db
        from acpn.models import Pharmacy, PharmacyStatuses
        from acpn.permissions import UserRoles, UserStatuses
        from acpn.services import due_service, permission_service, role_service
        from acpn.services.auth_service import create_user

        app = create_app({"SQLALCHEMY_DATABASE_URI": self.db_url, "BCRYPT_ROUNDS": 4})
        with app.app_context():
            db.create_all()
            permission_service.initialize_permissions()
            role_service.initialize_roles()
            due_service.seed_default_due_types()

            users = {}
            for role in UserRoles.ALL:
                users[role] = create_user(
                    first_name="Live",
                    last_name=role.title(),
                    email=f"{role}@live.test",
                    password=TEST_PASSWORD,
                    role=role,
                    status=UserStatuses.ACTIVE,
                    is_approved=True,
                    email_verified=True,
                )
            db.session.add(Pharmacy(
                name="Live Pharmacy",
                registration_number="LIVE-0001",
                registration_status=PharmacyStatuses.ACTIVE,
                registration_date=datetime.now(),
                user_id=users[UserRoles.MEMBER].id,
            ))
            db.session.commit()


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class LiveDataFactory:
    """Creates data through the API with an authenticated client."""

    def __init__(self, client: APIClient):
        self.client = client

    def due_type_id(self, name: str = "Annual Dues") -> int:
        response = self.client.get("/api/due-types")
        assert_response(response, 200, "List due types", "backend/acpn/routes/due_types.py")
        for due_type in response.json()["data"]:
            if due_type["name"] == name:
                return due_type["id"]
        raise LiveFailure(
            scenario="Find seeded due type",
            expected=f"Due type {name!r}",
            actual="not found",
            likely_cause="seed_default_due_types did not run",
            code_location="backend/acpn/services/due_service.py:seed_default_due_types",
        )

    def pharmacy_id(self, registration_number: str = "LIVE-0001") -> int:
        response = self.client.get("/api/pharmacies", params={"search": registration_number})
        assert_response(response, 200, "List pharmacies", "backend/acpn/routes/pharmacies.py")
        return response.json()["data"][0]["id"]

    def create_due(self, pharmacy_id: int, due_type_id: int, amount: float, due_date: str) -> Dict:
        response = self.client.post("/api/dues", json={
            "pharmacyId": pharmacy_id,
            "dueTypeId": due_type_id,
            "amount": amount,
            "dueDate": due_date,
        })
        assert_response(response, 201, "Create due", "backend/acpn/routes/dues.py:create_due_route")
        return response.json()["data"]


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def live_config() -> LiveConfig:
    return LiveConfig()


@pytest.fixture(scope="session")
def server_manager(live_config: LiveConfig) -> Generator[ServerManager, None, None]:
    """Server is started once per session unless TEST_EXTERNAL_SERVER is set."""
    manager = ServerManager(live_config)
    if os.environ.get("TEST_EXTERNAL_SERVER"):
        yield manager
    else:
        if not manager.start():
            pytest.fail("Failed to start test server")
        manager.initialize_db()
        yield manager
        manager.stop()


@pytest.fixture(scope="session")
def api_client(live_config: LiveConfig, server_manager: ServerManager) -> Generator[APIClient, None, None]:
    client = APIClient(live_config.backend_base_url, timeout=live_config.request_timeout)
    yield client
    client.close()


@pytest.fixture
def client(api_client: APIClient) -> APIClient:
    """Unauthenticated client; clears auth state left by a previous test."""
    api_client.token = None
    api_client.current_user = None
    api_client.client.cookies.clear()
    return api_client


def _login_as(client: APIClient, role: str) -> APIClient:
    if not client.login(f"{role}@live.test"):
        pytest.fail(f"Failed to login as {role}@live.test")
    return client


@pytest.fixture
def admin_client(client: APIClient) -> APIClient:
    return _login_as(client, "admin")


@pytest.fixture
def treasurer_client(client: APIClient) -> APIClient:
    return _login_as(client, "treasurer")


@pytest.fixture
def member_client(client: APIClient) -> APIClient:
    return _login_as(client, "member")


@pytest.fixture
def factory(admin_client: APIClient) -> LiveDataFactory:
    return LiveDataFactory(admin_client)


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "auth: Authentication tests")
    config.addinivalue_line("markers", "rbac: Role-based access control tests")
    config.addinivalue_line("markers", "dues: Dues engine tests")
    config.addinivalue_line("markers", "payments: Payment workflow tests")
