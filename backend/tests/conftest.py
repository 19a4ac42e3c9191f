"""
Pytest fixtures for ACPN backend tests.

Provides test database setup, seeded roles, user/pharmacy factories and
auth headers for the test client.
"""

from datetime import datetime

import pytest

from acpn import create_app
from acpn.extensions import db
from acpn.models import DueType, Pharmacy, PharmacyStatuses
from acpn.permissions import UserRoles, UserStatuses
from acpn.services import permission_service, role_service, session_service
from acpn.services.auth_service import create_user


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'JWT_SECRET': 'test-secret',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def seed_roles(db_session):
    """Default permissions and the six default roles."""
    permission_service.initialize_permissions()
    role_service.initialize_roles()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory for active, verified, approved users."""
    counter = {"n": 0}

    def _make(role=UserRoles.MEMBER, email=None, status=UserStatuses.ACTIVE, is_approved=True, email_verified=True):
        counter["n"] += 1
        user = create_user(
            first_name="Test",
            last_name=f"{role.title()}{counter['n']}",
            email=email or f"{role}{counter['n']}@acpn.test",
            password="Password123!",
            role=role,
            status=status,
            is_approved=is_approved,
            email_verified=email_verified,
        )
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def superadmin(make_user, seed_roles):
    return make_user(UserRoles.SUPERADMIN)


@pytest.fixture(scope='function')
def admin(make_user, seed_roles):
    return make_user(UserRoles.ADMIN)


@pytest.fixture(scope='function')
def treasurer(make_user, seed_roles):
    return make_user(UserRoles.TREASURER)


@pytest.fixture(scope='function')
def secretary(make_user, seed_roles):
    return make_user(UserRoles.SECRETARY)


@pytest.fixture(scope='function')
def member(make_user, seed_roles):
    return make_user(UserRoles.MEMBER)


@pytest.fixture(scope='function')
def auth_headers(app):
    """Bearer headers for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {session_service.issue_token(user)}"}
    return _headers


@pytest.fixture(scope='function')
def make_pharmacy(db_session):
    """Factory for pharmacies owned by a user."""
    counter = {"n": 0}

    def _make(owner, status=PharmacyStatuses.ACTIVE, name=None):
        counter["n"] += 1
        pharmacy = Pharmacy(
            name=name or f"Pharmacy {counter['n']}",
            registration_number=f"REG-{counter['n']:04d}",
            registration_status=status,
            user_id=owner.id,
        )
        db_session.add(pharmacy)
        db_session.commit()
        return pharmacy

    return _make


@pytest.fixture(scope='function')
def due_type(db_session):
    dt = DueType(name="Annual Dues", description="Annual membership dues", is_recurring=True, recurring_period="annual")
    db_session.add(dt)
    db_session.commit()
    return dt


@pytest.fixture(scope='function')
def future_date():
    return datetime(datetime.now().year + 1, 3, 31)
