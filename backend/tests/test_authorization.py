"""
Authorization tests for the ACPN backend.

Verifies:
- Superadmin holds every (resource, action) pair
- Default role grants (member is read-only)
- Role initialization is idempotent
- Document access levels are independent of the permission table
- Unauthenticated requests return 401, under-privileged ones 403
- Permission guards deny on missing grants and fail with 500 out of order
"""

import pytest
from flask import g

from acpn.decorators import require_all_permissions, require_any_permission, require_permission, require_roles
from acpn.errors import BadRequest, Forbidden, NotFound
from acpn.extensions import db
from acpn.models import Permission, Role
from acpn.permissions import Actions, Resources, UserRoles, policies
from acpn.permissions.definitions import DEFAULT_ROLE_DESCRIPTIONS
from acpn.permissions.policies import AccessLevels
from acpn.services import permission_service, pharmacy_service, role_service, session_service


# =============================================================================
# PERMISSION ENGINE
# =============================================================================


class TestPermissionEngine:

    @pytest.mark.parametrize("resource", Resources.ALL)
    @pytest.mark.parametrize("action", Actions.ALL)
    def test_superadmin_has_every_permission(self, seed_roles, resource, action):
        assert permission_service.has_permission(UserRoles.SUPERADMIN, resource, action)

    def test_superadmin_needs_no_permission_row(self, superadmin):
        permission = db.session.query(Permission).filter_by(resource=Resources.DUE, action=Actions.DELETE).one()
        permission_service.delete_permission(permission.id, superadmin)
        assert permission_service.has_permission(UserRoles.SUPERADMIN, Resources.DUE, Actions.DELETE)
        assert not permission_service.has_permission(UserRoles.ADMIN, Resources.DUE, Actions.DELETE)

    def test_member_cannot_delete_dues(self, seed_roles):
        assert not permission_service.has_permission(UserRoles.MEMBER, Resources.DUE, Actions.DELETE)

    @pytest.mark.parametrize("resource", Resources.ALL)
    def test_member_can_read_everything(self, seed_roles, resource):
        assert permission_service.has_permission(UserRoles.MEMBER, resource, Actions.READ)

    def test_admin_cannot_delete_roles(self, seed_roles):
        assert not permission_service.has_permission(UserRoles.ADMIN, Resources.ROLE, Actions.DELETE)
        assert permission_service.has_permission(UserRoles.ADMIN, Resources.ROLE, Actions.UPDATE)

    def test_treasurer_manages_financial_records(self, seed_roles):
        assert permission_service.has_permission(UserRoles.TREASURER, Resources.FINANCIAL_RECORD, Actions.CREATE)
        assert not permission_service.has_permission(UserRoles.TREASURER, Resources.DUE, Actions.CREATE)

    def test_unknown_role_raises_not_found(self, seed_roles):
        with pytest.raises(NotFound) as exc:
            permission_service.has_permission("ghost", Resources.DUE, Actions.READ)
        assert exc.value.message == "Role 'ghost' not found"

    def test_any_and_all(self, seed_roles):
        pairs = [(Resources.DUE, Actions.READ), (Resources.DUE, Actions.DELETE)]
        assert permission_service.has_any_permission(UserRoles.MEMBER, pairs)
        assert not permission_service.has_all_permissions(UserRoles.MEMBER, pairs)
        assert permission_service.has_all_permissions(UserRoles.FINANCIAL_SECRETARY, pairs)

    def test_authorize_roles(self):
        assert permission_service.authorize_roles(policies.DUE_MANAGERS, UserRoles.TREASURER)
        assert not permission_service.authorize_roles(policies.DUE_MANAGERS, UserRoles.MEMBER)


# =============================================================================
# ROLE INITIALIZATION
# =============================================================================


class TestRoleInitialization:

    def test_requires_permissions(self, db_session):
        with pytest.raises(BadRequest):
            role_service.initialize_roles()

    def test_idempotent(self, seed_roles):
        def snapshot():
            return {
                r.name: sorted((p.resource, p.action) for p in r.permissions)
                for r in db.session.query(Role).all()
            }

        first = snapshot()
        permission_service.initialize_permissions()
        role_service.initialize_roles()
        second = snapshot()

        assert set(first) == set(UserRoles.ALL)
        assert first == second
        assert db.session.query(Role).count() == 6
        assert db.session.query(Permission).count() == len(Resources.ALL) * len(Actions.ALL)

    def test_reinitialize_resets_modified_default_role(self, superadmin):
        member_role = db.session.query(Role).filter_by(name=UserRoles.MEMBER).one()
        permission = db.session.query(Permission).filter_by(resource=Resources.DUE, action=Actions.DELETE).one()
        role_service.add_permission_to_role(member_role.id, permission.id, superadmin)
        role_service.update_role(member_role.id, {"description": "Edited"}, superadmin)
        assert permission_service.has_permission(UserRoles.MEMBER, Resources.DUE, Actions.DELETE)

        role_service.initialize_roles()

        assert not permission_service.has_permission(UserRoles.MEMBER, Resources.DUE, Actions.DELETE)
        assert member_role.description == DEFAULT_ROLE_DESCRIPTIONS[UserRoles.MEMBER]
        assert {p.action for p in member_role.permissions} == {Actions.READ}

    def test_member_role_is_read_only(self, seed_roles):
        member_role = db.session.query(Role).filter_by(name=UserRoles.MEMBER).one()
        assert {p.action for p in member_role.permissions} == {Actions.READ}


# =============================================================================
# DOCUMENT ACCESS LEVELS
# =============================================================================


class TestDocumentAccess:

    @pytest.mark.parametrize(
        "role,level,expected",
        [
            (UserRoles.MEMBER, AccessLevels.COMMITTEE, False),
            (UserRoles.SECRETARY, AccessLevels.COMMITTEE, True),
            (UserRoles.MEMBER, AccessLevels.MEMBERS, True),
            (UserRoles.MEMBER, AccessLevels.PUBLIC, True),
            (UserRoles.SECRETARY, AccessLevels.EXECUTIVES, False),
            (UserRoles.TREASURER, AccessLevels.EXECUTIVES, True),
            (UserRoles.TREASURER, AccessLevels.ADMIN, False),
            (UserRoles.ADMIN, AccessLevels.ADMIN, True),
        ],
    )
    def test_has_document_access(self, role, level, expected):
        assert policies.has_document_access(role, level) is expected

    def test_accessible_levels_ordered(self):
        assert policies.accessible_levels(UserRoles.MEMBER) == [AccessLevels.PUBLIC, AccessLevels.MEMBERS]


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/users"),
            ("GET", "/api/roles"),
            ("POST", "/api/roles"),
            ("GET", "/api/permissions"),
            ("GET", "/api/pharmacies"),
            ("GET", "/api/dues"),
            ("POST", "/api/dues/assign"),
            ("GET", "/api/dues/stats"),
            ("GET", "/api/payments/admin/all"),
            ("GET", "/api/financial-records"),
            ("GET", "/api/financial-records/reports"),
            ("GET", "/api/organization-documents"),
            ("GET", "/api/audit-trail"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["success"] is False

    def test_invalid_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_cookie_token_accepted(self, client, member, app):
        client.set_cookie(app.config["JWT_COOKIE_NAME"], session_service.issue_token(member))
        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["email"] == member.email


# =============================================================================
# MEMBER DENIED PRIVILEGED OPERATIONS (403)
# =============================================================================


class TestMemberDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("GET", "/api/roles"),
            ("POST", "/api/roles/initialize/default"),
            ("GET", "/api/dues"),
            ("POST", "/api/dues/assign"),
            ("GET", "/api/payments/admin/pending"),
            ("GET", "/api/financial-records"),
            ("POST", "/api/organization-documents"),
            ("GET", "/api/audit-trail"),
        ],
    )
    def test_forbidden(self, client, member, auth_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=auth_headers(member), json={})
        assert resp.status_code == 403
        assert resp.get_json() == {
            "success": False,
            "message": "Role 'member' is not authorized to access this route",
        }

    def test_admin_cannot_write_roles(self, client, admin, auth_headers):
        resp = client.post("/api/roles", headers=auth_headers(admin), json={"name": "auditor"})
        assert resp.status_code == 403

    def test_suspended_user_rejected(self, client, make_user, seed_roles, auth_headers):
        user = make_user(UserRoles.ADMIN, status="suspended")
        resp = client.get("/api/users", headers=auth_headers(user))
        assert resp.status_code == 403


# =============================================================================
# PERMISSION GUARDS
# =============================================================================


def _revoke(role_name, resource, action, actor):
    role = db.session.query(Role).filter_by(name=role_name).one()
    permission = db.session.query(Permission).filter_by(resource=resource, action=action).one()
    role_service.remove_permission_from_role(role.id, permission.id, actor)


class TestPermissionGuards:

    def test_permission_guard_branches(self, app, member):
        read_view = require_permission(Resources.DUE, Actions.READ)(lambda: "ok")
        delete_view = require_permission(Resources.DUE, Actions.DELETE)(lambda: "ok")

        with app.test_request_context("/api/dues"):
            g.current_user = member
            assert read_view() == "ok"
            resp, status = delete_view()
            g.pop("current_user", None)

        assert status == 403
        assert resp.get_json() == {"success": False, "message": "You don't have permission to delete due"}

    @pytest.mark.parametrize(
        "guard",
        [
            require_roles(UserRoles.ADMIN),
            require_permission(Resources.DUE, Actions.READ),
            require_any_permission((Resources.DUE, Actions.READ)),
            require_all_permissions((Resources.DUE, Actions.READ)),
        ],
    )
    def test_guard_without_authenticated_user(self, app, guard):
        view = guard(lambda: "ok")
        with app.test_request_context("/api/dues"):
            g.pop("current_user", None)
            resp, status = view()

        assert status == 500
        assert resp.get_json() == {"success": False, "message": "Authentication context missing"}

    def test_reports_need_export_grant(self, client, treasurer, superadmin, auth_headers):
        path = "/api/financial-records/reports?reportType=yearly&year=2024"
        assert client.get(path, headers=auth_headers(treasurer)).status_code == 200

        _revoke(UserRoles.TREASURER, Resources.FINANCIAL_RECORD, Actions.EXPORT, superadmin)
        resp = client.get(path, headers=auth_headers(treasurer))
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "You don't have permission to export financial_record"

    def test_analytics_accept_any_export_grant(self, client, make_user, treasurer, superadmin, auth_headers):
        financial_secretary = make_user(UserRoles.FINANCIAL_SECRETARY)
        _revoke(UserRoles.TREASURER, Resources.FINANCIAL_RECORD, Actions.EXPORT, superadmin)
        _revoke(UserRoles.FINANCIAL_SECRETARY, Resources.FINANCIAL_RECORD, Actions.EXPORT, superadmin)

        resp = client.get("/api/dues/analytics", headers=auth_headers(treasurer))
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "You don't have any of the required permissions"

        # due:export alone is enough
        resp = client.get("/api/dues/analytics", headers=auth_headers(financial_secretary))
        assert resp.status_code == 200

    def test_role_users_need_every_grant(self, client, admin, superadmin, auth_headers):
        role_id = db.session.query(Role).filter_by(name=UserRoles.MEMBER).one().id
        path = f"/api/roles/{role_id}/users"
        assert client.get(path, headers=auth_headers(admin)).status_code == 200

        _revoke(UserRoles.ADMIN, Resources.USER, Actions.READ, superadmin)
        resp = client.get(path, headers=auth_headers(admin))
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "You don't have all of the required permissions"

    def test_service_require_roles(self, member):
        permission_service.require_roles(member, {UserRoles.MEMBER})
        with pytest.raises(Forbidden) as exc:
            permission_service.require_roles(member, policies.DUE_MANAGERS)
        assert exc.value.message == "Role 'member' is not authorized to access this route"

    def test_owner_skips_role_check(self, make_user, make_pharmacy, seed_roles):
        owner = make_user()
        stranger = make_user()
        pharmacy = make_pharmacy(owner)

        assert pharmacy_service.get_visible_pharmacy(pharmacy.id, owner) is pharmacy
        with pytest.raises(Forbidden) as exc:
            pharmacy_service.get_visible_pharmacy(pharmacy.id, stranger)
        assert exc.value.message == "Not authorized to access this pharmacy"
