"""
Role management tests.

Predefined roles keep their names; custom roles can be created, edited and
deleted once no user holds them. Every change lands in the audit trail.
"""

import pytest

from acpn.errors import BadRequest, NotFound
from acpn.extensions import db
from acpn.models import AuditTrail, Permission, Role
from acpn.permissions import Actions, Resources, UserRoles
from acpn.services import permission_service, role_service


def _permission(resource, action):
    return db.session.query(Permission).filter_by(resource=resource, action=action).one()


def _role(name):
    return db.session.query(Role).filter_by(name=name).one()


class TestRoleCrud:

    def test_create_custom_role(self, superadmin):
        read_dues = _permission(Resources.DUE, Actions.READ)
        role = role_service.create_role(
            {"name": "auditor", "description": "External auditor", "permissions": [read_dues.id]},
            superadmin,
        )

        assert role.is_default is False
        assert [p.id for p in role.permissions] == [read_dues.id]
        assert permission_service.has_permission("auditor", Resources.DUE, Actions.READ)
        assert not permission_service.has_permission("auditor", Resources.DUE, Actions.UPDATE)

        entry = db.session.query(AuditTrail).filter_by(resource_type=Resources.ROLE, resource_id=role.id).one()
        assert entry.action == Actions.CREATE

    def test_duplicate_name(self, superadmin):
        with pytest.raises(BadRequest) as exc:
            role_service.create_role({"name": UserRoles.TREASURER}, superadmin)
        assert exc.value.message == "Role with this name already exists"

    def test_invalid_permission_ids(self, superadmin):
        with pytest.raises(BadRequest):
            role_service.create_role({"name": "auditor", "permissions": [999999]}, superadmin)

    def test_cannot_rename_predefined(self, superadmin):
        treasurer_role = _role(UserRoles.TREASURER)
        with pytest.raises(BadRequest) as exc:
            role_service.update_role(treasurer_role.id, {"name": "bursar"}, superadmin)
        assert exc.value.message == "Cannot modify name or deactivate a predefined role"

    def test_can_edit_predefined_description(self, superadmin):
        treasurer_role = _role(UserRoles.TREASURER)
        role = role_service.update_role(treasurer_role.id, {"description": "Keeps the books"}, superadmin)
        assert role.description == "Keeps the books"

    def test_cannot_delete_predefined(self, superadmin):
        with pytest.raises(BadRequest):
            role_service.delete_role(_role(UserRoles.MEMBER).id, superadmin)

    def test_delete_blocked_while_assigned(self, superadmin, make_user):
        role = role_service.create_role({"name": "auditor"}, superadmin)
        user = make_user()
        user.role = "auditor"
        db.session.commit()

        with pytest.raises(BadRequest) as exc:
            role_service.delete_role(role.id, superadmin)
        assert exc.value.message == "Cannot delete role as it is assigned to 1 user(s)"

        user.role = UserRoles.MEMBER
        db.session.commit()
        role_service.delete_role(role.id, superadmin)
        with pytest.raises(NotFound):
            role_service.get_role_or_404(role.id)


class TestRolePermissions:

    def test_add_and_remove(self, superadmin):
        role = role_service.create_role({"name": "auditor"}, superadmin)
        export_records = _permission(Resources.FINANCIAL_RECORD, Actions.EXPORT)

        role_service.add_permission_to_role(role.id, export_records.id, superadmin)
        assert permission_service.has_permission("auditor", Resources.FINANCIAL_RECORD, Actions.EXPORT)

        with pytest.raises(BadRequest) as exc:
            role_service.add_permission_to_role(role.id, export_records.id, superadmin)
        assert exc.value.message == "Permission already assigned to this role"

        role_service.remove_permission_from_role(role.id, export_records.id, superadmin)
        assert not permission_service.has_permission("auditor", Resources.FINANCIAL_RECORD, Actions.EXPORT)

        with pytest.raises(BadRequest) as exc:
            role_service.remove_permission_from_role(role.id, export_records.id, superadmin)
        assert exc.value.message == "Permission is not assigned to this role"


class TestRoleRoutes:

    def test_superadmin_creates_role(self, client, superadmin, auth_headers):
        resp = client.post("/api/roles", headers=auth_headers(superadmin), json={"name": "auditor"})
        assert resp.status_code == 201
        assert resp.get_json()["data"]["name"] == "auditor"

    def test_admin_lists_roles(self, client, admin, auth_headers):
        resp = client.get("/api/roles", headers=auth_headers(admin))
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["count"] == len(UserRoles.ALL)

    def test_users_by_role(self, client, admin, treasurer, auth_headers):
        role = _role(UserRoles.TREASURER)
        resp = client.get(f"/api/roles/{role.id}/users", headers=auth_headers(admin))
        assert [u["email"] for u in resp.get_json()["data"]] == [treasurer.email]
