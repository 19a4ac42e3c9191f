# Overview: Service-layer operations for roles; default-role initialization and role CRUD.

"""
Role Management

WHY: Roles bundle permissions. The six default roles are rebuilt from the
curated rules in permissions/definitions.py whenever initialize_roles()
runs (reset-to-default, not additive), so a drifted role can always be
repaired by re-initializing.

PROTECTIONS:
- Default roles cannot be renamed, deactivated or deleted
- A role still assigned to users cannot be deleted
"""

from __future__ import annotations

from ..errors import BadRequest, NotFound
from ..extensions import db
from ..models import Permission, Role, RolePermission, User
from ..permissions import (
    Actions,
    Resources,
    UserRoles,
    DEFAULT_ROLE_DESCRIPTIONS,
    default_role_grants,
)
from . import audit_service


def _set_role_permissions(role: Role, permissions: list[Permission]) -> None:
    # Reuse existing link rows; a delete+insert of the same pair would hit
    # uq_role_permissions because the flush inserts before it deletes.
    existing = {rp.permission_id: rp for rp in role.role_permissions}
    links = []
    for index, permission in enumerate(permissions):
        link = existing.get(permission.id)
        if link is None:
            link = RolePermission(permission=permission)
        link.position = index
        links.append(link)
    role.role_permissions = links


def _permission_ids(role: Role) -> list[int]:
    return [p.id for p in role.permissions]


def initialize_roles(actor_id: int | None = None) -> list[Role]:
    """
    Create or reset the default roles.

    Existing default roles get their description and permission set
    overwritten and are marked default/active again. Calling this twice
    yields the same six roles with the same permission sets.
    """
    permissions = (
        db.session.query(Permission)
        .order_by(Permission.resource, Permission.action)
        .all()
    )
    if not permissions:
        raise BadRequest("No permissions found. Please initialize permissions first.")

    roles = []
    summary = {}
    for role_name in (
        UserRoles.SUPERADMIN,
        UserRoles.ADMIN,
        UserRoles.SECRETARY,
        UserRoles.TREASURER,
        UserRoles.FINANCIAL_SECRETARY,
        UserRoles.MEMBER,
    ):
        granted = [p for p in permissions if default_role_grants(role_name, p.resource, p.action)]

        role = db.session.query(Role).filter_by(name=role_name).first()
        if role is None:
            role = Role(name=role_name, created_by=actor_id)
            db.session.add(role)

        role.description = DEFAULT_ROLE_DESCRIPTIONS[role_name]
        role.is_default = True
        role.is_active = True
        _set_role_permissions(role, granted)

        roles.append(role)
        summary[role_name] = len(granted)

    audit_service.record_audit(
        user_id=actor_id,
        action=Actions.CREATE,
        resource_type=Resources.ROLE,
        details={"initialized": True, "permissionCounts": summary},
    )
    db.session.commit()
    return roles


def list_roles(include_inactive: bool = True) -> list[Role]:
    query = db.session.query(Role)
    if not include_inactive:
        query = query.filter(Role.is_active.is_(True))
    return query.order_by(Role.name).all()


def get_role_or_404(role_id: int) -> Role:
    role = db.session.get(Role, role_id)
    if not role:
        raise NotFound(f"Role not found with id of {role_id}")
    return role


def _resolve_permissions(permission_ids) -> list[Permission]:
    if not permission_ids:
        return []
    if not isinstance(permission_ids, list):
        raise BadRequest("permissions must be a list of permission IDs")
    ids = []
    for raw in permission_ids:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            raise BadRequest("One or more permission IDs are invalid")
    found = db.session.query(Permission).filter(Permission.id.in_(ids)).all()
    by_id = {p.id: p for p in found}
    if len(by_id) != len(set(ids)):
        raise BadRequest("One or more permission IDs are invalid")
    # Keep caller order, drop repeats
    ordered = []
    for pid in ids:
        if by_id[pid] not in ordered:
            ordered.append(by_id[pid])
    return ordered


def create_role(payload: dict, actor: User) -> Role:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise BadRequest("Please provide a role name")
    if db.session.query(Role).filter_by(name=name).first():
        raise BadRequest("Role with this name already exists")

    permissions = _resolve_permissions(payload.get("permissions"))

    role = Role(
        name=name,
        description=payload.get("description"),
        is_default=False,
        is_active=payload.get("isActive", True) is not False,
        created_by=actor.id,
    )
    _set_role_permissions(role, permissions)
    db.session.add(role)
    db.session.flush()

    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.CREATE,
        resource_type=Resources.ROLE,
        resource_id=role.id,
        details={"name": role.name, "permissions": _permission_ids(role)},
    )
    db.session.commit()
    return role


def update_role(role_id: int, payload: dict, actor: User) -> Role:
    role = get_role_or_404(role_id)

    new_name = payload.get("name")
    renaming = new_name is not None and new_name != role.name
    deactivating = payload.get("isActive") is False
    if role.is_default and (renaming or deactivating):
        raise BadRequest("Cannot modify name or deactivate a predefined role")

    if renaming:
        new_name = str(new_name).strip()
        if not new_name:
            raise BadRequest("Role name cannot be blank")
        clash = db.session.query(Role).filter(Role.name == new_name, Role.id != role.id).first()
        if clash:
            raise BadRequest("Role with this name already exists")

    before = {
        "name": role.name,
        "description": role.description,
        "isActive": role.is_active,
        "permissions": _permission_ids(role),
    }

    if renaming:
        role.name = new_name
    if "description" in payload:
        role.description = payload["description"]
    if "isActive" in payload:
        role.is_active = bool(payload["isActive"])
    if "permissions" in payload:
        _set_role_permissions(role, _resolve_permissions(payload["permissions"]))

    after = {
        "name": role.name,
        "description": role.description,
        "isActive": role.is_active,
        "permissions": _permission_ids(role),
    }
    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.UPDATE,
        resource_type=Resources.ROLE,
        resource_id=role.id,
        details={"before": before, "after": after},
    )
    db.session.commit()
    return role


def delete_role(role_id: int, actor: User) -> None:
    role = get_role_or_404(role_id)
    if role.is_default:
        raise BadRequest("Cannot delete a predefined role")

    assigned = db.session.query(User).filter_by(role=role.name).count()
    if assigned:
        raise BadRequest(f"Cannot delete role as it is assigned to {assigned} user(s)")

    details = {"name": role.name, "permissions": _permission_ids(role)}
    db.session.delete(role)
    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.DELETE,
        resource_type=Resources.ROLE,
        resource_id=role_id,
        details=details,
    )
    db.session.commit()


def add_permission_to_role(role_id: int, permission_id: int, actor: User) -> Role:
    role = get_role_or_404(role_id)
    permission = db.session.get(Permission, permission_id)
    if not permission:
        raise NotFound(f"Permission not found with id of {permission_id}")
    if permission.id in _permission_ids(role):
        raise BadRequest("Permission already assigned to this role")

    role.role_permissions.append(
        RolePermission(permission=permission, position=len(role.role_permissions))
    )
    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.ASSIGN,
        resource_type=Resources.ROLE,
        resource_id=role.id,
        details={"addedPermission": permission.to_dict()},
    )
    db.session.commit()
    return role


def remove_permission_from_role(role_id: int, permission_id: int, actor: User) -> Role:
    role = get_role_or_404(role_id)
    link = next((rp for rp in role.role_permissions if rp.permission_id == permission_id), None)
    if link is None:
        raise BadRequest("Permission is not assigned to this role")

    role.role_permissions.remove(link)
    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.UPDATE,
        resource_type=Resources.ROLE,
        resource_id=role.id,
        details={"removedPermissionId": permission_id},
    )
    db.session.commit()
    return role


def get_users_by_role(role_id: int) -> list[User]:
    role = get_role_or_404(role_id)
    return db.session.query(User).filter_by(role=role.name).order_by(User.last_name, User.first_name).all()
