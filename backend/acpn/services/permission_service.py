# Overview: Service-layer operations for permission; the authorization engine and permission CRUD.

"""
Authorization Engine

WHY: One place answers "can role R perform action A on resource R?".
Route guards (decorators.py) and services both call into this module
instead of comparing role strings inline.

DESIGN PRINCIPLES:
- Fail closed: deny unless the role's permission list holds the exact
  (resource, action) pair. No wildcards, no resource hierarchy.
- superadmin bypasses the table entirely.
- A role name with no Role row is a NotFound, distinct from Forbidden.
- Every permission mutation appends exactly one AuditTrail entry.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app

from ..errors import BadRequest, Forbidden, NotFound
from ..extensions import db
from ..models import Permission, Role, RolePermission, User
from ..permissions import Actions, Resources, UserRoles, PERMISSION_DEFINITIONS
from . import audit_service


# =============================================================================
# CHECKS
# =============================================================================

def _load_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise NotFound(f"Role '{role_name}' not found")
    return role


def _role_pairs(role: Role) -> set[tuple[str, str]]:
    return {(p.resource, p.action) for p in role.permissions}


def has_permission(role_name: str, resource: str, action: str) -> bool:
    """
    True if `role_name` holds (resource, action).

    Raises NotFound when the role does not exist.
    """
    if role_name == UserRoles.SUPERADMIN:
        return True
    role = _load_role(role_name)
    return (resource, action) in _role_pairs(role)


def has_any_permission(role_name: str, pairs: Iterable[tuple[str, str]]) -> bool:
    if role_name == UserRoles.SUPERADMIN:
        return True
    held = _role_pairs(_load_role(role_name))
    return any(pair in held for pair in pairs)


def has_all_permissions(role_name: str, pairs: Iterable[tuple[str, str]]) -> bool:
    if role_name == UserRoles.SUPERADMIN:
        return True
    held = _role_pairs(_load_role(role_name))
    return all(pair in held for pair in pairs)


def authorize_roles(allowed_roles: Iterable[str], actual_role: str) -> bool:
    return actual_role in set(allowed_roles)


def require_roles(user: User, allowed_roles: Iterable[str], message: str | None = None) -> None:
    """Raise Forbidden unless `user.role` is one of `allowed_roles`."""
    if not authorize_roles(allowed_roles, user.role):
        current_app.logger.warning(
            "Role %s denied (user %s); allowed: %s", user.role, user.id, sorted(allowed_roles)
        )
        raise Forbidden(message or f"Role '{user.role}' is not authorized to access this route")


def get_role_permission_pairs(role_name: str) -> list[dict]:
    """Effective permissions for a role name, for the current-user endpoint."""
    if role_name == UserRoles.SUPERADMIN:
        return [{"resource": r, "action": a} for r, a, _, _ in PERMISSION_DEFINITIONS]
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        return []
    return [{"resource": p.resource, "action": p.action} for p in role.permissions]


# =============================================================================
# PERMISSION CRUD
# =============================================================================

def initialize_permissions(actor_id: int | None = None) -> int:
    """
    Ensure every default (resource, action) permission exists.

    Idempotent. Returns the number of permissions created. Writes one
    audit entry per call.
    """
    existing = {(p.resource, p.action) for p in db.session.query(Permission).all()}
    created = 0
    for resource, action, name, description in PERMISSION_DEFINITIONS:
        if (resource, action) in existing:
            continue
        db.session.add(Permission(resource=resource, action=action, name=name, description=description))
        created += 1

    audit_service.record_audit(
        user_id=actor_id,
        action=Actions.CREATE,
        resource_type=Resources.PERMISSION,
        details={"initialized": True, "created": created},
    )
    db.session.commit()
    return created


def list_permissions(resource: str | None = None, action: str | None = None) -> list[Permission]:
    query = db.session.query(Permission)
    if resource:
        query = query.filter(Permission.resource == resource)
    if action:
        query = query.filter(Permission.action == action)
    return query.order_by(Permission.resource, Permission.action).all()


def get_permission_or_404(permission_id: int) -> Permission:
    permission = db.session.get(Permission, permission_id)
    if not permission:
        raise NotFound(f"Permission not found with id of {permission_id}")
    return permission


def create_permission(payload: dict, actor: User) -> Permission:
    resource = payload.get("resource")
    action = payload.get("action")
    if not resource or not action:
        raise BadRequest("Please provide resource and action")
    if resource not in Resources.ALL:
        raise BadRequest(f"Invalid resource: {resource}")
    if action not in Actions.ALL:
        raise BadRequest(f"Invalid action: {action}")

    if db.session.query(Permission).filter_by(resource=resource, action=action).first():
        raise BadRequest("Permission with this resource and action already exists")

    permission = Permission(
        resource=resource,
        action=action,
        name=payload.get("name") or f"{action}_{resource}",
        description=payload.get("description"),
    )
    db.session.add(permission)
    db.session.flush()

    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.CREATE,
        resource_type=Resources.PERMISSION,
        resource_id=permission.id,
        details={"permission": permission.to_dict()},
    )
    db.session.commit()
    return permission


def update_permission(permission_id: int, payload: dict, actor: User) -> Permission:
    """Only name and description are editable; (resource, action) is identity."""
    permission = get_permission_or_404(permission_id)
    before = permission.to_dict()

    if payload.get("name"):
        permission.name = payload["name"]
    if "description" in payload:
        permission.description = payload["description"]

    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.UPDATE,
        resource_type=Resources.PERMISSION,
        resource_id=permission.id,
        details={"before": before, "after": permission.to_dict()},
    )
    db.session.commit()
    return permission


def delete_permission(permission_id: int, actor: User) -> None:
    permission = get_permission_or_404(permission_id)
    before = permission.to_dict()

    # Detach from every role first
    db.session.query(RolePermission).filter_by(permission_id=permission.id).delete()
    db.session.delete(permission)

    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.DELETE,
        resource_type=Resources.PERMISSION,
        resource_id=permission_id,
        details={"permission": before},
    )
    db.session.commit()
