# Overview: Flask API routes for role management; reads for admins, writes for superadmins.

from flask import Blueprint, g, request

from ..decorators import require_all_permissions, require_auth, require_roles
from ..permissions import Actions, Resources, policies
from ..responses import json_body, success
from ..services import role_service
from ..validation import parse_bool


roles_bp = Blueprint("roles", __name__, url_prefix="/api/roles")


@roles_bp.get("")
@require_auth
@require_roles(policies.ROLE_ADMINS)
def list_roles_route():
    include_inactive = parse_bool(request.args.get("includeInactive", "true"))
    roles = role_service.list_roles(include_inactive=include_inactive)
    return success([r.to_dict() for r in roles], count=len(roles))


@roles_bp.post("")
@require_auth
@require_roles(policies.SUPERADMINS)
def create_role_route():
    role = role_service.create_role(json_body(), g.current_user)
    return success(role.to_dict(), status_code=201)


@roles_bp.post("/initialize/default")
@require_auth
@require_roles(policies.SUPERADMINS)
def initialize_roles_route():
    roles = role_service.initialize_roles(actor_id=g.current_user.id)
    return success(
        [r.to_dict() for r in roles],
        count=len(roles),
        message="Default roles initialized successfully",
    )


@roles_bp.get("/<int:role_id>")
@require_auth
@require_roles(policies.ROLE_ADMINS)
def get_role_route(role_id: int):
    return success(role_service.get_role_or_404(role_id).to_dict())


@roles_bp.put("/<int:role_id>")
@require_auth
@require_roles(policies.SUPERADMINS)
def update_role_route(role_id: int):
    role = role_service.update_role(role_id, json_body(), g.current_user)
    return success(role.to_dict())


@roles_bp.delete("/<int:role_id>")
@require_auth
@require_roles(policies.SUPERADMINS)
def delete_role_route(role_id: int):
    role_service.delete_role(role_id, g.current_user)
    return success({})


@roles_bp.post("/<int:role_id>/permissions/<int:permission_id>")
@require_auth
@require_roles(policies.SUPERADMINS)
def add_permission_route(role_id: int, permission_id: int):
    role = role_service.add_permission_to_role(role_id, permission_id, g.current_user)
    return success(role.to_dict())


@roles_bp.delete("/<int:role_id>/permissions/<int:permission_id>")
@require_auth
@require_roles(policies.SUPERADMINS)
def remove_permission_route(role_id: int, permission_id: int):
    role = role_service.remove_permission_from_role(role_id, permission_id, g.current_user)
    return success(role.to_dict())


@roles_bp.get("/<int:role_id>/users")
@require_auth
@require_roles(policies.ROLE_ADMINS)
@require_all_permissions((Resources.ROLE, Actions.READ), (Resources.USER, Actions.READ))
def role_users_route(role_id: int):
    users = role_service.get_users_by_role(role_id)
    return success([u.to_summary() for u in users], count=len(users))
