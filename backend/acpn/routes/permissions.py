# Overview: Flask API routes for the permission catalogue.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_roles
from ..permissions import policies
from ..responses import json_body, success
from ..services import permission_service


permissions_bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")


@permissions_bp.get("")
@require_auth
@require_roles(policies.ROLE_ADMINS)
def list_permissions_route():
    permissions = permission_service.list_permissions(
        resource=request.args.get("resource"),
        action=request.args.get("action"),
    )
    return success([p.to_dict() for p in permissions], count=len(permissions))


@permissions_bp.post("")
@require_auth
@require_roles(policies.SUPERADMINS)
def create_permission_route():
    permission = permission_service.create_permission(json_body(), g.current_user)
    return success(permission.to_dict(), status_code=201)


@permissions_bp.post("/initialize/default")
@require_auth
@require_roles(policies.SUPERADMINS)
def initialize_permissions_route():
    created = permission_service.initialize_permissions(actor_id=g.current_user.id)
    permissions = permission_service.list_permissions()
    return success(
        [p.to_dict() for p in permissions],
        count=len(permissions),
        message=f"Default permissions initialized ({created} created)",
    )


@permissions_bp.get("/<int:permission_id>")
@require_auth
@require_roles(policies.ROLE_ADMINS)
def get_permission_route(permission_id: int):
    return success(permission_service.get_permission_or_404(permission_id).to_dict())


@permissions_bp.put("/<int:permission_id>")
@require_auth
@require_roles(policies.SUPERADMINS)
def update_permission_route(permission_id: int):
    permission = permission_service.update_permission(permission_id, json_body(), g.current_user)
    return success(permission.to_dict())


@permissions_bp.delete("/<int:permission_id>")
@require_auth
@require_roles(policies.SUPERADMINS)
def delete_permission_route(permission_id: int):
    permission_service.delete_permission(permission_id, g.current_user)
    return success({})
