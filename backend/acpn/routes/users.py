# Overview: Flask API routes for user administration; approval, status and role changes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_roles
from ..permissions import UserRoles, policies
from ..responses import json_body, paginated, success
from ..services import auth_service, permission_service
from ..validation import pagination_args


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_roles(policies.USER_ADMINS)
def list_users_route():
    page, limit = pagination_args(request.args)
    users, total = auth_service.list_users(
        role=request.args.get("role"),
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return paginated([u.to_dict() for u in users], total, page, limit)


@users_bp.get("/permissions")
@require_auth
def current_user_permissions_route():
    role = g.current_user.role
    return success({"role": role, "permissions": permission_service.get_role_permission_pairs(role)})


@users_bp.get("/check-permission/<resource>/<action>")
@require_auth
def check_permission_route(resource: str, action: str):
    allowed = permission_service.has_permission(g.current_user.role, resource, action)
    return success({"resource": resource, "action": action, "hasPermission": allowed})


@users_bp.get("/<int:user_id>")
@require_auth
@require_roles(policies.USER_ADMINS)
def get_user_route(user_id: int):
    return success(auth_service.get_user_or_404(user_id).to_dict())


@users_bp.put("/<int:user_id>/approve")
@require_auth
@require_roles(policies.USER_ADMINS)
def approve_user_route(user_id: int):
    user = auth_service.approve_user(user_id, g.current_user)
    return success(user.to_dict(), message="User approved")


@users_bp.put("/<int:user_id>/status")
@require_auth
@require_roles(policies.USER_ADMINS)
def update_status_route(user_id: int):
    user = auth_service.update_user_status(user_id, json_body().get("status"), g.current_user)
    return success(user.to_dict())


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_roles(UserRoles.SUPERADMIN)
def update_role_route(user_id: int):
    user = auth_service.update_user_role(user_id, json_body().get("role"), g.current_user)
    return success(user.to_dict())
