# Overview: Flask API routes for due types; the templates dues are raised from.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_roles
from ..permissions import policies
from ..responses import json_body, success
from ..services import due_service
from ..validation import parse_bool


due_types_bp = Blueprint("due_types", __name__, url_prefix="/api/due-types")


@due_types_bp.get("")
@require_auth
def list_due_types_route():
    include_inactive = parse_bool(request.args.get("includeInactive", "false"))
    due_types = due_service.list_due_types(include_inactive=include_inactive)
    return success([d.to_dict() for d in due_types], count=len(due_types))


@due_types_bp.post("")
@require_auth
@require_roles(policies.DUE_TYPE_MANAGERS)
def create_due_type_route():
    due_type = due_service.create_due_type(json_body(), g.current_user)
    return success(due_type.to_dict(), status_code=201)


@due_types_bp.get("/<int:due_type_id>")
@require_auth
def get_due_type_route(due_type_id: int):
    return success(due_service.get_due_type_or_404(due_type_id).to_dict())


@due_types_bp.put("/<int:due_type_id>")
@require_auth
@require_roles(policies.DUE_TYPE_MANAGERS)
def update_due_type_route(due_type_id: int):
    return success(due_service.update_due_type(due_type_id, json_body()).to_dict())


@due_types_bp.delete("/<int:due_type_id>")
@require_auth
@require_roles(policies.ADMINS)
def delete_due_type_route(due_type_id: int):
    due_service.delete_due_type(due_type_id)
    return success({})
