# Overview: Flask API routes for the audit trail (read-only).

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..permissions import policies
from ..responses import paginated
from ..services import audit_service
from ..validation import pagination_args


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit-trail")


@audit_bp.get("")
@require_auth
@require_roles(policies.ADMINS)
def list_audit_route():
    page, limit = pagination_args(request.args)
    entries, total = audit_service.list_audit_entries(
        resource_type=request.args.get("resourceType"),
        action=request.args.get("action"),
        user_id=request.args.get("userId", type=int),
        resource_id=request.args.get("resourceId", type=int),
        page=page,
        limit=limit,
    )
    return paginated([e.to_dict() for e in entries], total, page, limit)
