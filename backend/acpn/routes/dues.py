# Overview: Flask API routes for dues; assignment, penalties, manual payment and analytics.

from flask import Blueprint, g, request

from ..decorators import require_any_permission, require_auth, require_roles
from ..permissions import Actions, Resources, policies
from ..responses import json_body, paginated, success
from ..services import due_service
from ..validation import pagination_args, parse_year


dues_bp = Blueprint("dues", __name__, url_prefix="/api/dues")


def _year_arg():
    year = request.args.get("year")
    return parse_year(year) if year else None


@dues_bp.get("")
@require_auth
@require_roles(policies.DUE_VIEWERS)
def list_dues_route():
    page, limit = pagination_args(request.args)
    rows, total = due_service.list_dues(request.args.to_dict(), page, limit)
    return paginated([d.to_dict() for d in rows], total, page, limit)


@dues_bp.post("")
@require_auth
@require_roles(policies.DUE_MANAGERS)
def create_due_route():
    due = due_service.create_due(json_body(), g.current_user)
    return success(due.to_dict(), status_code=201)


@dues_bp.post("/assign")
@require_auth
@require_roles(policies.DUE_MANAGERS)
def assign_dues_route():
    """
    Bulk or individual assignment.

    Per-pharmacy failures are reported in errorDetails, not raised.
    """
    result = due_service.assign_dues(json_body(), g.current_user)
    return success(
        result,
        status_code=201,
        message=f"{result['created']} due(s) created, {result['errors']} error(s)",
    )


@dues_bp.post("/assign/<int:pharmacy_id>")
@require_auth
@require_roles(policies.DUE_MANAGERS)
def assign_due_to_pharmacy_route(pharmacy_id: int):
    payload = dict(json_body(), pharmacyId=pharmacy_id)
    due = due_service.create_due(payload, g.current_user)
    return success(due.to_dict(), status_code=201)


@dues_bp.get("/stats")
@require_auth
@require_roles(policies.DUE_VIEWERS)
def dues_stats_route():
    return success(due_service.get_dues_stats(_year_arg()))


@dues_bp.get("/analytics")
@require_auth
@require_roles(policies.DUE_VIEWERS)
@require_any_permission((Resources.DUE, Actions.EXPORT), (Resources.FINANCIAL_RECORD, Actions.EXPORT))
def dues_analytics_route():
    return success(due_service.get_dues_analytics(_year_arg()))


@dues_bp.get("/analytics/pharmacy/<int:pharmacy_id>")
@require_auth
def pharmacy_analytics_route(pharmacy_id: int):
    return success(due_service.get_pharmacy_dues_analytics(pharmacy_id, g.current_user))


@dues_bp.get("/overdue")
@require_auth
@require_roles(policies.DUE_VIEWERS)
def overdue_dues_route():
    page, limit = pagination_args(request.args)
    rows, total = due_service.get_overdue_dues(page, limit)
    return paginated([d.to_dict() for d in rows], total, page, limit)


@dues_bp.get("/type/<int:due_type_id>")
@require_auth
@require_roles(policies.DUE_VIEWERS)
def dues_by_type_route(due_type_id: int):
    page, limit = pagination_args(request.args)
    rows, total = due_service.get_dues_by_type(due_type_id, request.args.to_dict(), page, limit)
    return paginated([d.to_dict() for d in rows], total, page, limit)


@dues_bp.get("/pharmacy/<int:pharmacy_id>/history")
@require_auth
def payment_history_route(pharmacy_id: int):
    return success(due_service.get_pharmacy_payment_history(pharmacy_id, g.current_user))


@dues_bp.get("/<int:due_id>")
@require_auth
def get_due_route(due_id: int):
    return success(due_service.get_due(due_id, g.current_user).to_dict())


@dues_bp.put("/<int:due_id>")
@require_auth
@require_roles(policies.DUE_MANAGERS)
def update_due_route(due_id: int):
    return success(due_service.update_due(due_id, json_body()).to_dict())


@dues_bp.delete("/<int:due_id>")
@require_auth
@require_roles(policies.DUE_MANAGERS)
def delete_due_route(due_id: int):
    due_service.delete_due(due_id)
    return success({})


@dues_bp.put("/<int:due_id>/pay")
@require_auth
@require_roles(policies.DUE_MANAGERS)
def pay_due_route(due_id: int):
    due = due_service.pay_due(due_id, json_body().get("paymentReference"))
    return success(due.to_dict(), message="Due marked as paid")


@dues_bp.post("/<int:due_id>/penalty")
@require_auth
@require_roles(policies.PENALTY_ADDERS)
def add_penalty_route(due_id: int):
    due = due_service.add_penalty(due_id, json_body(), g.current_user)
    return success(due.to_dict(), message="Penalty added successfully")


@dues_bp.delete("/<int:due_id>/penalty/<int:penalty_id>")
@require_auth
@require_roles(policies.PENALTY_REMOVERS)
def remove_penalty_route(due_id: int, penalty_id: int):
    due = due_service.remove_penalty(due_id, penalty_id, g.current_user)
    return success(due.to_dict(), message="Penalty removed successfully")


@dues_bp.get("/<int:due_id>/certificate")
@require_auth
def clearance_certificate_route(due_id: int):
    return success(due_service.get_clearance_data(due_id, g.current_user))
