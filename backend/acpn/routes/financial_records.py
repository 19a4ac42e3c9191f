# Overview: Flask API routes for financial records; CRUD, dashboard summary and reports.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission, require_roles
from ..permissions import Actions, Resources, policies
from ..responses import json_body, paginated, success
from ..services import financial_service
from ..validation import pagination_args


financial_records_bp = Blueprint("financial_records", __name__, url_prefix="/api/financial-records")


@financial_records_bp.get("")
@require_auth
@require_roles(policies.FINANCE_ROLES)
def list_records_route():
    page, limit = pagination_args(request.args)
    rows, total = financial_service.list_records(request.args.to_dict(), page, limit)
    return paginated([r.to_dict() for r in rows], total, page, limit)


@financial_records_bp.post("")
@require_auth
@require_roles(policies.FINANCE_ROLES)
def create_record_route():
    record = financial_service.create_record(json_body(), g.current_user)
    return success(record.to_dict(), status_code=201)


@financial_records_bp.get("/summary")
@require_auth
@require_roles(policies.FINANCE_ROLES)
def summary_route():
    return success(financial_service.get_summary(request.args.get("startDate"), request.args.get("endDate")))


@financial_records_bp.get("/reports")
@require_auth
@require_roles(policies.FINANCE_ROLES)
@require_permission(Resources.FINANCIAL_RECORD, Actions.EXPORT)
def reports_route():
    return success(financial_service.generate_report(request.args.to_dict()))


@financial_records_bp.get("/<int:record_id>")
@require_auth
@require_roles(policies.FINANCE_ROLES)
def get_record_route(record_id: int):
    return success(financial_service.get_record_or_404(record_id).to_dict())


@financial_records_bp.put("/<int:record_id>")
@require_auth
@require_roles(policies.FINANCE_ROLES)
def update_record_route(record_id: int):
    record = financial_service.update_record(record_id, json_body(), g.current_user)
    return success(record.to_dict())


@financial_records_bp.delete("/<int:record_id>")
@require_auth
@require_roles(policies.FINANCE_ROLES)
def delete_record_route(record_id: int):
    financial_service.delete_record(record_id)
    return success({})
