# Overview: Flask API routes for pharmacies; registration, lookup and status management.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_roles
from ..permissions import policies
from ..responses import json_body, paginated, success
from ..services import due_service, pharmacy_service
from ..validation import pagination_args


pharmacies_bp = Blueprint("pharmacies", __name__, url_prefix="/api/pharmacies")


@pharmacies_bp.get("")
@require_auth
@require_roles(policies.PHARMACY_ADMINS)
def list_pharmacies_route():
    page, limit = pagination_args(request.args)
    rows, total = pharmacy_service.list_pharmacies(
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return paginated([p.to_dict() for p in rows], total, page, limit)


@pharmacies_bp.post("")
@require_auth
def create_pharmacy_route():
    pharmacy = pharmacy_service.create_pharmacy(json_body(), g.current_user)
    return success(pharmacy.to_dict(), status_code=201)


@pharmacies_bp.get("/me")
@require_auth
def my_pharmacy_route():
    return success(pharmacy_service.get_my_pharmacy(g.current_user).to_dict())


@pharmacies_bp.get("/<int:pharmacy_id>")
@require_auth
def get_pharmacy_route(pharmacy_id: int):
    return success(pharmacy_service.get_visible_pharmacy(pharmacy_id, g.current_user).to_dict())


@pharmacies_bp.put("/<int:pharmacy_id>")
@require_auth
def update_pharmacy_route(pharmacy_id: int):
    pharmacy = pharmacy_service.update_pharmacy(pharmacy_id, json_body(), g.current_user)
    return success(pharmacy.to_dict())


@pharmacies_bp.put("/<int:pharmacy_id>/status")
@require_auth
@require_roles(policies.PHARMACY_ADMINS)
def update_status_route(pharmacy_id: int):
    pharmacy = pharmacy_service.update_status(pharmacy_id, json_body().get("registrationStatus"), g.current_user)
    return success(pharmacy.to_dict())


@pharmacies_bp.delete("/<int:pharmacy_id>")
@require_auth
@require_roles(policies.ADMINS)
def delete_pharmacy_route(pharmacy_id: int):
    pharmacy_service.delete_pharmacy(pharmacy_id, g.current_user)
    return success({})


@pharmacies_bp.get("/<int:pharmacy_id>/dues")
@require_auth
def pharmacy_dues_route(pharmacy_id: int):
    page, limit = pagination_args(request.args)
    rows, total = due_service.get_pharmacy_dues(pharmacy_id, g.current_user, request.args.to_dict(), page, limit)
    return paginated([d.to_dict() for d in rows], total, page, limit)
