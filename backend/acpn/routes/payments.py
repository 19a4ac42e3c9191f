# Overview: Flask API routes for payments; submission by pharmacies and review by finance roles.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_roles
from ..models import ApprovalStatuses
from ..permissions import policies
from ..responses import json_body, paginated, success
from ..services import payment_service
from ..validation import pagination_args


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/submit")
@require_auth
def submit_payment_route():
    payment = payment_service.submit_payment(json_body(), g.current_user)
    return success(payment.to_dict(), status_code=201, message="Payment submitted for review")


@payments_bp.get("/due/<int:due_id>")
@require_auth
def due_payments_route(due_id: int):
    payments = payment_service.list_due_payments(due_id, g.current_user)
    return success([p.to_dict() for p in payments], count=len(payments))


@payments_bp.get("/admin/all")
@require_auth
@require_roles(policies.PAYMENT_REVIEWERS)
def list_payments_route():
    page, limit = pagination_args(request.args)
    rows, total = payment_service.list_payments(
        approval_status=request.args.get("approvalStatus"),
        pharmacy_id=request.args.get("pharmacyId", type=int),
        due_id=request.args.get("dueId", type=int),
        page=page,
        limit=limit,
    )
    return paginated([p.to_dict() for p in rows], total, page, limit)


@payments_bp.get("/admin/pending")
@require_auth
@require_roles(policies.PAYMENT_REVIEWERS)
def pending_payments_route():
    page, limit = pagination_args(request.args)
    rows, total = payment_service.list_payments(approval_status=ApprovalStatuses.PENDING, page=page, limit=limit)
    return paginated([p.to_dict() for p in rows], total, page, limit)


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment_route(payment_id: int):
    return success(payment_service.get_payment(payment_id, g.current_user).to_dict())


@payments_bp.post("/<int:payment_id>/approve")
@require_auth
@require_roles(policies.PAYMENT_REVIEWERS)
def approve_payment_route(payment_id: int):
    payment = payment_service.approve_payment(payment_id, g.current_user)
    return success(payment.to_dict(), message="Payment approved")


@payments_bp.post("/<int:payment_id>/reject")
@require_auth
@require_roles(policies.PAYMENT_REVIEWERS)
def reject_payment_route(payment_id: int):
    payment = payment_service.reject_payment(payment_id, json_body().get("rejectionReason"), g.current_user)
    return success(payment.to_dict(), message="Payment rejected")


@payments_bp.delete("/<int:payment_id>")
@require_auth
@require_roles(policies.PAYMENT_REVIEWERS)
def delete_payment_route(payment_id: int):
    payment_service.delete_payment(payment_id)
    return success({})
