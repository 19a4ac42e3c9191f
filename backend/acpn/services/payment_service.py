# Overview: Service-layer operations for payments; submission and the approval workflow.

"""
Payment Workflow

WHY: Pharmacies report payments (bank transfer, cash, cheque) against a
due; a reviewer confirms them before the due's balance moves.

LIFECYCLE:
- submit  -> pending (due untouched)
- approve -> approved; due.amount_paid += amount, balance recomputed
- reject  -> rejected with a reason; due untouched
- delete  -> if it was approved, due.amount_paid -= amount, recomputed

A payment leaves pending exactly once.
"""

from __future__ import annotations

from ..errors import BadRequest, NotFound
from ..extensions import db
from ..models import ApprovalStatuses, Payment, User
from ..permissions import policies
from ..validation import parse_int, parse_positive_amount, require_choice
from . import due_service, permission_service, pharmacy_service
from .concurrency import run_with_retry
from acpn.time_utils import utcnow


PAYMENT_METHODS = ("bank_transfer", "cash", "check")
PAYMENT_TYPES = ("due", "donation", "event_fee", "registration", "other")


def get_payment_or_404(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFound(f"Payment not found with id of {payment_id}")
    return payment


def submit_payment(payload: dict, user: User) -> Payment:
    for field in ("dueId", "pharmacyId", "amount"):
        if payload.get(field) in (None, ""):
            raise BadRequest("Please provide dueId, pharmacyId and amount")

    amount = parse_positive_amount(payload["amount"])
    due = due_service.get_due_or_404(parse_int(payload["dueId"], "dueId"))
    pharmacy = pharmacy_service.get_pharmacy_or_404(parse_int(payload["pharmacyId"], "pharmacyId"))

    if due.pharmacy_id != pharmacy.id:
        raise BadRequest("Due does not belong to this pharmacy")
    if not pharmacy_service.is_owner(pharmacy, user):
        permission_service.require_roles(user, policies.PAYMENT_REVIEWERS, "Not authorized to submit payments for this pharmacy")
    if amount > due.balance:
        raise BadRequest("Payment amount exceeds the outstanding balance")

    method = require_choice(payload.get("paymentMethod") or "bank_transfer", PAYMENT_METHODS, "paymentMethod")
    payment_type = require_choice(payload.get("paymentType") or "due", PAYMENT_TYPES, "paymentType")

    payment = Payment(
        payment_type=payment_type,
        due_id=due.id,
        pharmacy_id=pharmacy.id,
        amount=amount,
        payment_method=method,
        payment_reference=payload.get("paymentReference"),
        receipt_url=payload.get("receiptUrl"),
        approval_status=ApprovalStatuses.PENDING,
        submitted_by=user.id,
        submitted_at=utcnow(),
    )
    db.session.add(payment)
    db.session.commit()
    return payment


def _ensure_pending(payment: Payment) -> None:
    if payment.approval_status != ApprovalStatuses.PENDING:
        raise BadRequest(f"Payment has already been {payment.approval_status}")


def approve_payment(payment_id: int, actor: User) -> Payment:
    payment_id = int(payment_id)
    actor_id = actor.id

    def _op():
        payment = get_payment_or_404(payment_id)
        _ensure_pending(payment)
        due = payment.due
        # Other payments may have been approved since this one was submitted
        if payment.amount > due.balance:
            raise BadRequest("Payment amount exceeds the outstanding balance")

        now = utcnow()
        payment.approval_status = ApprovalStatuses.APPROVED
        payment.approved_by = actor_id
        payment.approved_at = now

        due.amount_paid = round((due.amount_paid or 0) + payment.amount, 2)
        due.payment_date = now
        if payment.payment_reference:
            due.payment_reference = payment.payment_reference
        due_service.recompute_balance(due, now=now)

        db.session.commit()
        return payment

    return run_with_retry(_op)


def reject_payment(payment_id: int, rejection_reason: str | None, actor: User) -> Payment:
    if not rejection_reason or not str(rejection_reason).strip():
        raise BadRequest("Please provide a rejection reason")

    payment = get_payment_or_404(payment_id)
    _ensure_pending(payment)

    payment.approval_status = ApprovalStatuses.REJECTED
    payment.rejection_reason = str(rejection_reason).strip()
    payment.approved_by = actor.id
    payment.approved_at = utcnow()
    db.session.commit()
    return payment


def delete_payment(payment_id: int) -> None:
    payment = get_payment_or_404(payment_id)
    if payment.approval_status == ApprovalStatuses.APPROVED:
        due = payment.due
        due.amount_paid = max(round((due.amount_paid or 0) - payment.amount, 2), 0)
        due_service.recompute_balance(due)
    db.session.delete(payment)
    db.session.commit()


def get_payment(payment_id: int, user: User) -> Payment:
    payment = get_payment_or_404(payment_id)
    if not pharmacy_service.is_owner(payment.pharmacy, user):
        permission_service.require_roles(user, policies.PAYMENT_REVIEWERS, "Not authorized to view this payment")
    return payment


def list_payments(
    *,
    approval_status: str | None = None,
    pharmacy_id: int | None = None,
    due_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Payment], int]:
    query = db.session.query(Payment)
    if approval_status:
        query = query.filter(Payment.approval_status == approval_status)
    if pharmacy_id:
        query = query.filter(Payment.pharmacy_id == pharmacy_id)
    if due_id:
        query = query.filter(Payment.due_id == due_id)
    total = query.count()
    rows = (
        query.order_by(Payment.submitted_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def list_due_payments(due_id: int, user: User) -> list[Payment]:
    due = due_service.get_due(due_id, user)
    return (
        db.session.query(Payment)
        .filter(Payment.due_id == due.id)
        .order_by(Payment.submitted_at.desc(), Payment.id.desc())
        .all()
    )
