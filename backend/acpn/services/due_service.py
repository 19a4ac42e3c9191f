# Overview: Service-layer operations for dues; due types, assignment, penalties, manual pay and analytics.

"""
Dues Engine

WHY: A due is the association's claim on a pharmacy for one due type in
one year. Its money fields are derived, never edited directly:

    total_amount = amount + sum(penalties)
    balance      = total_amount - amount_paid

recompute_balance() is called explicitly at every mutation site (penalty
add/remove, payment approval/reversal, manual pay, amount edits) so the
invariant can be audited by reading this module alone.

DUPLICATES: (pharmacy_id, due_type_id, year) is a unique constraint. The
existence query gives the friendly message; the constraint is what makes
concurrent assignment safe. An IntegrityError on commit is reported as
"already exists", never as a second row.

BULK ASSIGNMENT: sequential, best-effort, one commit per pharmacy. A
failure on one pharmacy is recorded in errorDetails and processing
continues.
"""

from __future__ import annotations

import calendar
import time
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, datetime

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import BadRequest, Conflict, NotFound
from ..extensions import db
from ..models import (
    AssignmentTypes,
    ApprovalStatuses,
    Due,
    DuePenalty,
    DueType,
    Payment,
    PaymentStatuses,
    Pharmacy,
    PharmacyStatuses,
    RecurringPeriods,
    User,
)
from ..permissions import policies
from ..validation import (
    parse_bool,
    parse_datetime_field,
    parse_int,
    parse_optional_datetime,
    parse_positive_amount,
    parse_year,
)
from . import permission_service, pharmacy_service
from acpn.time_utils import to_utc_z, utcnow


# =============================================================================
# BALANCE COMPUTATION
# =============================================================================

@dataclass(frozen=True)
class DueBalance:
    total_amount: float
    balance: float
    payment_status: str


def compute_balance(
    *,
    amount: float,
    penalties_total: float,
    amount_paid: float,
    due_date: datetime,
    now: datetime,
) -> DueBalance:
    """
    Pure balance/status derivation.

    Status precedence: paid, then partially_paid, then overdue, then pending.
    """
    total = round(amount + penalties_total, 2)
    balance = round(total - amount_paid, 2)

    if balance <= 0:
        status = PaymentStatuses.PAID
    elif 0 < amount_paid < total:
        status = PaymentStatuses.PARTIALLY_PAID
    elif due_date < now:
        status = PaymentStatuses.OVERDUE
    else:
        status = PaymentStatuses.PENDING

    return DueBalance(total_amount=total, balance=balance, payment_status=status)


def recompute_balance(due: Due, now: datetime | None = None) -> Due:
    """Apply compute_balance() to `due` in place and return it."""
    result = compute_balance(
        amount=due.amount or 0,
        penalties_total=sum(p.amount for p in due.penalties),
        amount_paid=due.amount_paid or 0,
        due_date=due.due_date,
        now=now or utcnow(),
    )
    due.total_amount = result.total_amount
    due.balance = result.balance
    due.payment_status = result.payment_status
    return due


_PERIOD_MONTHS = {
    RecurringPeriods.MONTHLY: 1,
    RecurringPeriods.QUARTERLY: 3,
    RecurringPeriods.SEMI_ANNUAL: 6,
    RecurringPeriods.ANNUAL: 12,
}


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    if not MINYEAR <= year <= MAXYEAR:
        raise BadRequest("Due date is too far in the future to schedule the next due")
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_due_date_for(due_type: DueType, due_date: datetime) -> datetime | None:
    if not due_type.is_recurring:
        return None
    months = _PERIOD_MONTHS.get(due_type.recurring_period or RecurringPeriods.ANNUAL, 12)
    return add_months(due_date, months)


# =============================================================================
# DUE TYPES
# =============================================================================

def list_due_types(include_inactive: bool = False) -> list[DueType]:
    query = db.session.query(DueType)
    if not include_inactive:
        query = query.filter(DueType.is_active.is_(True))
    return query.order_by(DueType.name).all()


def get_due_type_or_404(due_type_id: int) -> DueType:
    due_type = db.session.get(DueType, due_type_id)
    if not due_type:
        raise NotFound(f"Due type not found with id of {due_type_id}")
    return due_type


def _apply_due_type_fields(due_type: DueType, payload: dict) -> None:
    if "description" in payload:
        due_type.description = payload["description"]
    if payload.get("defaultAmount") is not None:
        due_type.default_amount = parse_positive_amount(payload["defaultAmount"], "defaultAmount")
    if "isRecurring" in payload:
        due_type.is_recurring = parse_bool(payload["isRecurring"])
    if "recurringPeriod" in payload:
        period = payload["recurringPeriod"]
        if period is not None and period not in RecurringPeriods.ALL:
            raise BadRequest(f"Invalid recurringPeriod. Must be one of: {', '.join(RecurringPeriods.ALL)}")
        due_type.recurring_period = period
    if "isActive" in payload:
        due_type.is_active = parse_bool(payload["isActive"])


def create_due_type(payload: dict, actor: User) -> DueType:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise BadRequest("Please provide a name for the due type")
    if db.session.query(DueType).filter(func.lower(DueType.name) == name.lower()).first():
        raise BadRequest("Due type with this name already exists")

    due_type = DueType(name=name, created_by=actor.id)
    _apply_due_type_fields(due_type, payload)
    db.session.add(due_type)
    db.session.commit()
    return due_type


def update_due_type(due_type_id: int, payload: dict) -> DueType:
    due_type = get_due_type_or_404(due_type_id)
    new_name = str(payload.get("name") or "").strip()
    if new_name and new_name != due_type.name:
        clash = db.session.query(DueType).filter(
            func.lower(DueType.name) == new_name.lower(),
            DueType.id != due_type.id,
        ).first()
        if clash:
            raise BadRequest("Due type with this name already exists")
        due_type.name = new_name
    _apply_due_type_fields(due_type, payload)
    db.session.commit()
    return due_type


def delete_due_type(due_type_id: int) -> None:
    due_type = get_due_type_or_404(due_type_id)
    in_use = db.session.query(Due).filter_by(due_type_id=due_type.id).count()
    if in_use:
        raise BadRequest(f"Cannot delete due type as it is used by {in_use} due(s)")
    db.session.delete(due_type)
    db.session.commit()


DEFAULT_DUE_TYPES = (
    ("Registration Fee", "One-time pharmacy registration fee", None),
    ("Annual Dues", "Annual membership dues for the association", RecurringPeriods.ANNUAL),
    ("Event Fee", "Fee for special events and activities", None),
    ("Annual Membership", "Annual membership fee", RecurringPeriods.ANNUAL),
    ("Conferences", "Fee for attending conferences and training sessions", None),
    ("Land & Building", "Contribution towards land and building projects", None),
    ("Transportation", "Transportation related fees and contributions", None),
    ("Feeding", "Feeding allowance for events and meetings", None),
)


def seed_default_due_types(actor_id: int | None = None) -> int:
    """Insert the predefined due types that are missing. Returns the number created."""
    existing = {name.lower() for (name,) in db.session.query(DueType.name).all()}
    created = 0
    for name, description, period in DEFAULT_DUE_TYPES:
        if name.lower() in existing:
            continue
        db.session.add(
            DueType(
                name=name,
                description=description,
                is_recurring=period is not None,
                recurring_period=period,
                created_by=actor_id,
            )
        )
        created += 1
    db.session.commit()
    return created


# =============================================================================
# CREATION
# =============================================================================

@dataclass(frozen=True)
class DueCreation:
    """Outcome of a single insert attempt: created or already_exists."""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"

    outcome: str
    due: Due | None

    @property
    def created(self) -> bool:
        return self.outcome == self.CREATED


def _find_due(pharmacy_id: int, due_type_id: int, year: int) -> Due | None:
    return db.session.query(Due).filter_by(
        pharmacy_id=pharmacy_id, due_type_id=due_type_id, year=year
    ).first()


def _insert_due(due: Due) -> DueCreation:
    existing = _find_due(due.pharmacy_id, due.due_type_id, due.year)
    if existing:
        return DueCreation(DueCreation.ALREADY_EXISTS, existing)

    db.session.add(due)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert for the same triple
        db.session.rollback()
        return DueCreation(
            DueCreation.ALREADY_EXISTS,
            _find_due(due.pharmacy_id, due.due_type_id, due.year),
        )
    return DueCreation(DueCreation.CREATED, due)


def _build_due(
    *,
    pharmacy_id: int,
    due_type: DueType,
    title: str,
    description: str | None,
    amount: float,
    due_date: datetime,
    year: int,
    assignment_type: str,
    actor: User,
) -> Due:
    due = Due(
        pharmacy_id=pharmacy_id,
        due_type_id=due_type.id,
        title=title,
        description=description,
        amount=amount,
        amount_paid=0,
        due_date=due_date,
        year=year,
        assignment_type=assignment_type,
        assigned_by=actor.id,
        assigned_at=utcnow(),
        is_recurring=due_type.is_recurring,
        next_due_date=next_due_date_for(due_type, due_date),
    )
    return recompute_balance(due)


def create_due(payload: dict, actor: User) -> Due:
    """
    Create one due for one pharmacy.

    Raises Conflict when a due already exists for (pharmacy, due type, year).
    """
    for field in ("pharmacyId", "dueTypeId", "amount", "dueDate"):
        if payload.get(field) in (None, ""):
            raise BadRequest("Please provide all required fields")

    pharmacy = pharmacy_service.get_pharmacy_or_404(parse_int(payload["pharmacyId"], "pharmacyId"))
    due_type = get_due_type_or_404(parse_int(payload["dueTypeId"], "dueTypeId"))
    amount = parse_positive_amount(payload["amount"])
    due_date = parse_datetime_field(payload["dueDate"], "dueDate")
    year = parse_year(payload["year"]) if payload.get("year") else due_date.year

    due = _build_due(
        pharmacy_id=pharmacy.id,
        due_type=due_type,
        title=str(payload.get("title") or due_type.name).strip(),
        description=payload.get("description"),
        amount=amount,
        due_date=due_date,
        year=year,
        assignment_type=AssignmentTypes.INDIVIDUAL,
        actor=actor,
    )
    result = _insert_due(due)
    if not result.created:
        raise Conflict(f"Due already exists for this pharmacy and due type in {year}")
    return result.due


def assign_dues(payload: dict, actor: User) -> dict:
    """
    Assign a due type to many pharmacies.

    bulk: every pharmacy with registration_status=active.
    individual: the pharmacies listed in pharmacyIds.

    Returns {"created", "errors", "dues", "errorDetails"}.
    """
    required = ("dueTypeId", "title", "amount", "dueDate", "assignmentType")
    if any(payload.get(field) in (None, "") for field in required):
        raise BadRequest("Please provide all required fields")

    assignment_type = payload["assignmentType"]
    if assignment_type == AssignmentTypes.BULK:
        pharmacies = (
            db.session.query(Pharmacy)
            .filter(Pharmacy.registration_status == PharmacyStatuses.ACTIVE)
            .order_by(Pharmacy.id)
            .all()
        )
        targets = [(p.id, p) for p in pharmacies]
    elif assignment_type == AssignmentTypes.INDIVIDUAL:
        pharmacy_ids = payload.get("pharmacyIds")
        if not pharmacy_ids or not isinstance(pharmacy_ids, list):
            raise BadRequest("Pharmacy IDs are required for individual assignment")
        ids = [parse_int(pid, "pharmacyIds") for pid in pharmacy_ids]
        found = {p.id: p for p in db.session.query(Pharmacy).filter(Pharmacy.id.in_(ids)).all()}
        targets = [(pid, found.get(pid)) for pid in ids]
    else:
        raise BadRequest("Invalid assignment type")

    due_type = get_due_type_or_404(parse_int(payload["dueTypeId"], "dueTypeId"))
    amount = parse_positive_amount(payload["amount"])
    due_date = parse_datetime_field(payload["dueDate"], "dueDate")
    year = due_date.year
    title = str(payload["title"]).strip()
    description = payload.get("description")

    # Plain values so a per-target rollback cannot expire what the loop reads
    actor_id = actor.id
    due_type_id = due_type.id
    target_names = {pid: (p.name if p else None) for pid, p in targets}

    created: list[Due] = []
    error_details: list[dict] = []

    for pharmacy_id, pharmacy in targets:
        name = target_names[pharmacy_id]
        if pharmacy is None:
            error_details.append({"pharmacyId": pharmacy_id, "pharmacyName": None, "error": "Pharmacy not found"})
            continue
        try:
            due = _build_due(
                pharmacy_id=pharmacy_id,
                due_type=db.session.get(DueType, due_type_id),
                title=title,
                description=description,
                amount=amount,
                due_date=due_date,
                year=year,
                assignment_type=assignment_type,
                actor=db.session.get(User, actor_id),
            )
            result = _insert_due(due)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to create due for pharmacy %s", pharmacy_id)
            error_details.append({"pharmacyId": pharmacy_id, "pharmacyName": name, "error": "Failed to create due"})
            continue

        if result.created:
            created.append(result.due)
        else:
            error_details.append({
                "pharmacyId": pharmacy_id,
                "pharmacyName": name,
                "error": f"Due already exists for this pharmacy and due type in {year}",
            })

    current_app.logger.info(
        "Assigned due type %s (%s): %s created, %s errors",
        due_type_id, assignment_type, len(created), len(error_details),
    )
    return {
        "created": len(created),
        "errors": len(error_details),
        "dues": [d.to_dict() for d in created],
        "errorDetails": error_details,
    }


# =============================================================================
# READS
# =============================================================================

def get_due_or_404(due_id: int) -> Due:
    due = db.session.get(Due, due_id)
    if not due:
        raise NotFound(f"Due not found with id of {due_id}")
    return due


def _ensure_can_view_pharmacy_dues(pharmacy: Pharmacy, user: User) -> None:
    if not pharmacy_service.is_owner(pharmacy, user):
        permission_service.require_roles(user, policies.DUE_VIEWERS, "Not authorized to access dues for this pharmacy")


def get_due(due_id: int, user: User) -> Due:
    due = get_due_or_404(due_id)
    _ensure_can_view_pharmacy_dues(due.pharmacy, user)
    return due


def _apply_due_filters(query, filters: dict):
    if filters.get("paymentStatus"):
        query = query.filter(Due.payment_status == filters["paymentStatus"])
    if filters.get("year"):
        query = query.filter(Due.year == parse_year(filters["year"]))
    if filters.get("dueTypeId"):
        query = query.filter(Due.due_type_id == parse_int(filters["dueTypeId"], "dueTypeId"))
    if filters.get("pharmacyId"):
        query = query.filter(Due.pharmacy_id == parse_int(filters["pharmacyId"], "pharmacyId"))
    return query


def list_dues(filters: dict, page: int = 1, limit: int = 10) -> tuple[list[Due], int]:
    query = _apply_due_filters(db.session.query(Due), filters)
    total = query.count()
    dues = (
        query.order_by(Due.due_date.desc(), Due.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return dues, total


def get_pharmacy_dues(
    pharmacy_id: int,
    user: User,
    filters: dict,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Due], int]:
    pharmacy = pharmacy_service.get_pharmacy_or_404(pharmacy_id)
    _ensure_can_view_pharmacy_dues(pharmacy, user)
    filters = dict(filters, pharmacyId=pharmacy.id)
    return list_dues(filters, page, limit)


def get_overdue_dues(page: int = 1, limit: int = 10) -> tuple[list[Due], int]:
    """Unpaid dues past their due date, oldest first."""
    now = utcnow()
    query = db.session.query(Due).filter(Due.balance > 0, Due.due_date < now)
    total = query.count()
    dues = query.order_by(Due.due_date.asc(), Due.id).offset((page - 1) * limit).limit(limit).all()
    return dues, total


def get_dues_by_type(due_type_id: int, filters: dict, page: int = 1, limit: int = 10) -> tuple[list[Due], int]:
    get_due_type_or_404(due_type_id)
    return list_dues(dict(filters, dueTypeId=due_type_id), page, limit)


def get_pharmacy_payment_history(pharmacy_id: int, user: User) -> dict:
    pharmacy = pharmacy_service.get_pharmacy_or_404(pharmacy_id)
    _ensure_can_view_pharmacy_dues(pharmacy, user)

    payments = (
        db.session.query(Payment)
        .filter(Payment.pharmacy_id == pharmacy.id)
        .order_by(Payment.submitted_at.desc(), Payment.id.desc())
        .all()
    )
    paid_dues = (
        db.session.query(Due)
        .filter(Due.pharmacy_id == pharmacy.id, Due.payment_status == PaymentStatuses.PAID)
        .order_by(Due.payment_date.desc(), Due.id.desc())
        .all()
    )
    total_paid = sum(p.amount for p in payments if p.approval_status == ApprovalStatuses.APPROVED)
    return {
        "pharmacy": pharmacy.to_summary(),
        "payments": [p.to_dict() for p in payments],
        "paidDues": [d.to_dict() for d in paid_dues],
        "totalPaid": round(total_paid, 2),
    }


def get_clearance_data(due_id: int, user: User) -> dict:
    """Data for a clearance certificate; only fully paid dues qualify."""
    due = get_due(due_id, user)
    if due.payment_status != PaymentStatuses.PAID:
        raise BadRequest("Clearance is only available for fully paid dues")
    return {
        "certificateNumber": f"ACPN-{due.year}-{due.id:06d}",
        "pharmacy": due.pharmacy.to_dict(),
        "due": due.to_dict(),
        "issuedAt": to_utc_z(utcnow()),
    }


# =============================================================================
# MUTATIONS
# =============================================================================

def update_due(due_id: int, payload: dict) -> Due:
    due = get_due_or_404(due_id)

    if "title" in payload and payload["title"]:
        due.title = str(payload["title"]).strip()
    if "description" in payload:
        due.description = payload["description"]
    if payload.get("amount") is not None:
        due.amount = parse_positive_amount(payload["amount"])
    if payload.get("dueDate"):
        due.due_date = parse_datetime_field(payload["dueDate"], "dueDate")
    if payload.get("year"):
        due.year = parse_year(payload["year"])
    if "isRecurring" in payload:
        due.is_recurring = parse_bool(payload["isRecurring"])
    if "nextDueDate" in payload:
        due.next_due_date = parse_optional_datetime(payload["nextDueDate"], "nextDueDate")

    recompute_balance(due)
    year = due.year
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(f"Due already exists for this pharmacy and due type in {year}")
    return due


def delete_due(due_id: int) -> None:
    due = get_due_or_404(due_id)
    db.session.query(Payment).filter_by(due_id=due.id).delete()
    db.session.delete(due)
    db.session.commit()


def add_penalty(due_id: int, payload: dict, actor: User) -> Due:
    permission_service.require_roles(actor, policies.PENALTY_ADDERS, "Not authorized to add penalties")
    if payload.get("amount") in (None, "") or not payload.get("reason"):
        raise BadRequest("Please provide penalty amount and reason")

    due = get_due_or_404(due_id)
    due.penalties.append(
        DuePenalty(
            amount=parse_positive_amount(payload["amount"]),
            reason=str(payload["reason"]).strip(),
            added_by=actor.id,
            added_at=utcnow(),
        )
    )
    recompute_balance(due)
    db.session.commit()
    return due


def remove_penalty(due_id: int, penalty_id: int, actor: User) -> Due:
    permission_service.require_roles(actor, policies.PENALTY_REMOVERS, "Not authorized to remove penalties")

    due = get_due_or_404(due_id)
    penalty = next((p for p in due.penalties if p.id == penalty_id), None)
    if penalty is None:
        raise NotFound(f"Penalty not found with id of {penalty_id}")

    due.penalties.remove(penalty)
    recompute_balance(due)
    db.session.commit()
    return due


def pay_due(due_id: int, payment_reference: str | None = None) -> Due:
    """
    Administrative override: mark the due fully paid.

    Does not create a Payment record.
    """
    due = get_due_or_404(due_id)
    due.amount_paid = due.total_amount
    due.payment_date = utcnow()
    due.payment_reference = payment_reference or f"Manual-{int(time.time() * 1000)}"
    recompute_balance(due)
    db.session.commit()
    return due


def mark_overdue_dues(now: datetime | None = None) -> int:
    """Re-derive status for unpaid dues past their due date. Returns rows changed."""
    now = now or utcnow()
    changed = 0
    candidates = db.session.query(Due).filter(
        Due.payment_status.in_([PaymentStatuses.PENDING, PaymentStatuses.OVERDUE]),
        Due.due_date < now,
    ).all()
    for due in candidates:
        before = due.payment_status
        recompute_balance(due, now=now)
        if due.payment_status != before:
            changed += 1
    db.session.commit()
    return changed


# =============================================================================
# ANALYTICS
# =============================================================================

def _rate(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0
    return round(numerator / denominator * 100, 2)


def _totals_query(*filters):
    return db.session.query(
        func.count(Due.id).label("due_total"),
        func.coalesce(func.sum(Due.total_amount), 0).label("total_amount"),
        func.coalesce(func.sum(Due.amount_paid), 0).label("total_paid"),
        func.coalesce(func.sum(Due.balance), 0).label("outstanding"),
        func.coalesce(func.sum(case((Due.payment_status == PaymentStatuses.PAID, 1), else_=0)), 0).label("paid"),
        func.coalesce(func.sum(case((Due.payment_status == PaymentStatuses.PENDING, 1), else_=0)), 0).label("pending"),
        func.coalesce(func.sum(case((Due.payment_status == PaymentStatuses.OVERDUE, 1), else_=0)), 0).label("overdue"),
        func.coalesce(
            func.sum(case((Due.payment_status == PaymentStatuses.PARTIALLY_PAID, 1), else_=0)), 0
        ).label("partially_paid"),
    ).filter(*filters)


def _totals_dict(row) -> dict:
    count = int(row.due_total or 0)
    total_amount = round(float(row.total_amount or 0), 2)
    total_paid = round(float(row.total_paid or 0), 2)
    paid = int(row.paid or 0)
    return {
        "totalDues": count,
        "totalAmount": total_amount,
        "totalPaid": total_paid,
        "outstanding": round(float(row.outstanding or 0), 2),
        "paidCount": paid,
        "pendingCount": int(row.pending or 0),
        "overdueCount": int(row.overdue or 0),
        "partiallyPaidCount": int(row.partially_paid or 0),
        "complianceRate": _rate(paid, count),
        "collectionRate": _rate(total_paid, total_amount),
    }


def get_dues_stats(year: int | None = None) -> dict:
    """Current-year headline numbers for the dashboard."""
    year = year or utcnow().year
    stats = _totals_dict(_totals_query(Due.year == year).one())
    stats["year"] = year
    return stats


def get_dues_analytics(year: int | None = None) -> dict:
    year = year or utcnow().year
    analytics = _totals_dict(_totals_query(Due.year == year).one())
    analytics["year"] = year

    by_type_rows = (
        db.session.query(
            DueType.id.label("due_type_id"),
            DueType.name.label("name"),
            func.count(Due.id).label("due_total"),
            func.coalesce(func.sum(Due.total_amount), 0).label("total_amount"),
            func.coalesce(func.sum(Due.amount_paid), 0).label("total_paid"),
            func.coalesce(func.sum(Due.balance), 0).label("outstanding"),
        )
        .join(Due, Due.due_type_id == DueType.id)
        .filter(Due.year == year)
        .group_by(DueType.id, DueType.name)
        .order_by(DueType.name)
        .all()
    )
    analytics["duesByType"] = [
        {
            "dueTypeId": row.due_type_id,
            "name": row.name,
            "count": int(row.due_total or 0),
            "totalAmount": round(float(row.total_amount or 0), 2),
            "totalPaid": round(float(row.total_paid or 0), 2),
            "outstanding": round(float(row.outstanding or 0), 2),
        }
        for row in by_type_rows
    ]

    outstanding = func.sum(Due.balance).label("outstanding")
    defaulter_rows = (
        db.session.query(
            Pharmacy.id.label("pharmacy_id"),
            Pharmacy.name.label("name"),
            Pharmacy.registration_number.label("registration_number"),
            outstanding,
            func.count(Due.id).label("due_count"),
        )
        .join(Due, Due.pharmacy_id == Pharmacy.id)
        .filter(Due.year == year, Due.balance > 0)
        .group_by(Pharmacy.id, Pharmacy.name, Pharmacy.registration_number)
        .order_by(outstanding.desc(), Pharmacy.id)
        .limit(10)
        .all()
    )
    analytics["topDefaulters"] = [
        {
            "pharmacyId": row.pharmacy_id,
            "name": row.name,
            "registrationNumber": row.registration_number,
            "outstanding": round(float(row.outstanding or 0), 2),
            "dueCount": int(row.due_count or 0),
        }
        for row in defaulter_rows
    ]
    return analytics


def get_pharmacy_dues_analytics(pharmacy_id: int, user: User) -> dict:
    pharmacy = pharmacy_service.get_pharmacy_or_404(pharmacy_id)
    _ensure_can_view_pharmacy_dues(pharmacy, user)

    analytics = _totals_dict(_totals_query(Due.pharmacy_id == pharmacy.id).one())
    analytics["pharmacy"] = pharmacy.to_summary()

    year_rows = (
        db.session.query(
            Due.year.label("year"),
            func.count(Due.id).label("due_total"),
            func.coalesce(func.sum(Due.total_amount), 0).label("total_amount"),
            func.coalesce(func.sum(Due.amount_paid), 0).label("total_paid"),
            func.coalesce(func.sum(Due.balance), 0).label("outstanding"),
        )
        .filter(Due.pharmacy_id == pharmacy.id)
        .group_by(Due.year)
        .order_by(Due.year.desc())
        .all()
    )
    analytics["byYear"] = [
        {
            "year": row.year,
            "count": int(row.due_total or 0),
            "totalAmount": round(float(row.total_amount or 0), 2),
            "totalPaid": round(float(row.total_paid or 0), 2),
            "outstanding": round(float(row.outstanding or 0), 2),
        }
        for row in year_rows
    ]
    return analytics
