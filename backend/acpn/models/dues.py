from __future__ import annotations

from ..extensions import db
from acpn.time_utils import to_utc_z


class PaymentStatuses:
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    PARTIALLY_PAID = "partially_paid"

    ALL = (PENDING, PAID, OVERDUE, PARTIALLY_PAID)


class AssignmentTypes:
    INDIVIDUAL = "individual"
    BULK = "bulk"

    ALL = (INDIVIDUAL, BULK)


class RecurringPeriods:
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"

    ALL = (MONTHLY, QUARTERLY, SEMI_ANNUAL, ANNUAL)


class ApprovalStatuses:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    ALL = (PENDING, APPROVED, REJECTED)


class DueType(db.Model):
    """Template for a category of due (e.g., Annual Dues) with a default amount."""
    __tablename__ = "due_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    default_amount = db.Column(db.Float, nullable=True)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurring_period = db.Column(db.String(16), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "defaultAmount": self.default_amount,
            "isRecurring": self.is_recurring,
            "recurringPeriod": self.recurring_period,
            "isActive": self.is_active,
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
        }


class Due(db.Model):
    """
    A financial obligation of one pharmacy for one due type and year.

    INVARIANTS (maintained by due_service.recompute_balance at every
    mutation site):
    - total_amount = amount + sum(penalty amounts)
    - balance = total_amount - amount_paid
    - payment_status derived from balance, amount_paid and due_date

    UNIQUENESS: at most one due per (pharmacy_id, due_type_id, year); the
    constraint is what prevents duplicates under concurrent assignment.
    """
    __tablename__ = "dues"
    __table_args__ = (
        db.UniqueConstraint("pharmacy_id", "due_type_id", "year", name="uq_dues_pharmacy_type_year"),
        db.Index("ix_dues_status_due_date", "payment_status", "due_date"),
        db.Index("ix_dues_year", "year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)
    due_type_id = db.Column(db.Integer, db.ForeignKey("due_types.id"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    amount = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False, default=0)
    amount_paid = db.Column(db.Float, nullable=False, default=0)
    balance = db.Column(db.Float, nullable=False, default=0)

    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatuses.PENDING)

    assignment_type = db.Column(db.String(16), nullable=False, default=AssignmentTypes.INDIVIDUAL)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    next_due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reference = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    pharmacy = db.relationship("Pharmacy", backref=db.backref("dues", lazy=True))
    due_type = db.relationship("DueType", backref=db.backref("dues", lazy=True))
    assigner = db.relationship("User", foreign_keys=[assigned_by])
    penalties = db.relationship(
        "DuePenalty",
        backref="due",
        lazy=True,
        order_by="DuePenalty.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pharmacyId": self.pharmacy_id,
            "pharmacy": self.pharmacy.to_summary() if self.pharmacy else None,
            "dueTypeId": self.due_type_id,
            "dueType": self.due_type.to_summary() if self.due_type else None,
            "title": self.title,
            "description": self.description,
            "amount": self.amount,
            "totalAmount": self.total_amount,
            "amountPaid": self.amount_paid,
            "balance": self.balance,
            "penalties": [p.to_dict() for p in self.penalties],
            "dueDate": to_utc_z(self.due_date),
            "year": self.year,
            "paymentStatus": self.payment_status,
            "assignmentType": self.assignment_type,
            "assignedBy": self.assigner.to_summary() if self.assigner else None,
            "assignedAt": to_utc_z(self.assigned_at) if self.assigned_at else None,
            "isRecurring": self.is_recurring,
            "nextDueDate": to_utc_z(self.next_due_date) if self.next_due_date else None,
            "paymentDate": to_utc_z(self.payment_date) if self.payment_date else None,
            "paymentReference": self.payment_reference,
            "createdAt": to_utc_z(self.created_at),
        }


class DuePenalty(db.Model):
    """Additive charge on a due."""
    __tablename__ = "due_penalties"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    due_id = db.Column(db.Integer, db.ForeignKey("dues.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    added_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    added_at = db.Column(db.DateTime(timezone=True), nullable=False)

    adder = db.relationship("User", foreign_keys=[added_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "reason": self.reason,
            "addedBy": self.adder.to_summary() if self.adder else None,
            "addedAt": to_utc_z(self.added_at),
        }


class Payment(db.Model):
    """
    Payment submitted by a pharmacy against a due.

    LIFECYCLE: pending -> approved | rejected, exactly once. Only approval
    touches the due (amount_paid increment + recompute).
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_due_status", "due_id", "approval_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_type = db.Column(db.String(16), nullable=False, default="due")
    due_id = db.Column(db.Integer, db.ForeignKey("dues.id"), nullable=False, index=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)

    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="bank_transfer")
    payment_reference = db.Column(db.String(120), nullable=True)
    receipt_url = db.Column(db.String(512), nullable=True)

    approval_status = db.Column(db.String(16), nullable=False, default=ApprovalStatuses.PENDING, index=True)
    submitted_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    due = db.relationship("Due", backref=db.backref("payments", lazy=True))
    pharmacy = db.relationship("Pharmacy", backref=db.backref("payments", lazy=True))
    submitter = db.relationship("User", foreign_keys=[submitted_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "paymentType": self.payment_type,
            "dueId": self.due_id,
            "due": {"id": self.due.id, "title": self.due.title, "year": self.due.year} if self.due else None,
            "pharmacyId": self.pharmacy_id,
            "pharmacy": self.pharmacy.to_summary() if self.pharmacy else None,
            "amount": self.amount,
            "paymentMethod": self.payment_method,
            "paymentReference": self.payment_reference,
            "receiptUrl": self.receipt_url,
            "approvalStatus": self.approval_status,
            "submittedBy": self.submitter.to_summary() if self.submitter else None,
            "submittedAt": to_utc_z(self.submitted_at),
            "approvedBy": self.approver.to_summary() if self.approver else None,
            "approvedAt": to_utc_z(self.approved_at) if self.approved_at else None,
            "rejectionReason": self.rejection_reason,
        }
