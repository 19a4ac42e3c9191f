from __future__ import annotations

from ..extensions import db
from acpn.time_utils import to_utc_z


class RecordTypes:
    INCOME = "income"
    EXPENSE = "expense"

    ALL = (INCOME, EXPENSE)


class RecordCategories:
    ALL = (
        "dues",
        "donation",
        "registration",
        "event",
        "operational",
        "administrative",
        "salary",
        "utility",
        "rent",
        "miscellaneous",
        "refund",
        "investment",
        "other",
    )


class RecordPaymentMethods:
    ALL = ("cash", "bank_transfer", "check", "card", "mobile_money", "online_payment", "other")


class RecordStatuses:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    ALL = (PENDING, APPROVED, REJECTED)


class FinancialRecord(db.Model):
    """Income or expense entry in the association's books."""
    __tablename__ = "financial_records"
    __table_args__ = (
        db.Index("ix_financial_records_type_date", "type", "date"),
        db.Index("ix_financial_records_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount = db.Column(db.Float, nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    payment_method = db.Column(db.String(32), nullable=True)
    reference_number = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=RecordStatuses.APPROVED)
    attachments = db.Column(db.JSON, nullable=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    recorder = db.relationship("User", foreign_keys=[recorded_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "amount": self.amount,
            "date": to_utc_z(self.date),
            "paymentMethod": self.payment_method,
            "referenceNumber": self.reference_number,
            "status": self.status,
            "attachments": self.attachments or [],
            "recordedBy": self.recorder.to_summary() if self.recorder else None,
            "approvedBy": self.approver.to_summary() if self.approver else None,
            "createdAt": to_utc_z(self.created_at),
        }
