from __future__ import annotations

from ..extensions import db
from acpn.time_utils import to_utc_z


class AuditTrail(db.Model):
    """
    Privileged-mutation audit log.

    WHY: Role, permission, user and document changes must be reconstructable
    after the fact (who, what, when, from where, before/after state).

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "audit_trail"
    __table_args__ = (
        db.Index("ix_audit_trail_resource", "resource_type", "resource_id"),
        db.Index("ix_audit_trail_user_action", "user_id", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # Nullable for CLI/system

    action = db.Column(db.String(16), nullable=False)          # ActionType value, e.g. "update"
    resource_type = db.Column(db.String(32), nullable=False)   # ResourceType value, e.g. "role"
    resource_id = db.Column(db.Integer, nullable=True)

    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "action": self.action,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "details": self.details,
            "ipAddress": self.ip_address,
            "timestamp": to_utc_z(self.timestamp),
        }
