from __future__ import annotations

from ..extensions import db
from acpn.time_utils import to_utc_z


class PharmacyStatuses:
    ACTIVE = "active"
    PENDING = "pending"
    EXPIRED = "expired"
    SUSPENDED = "suspended"

    ALL = (ACTIVE, PENDING, EXPIRED, SUSPENDED)


class Pharmacy(db.Model):
    """
    Member pharmacy; the entity dues are assigned to.

    Only pharmacies with registration_status=active are targeted by bulk
    due assignment.
    """
    __tablename__ = "pharmacies"
    __table_args__ = (
        db.Index("ix_pharmacies_status", "registration_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    registration_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    pcn_license_number = db.Column(db.String(64), nullable=True)

    location = db.Column(db.String(200), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    ward_area = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    superintendent_name = db.Column(db.String(128), nullable=True)
    director_name = db.Column(db.String(128), nullable=True)

    registration_status = db.Column(db.String(16), nullable=False, default=PharmacyStatuses.PENDING)
    registration_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Owning member account
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    owner = db.relationship("User", backref=db.backref("pharmacies", lazy=True))

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "registrationNumber": self.registration_number,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "registrationNumber": self.registration_number,
            "pcnLicenseNumber": self.pcn_license_number,
            "location": self.location,
            "address": self.address,
            "wardArea": self.ward_area,
            "phone": self.phone,
            "email": self.email,
            "superintendentName": self.superintendent_name,
            "directorName": self.director_name,
            "registrationStatus": self.registration_status,
            "registrationDate": to_utc_z(self.registration_date) if self.registration_date else None,
            "userId": self.user_id,
            "owner": self.owner.to_summary() if self.owner else None,
            "createdAt": to_utc_z(self.created_at),
        }
