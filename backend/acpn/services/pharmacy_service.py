# Overview: Service-layer operations for pharmacies; the member entities dues are raised against.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import BadRequest, NotFound
from ..extensions import db
from ..models import Due, Pharmacy, PharmacyStatuses, User
from ..permissions import Actions, Resources, UserRoles, policies
from ..validation import parse_int
from . import audit_service, permission_service
from acpn.time_utils import utcnow


_EDITABLE_FIELDS = {
    "name": "name",
    "pcnLicenseNumber": "pcn_license_number",
    "location": "location",
    "address": "address",
    "wardArea": "ward_area",
    "phone": "phone",
    "email": "email",
    "superintendentName": "superintendent_name",
    "directorName": "director_name",
}


def is_owner(pharmacy: Pharmacy, user: User) -> bool:
    return pharmacy.user_id == user.id


def get_pharmacy_or_404(pharmacy_id: int) -> Pharmacy:
    pharmacy = db.session.get(Pharmacy, pharmacy_id)
    if not pharmacy:
        raise NotFound(f"Pharmacy not found with id of {pharmacy_id}")
    return pharmacy


def get_visible_pharmacy(pharmacy_id: int, user: User) -> Pharmacy:
    """Owner or pharmacy administrators only."""
    pharmacy = get_pharmacy_or_404(pharmacy_id)
    if not is_owner(pharmacy, user):
        permission_service.require_roles(user, policies.PHARMACY_ADMINS, "Not authorized to access this pharmacy")
    return pharmacy


def get_my_pharmacy(user: User) -> Pharmacy:
    pharmacy = db.session.query(Pharmacy).filter_by(user_id=user.id).first()
    if not pharmacy:
        raise NotFound("No pharmacy found for this user")
    return pharmacy


def list_pharmacies(
    *,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Pharmacy], int]:
    query = db.session.query(Pharmacy)
    if status:
        query = query.filter(Pharmacy.registration_status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Pharmacy.name.ilike(like),
                Pharmacy.registration_number.ilike(like),
                Pharmacy.location.ilike(like),
                Pharmacy.ward_area.ilike(like),
            )
        )
    total = query.count()
    rows = query.order_by(Pharmacy.name).offset((page - 1) * limit).limit(limit).all()
    return rows, total


def create_pharmacy(payload: dict, user: User) -> Pharmacy:
    """
    Register a pharmacy.

    Members own at most one pharmacy and always own what they create;
    administrators may create on behalf of a user via `userId`.
    """
    if not payload.get("name") or not payload.get("registrationNumber"):
        raise BadRequest("Please provide name and registrationNumber")

    owner_id = user.id
    if permission_service.authorize_roles(policies.ADMINS, user.role) and payload.get("userId"):
        owner_id = parse_int(payload["userId"], "userId")
        if not db.session.get(User, owner_id):
            raise NotFound(f"User not found with id of {owner_id}")

    if user.role == UserRoles.MEMBER and db.session.query(Pharmacy).filter_by(user_id=owner_id).first():
        raise BadRequest("You already have a registered pharmacy")

    registration_number = str(payload["registrationNumber"]).strip()
    if db.session.query(Pharmacy).filter_by(registration_number=registration_number).first():
        raise BadRequest("Pharmacy with this registration number already exists")

    pharmacy = Pharmacy(registration_number=registration_number, user_id=owner_id)
    for key, attr in _EDITABLE_FIELDS.items():
        if key in payload:
            setattr(pharmacy, attr, payload[key])

    status = payload.get("registrationStatus")
    if status and permission_service.authorize_roles(policies.ADMINS, user.role):
        if status not in PharmacyStatuses.ALL:
            raise BadRequest("Invalid registration status")
        pharmacy.registration_status = status
        if status == PharmacyStatuses.ACTIVE:
            pharmacy.registration_date = utcnow()

    db.session.add(pharmacy)
    db.session.commit()
    return pharmacy


def update_pharmacy(pharmacy_id: int, payload: dict, user: User) -> Pharmacy:
    pharmacy = get_pharmacy_or_404(pharmacy_id)
    if not is_owner(pharmacy, user):
        permission_service.require_roles(user, policies.ADMINS, "Not authorized to update this pharmacy")

    if "registrationNumber" in payload and payload["registrationNumber"] != pharmacy.registration_number:
        clash = db.session.query(Pharmacy).filter(
            Pharmacy.registration_number == payload["registrationNumber"],
            Pharmacy.id != pharmacy.id,
        ).first()
        if clash:
            raise BadRequest("Pharmacy with this registration number already exists")
        pharmacy.registration_number = payload["registrationNumber"]

    for key, attr in _EDITABLE_FIELDS.items():
        if key in payload:
            setattr(pharmacy, attr, payload[key])

    db.session.commit()
    return pharmacy


def update_status(pharmacy_id: int, status: str, actor: User) -> Pharmacy:
    if status not in PharmacyStatuses.ALL:
        raise BadRequest("Invalid registration status")
    pharmacy = get_pharmacy_or_404(pharmacy_id)
    old_status = pharmacy.registration_status
    pharmacy.registration_status = status
    if status == PharmacyStatuses.ACTIVE and not pharmacy.registration_date:
        pharmacy.registration_date = utcnow()

    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.UPDATE,
        resource_type=Resources.PHARMACY,
        resource_id=pharmacy.id,
        details={"oldStatus": old_status, "newStatus": status},
    )
    db.session.commit()
    return pharmacy


def delete_pharmacy(pharmacy_id: int, actor: User) -> None:
    pharmacy = get_pharmacy_or_404(pharmacy_id)
    due_count = db.session.query(Due).filter_by(pharmacy_id=pharmacy.id).count()
    if due_count:
        raise BadRequest(f"Cannot delete pharmacy with {due_count} due(s) on record")

    details = pharmacy.to_summary()
    db.session.delete(pharmacy)
    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.DELETE,
        resource_type=Resources.PHARMACY,
        resource_id=pharmacy_id,
        details=details,
    )
    db.session.commit()
