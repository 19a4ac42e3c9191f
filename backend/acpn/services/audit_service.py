# Overview: Service-layer operations for the audit trail; append-only writes and filtered reads.

from __future__ import annotations

from flask import has_request_context, request

from ..extensions import db
from ..models import AuditTrail
from acpn.time_utils import utcnow


def record_audit(
    *,
    user_id: int | None,
    action: str,
    resource_type: str,
    resource_id: int | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
) -> AuditTrail:
    """
    Append an audit entry to the current session.

    The caller commits, so the entry lands atomically with the mutation it
    describes. IP address defaults to the current request's remote address.
    """
    if ip_address is None and has_request_context():
        ip_address = request.remote_addr

    entry = AuditTrail(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
        timestamp=utcnow(),
    )
    db.session.add(entry)
    return entry


def list_audit_entries(
    *,
    resource_type: str | None = None,
    action: str | None = None,
    user_id: int | None = None,
    resource_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[AuditTrail], int]:
    query = db.session.query(AuditTrail)
    if resource_type:
        query = query.filter(AuditTrail.resource_type == resource_type)
    if action:
        query = query.filter(AuditTrail.action == action)
    if user_id:
        query = query.filter(AuditTrail.user_id == user_id)
    if resource_id:
        query = query.filter(AuditTrail.resource_id == resource_id)

    total = query.count()
    entries = (
        query.order_by(AuditTrail.timestamp.desc(), AuditTrail.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return entries, total
