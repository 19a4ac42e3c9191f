# Overview: Service-layer operations for organization documents; access-level gating and version history.

"""
Organization Documents

ACCESS MODEL:
- Every document carries one access level (public, members, committee,
  executives, admin).
- policies.DOCUMENT_ACCESS maps each level to the roles that may read it.
- Listing intersects the caller's readable levels with any explicit
  `accessLevel` filter, so a filter can narrow visibility but never widen it.

VERSIONING:
- Version 1 is written with the document.
- Uploading a version bumps document.version and copies the new file
  metadata onto the document.

ACTIVITY:
- View and download bump counters and append an AuditTrail entry
  (read / export on resource "document"); the 30-day activity series in
  the summary is rebuilt from those entries.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func, or_

from ..errors import BadRequest, Forbidden, NotFound
from ..extensions import db
from ..models import AuditTrail, DocumentCategories, DocumentStatuses, DocumentVersion, OrganizationDocument, User
from ..permissions import Actions, Resources, policies
from ..permissions.policies import AccessLevels
from ..validation import parse_int, parse_optional_datetime, require_choice
from . import audit_service
from acpn.time_utils import start_of_day, to_utc_z, utcnow


ACTIVITY_DAYS = 30

_EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "fileUrl": "file_url",
    "fileName": "file_name",
    "fileType": "file_type",
}


def get_document_or_404(document_id: int) -> OrganizationDocument:
    document = db.session.get(OrganizationDocument, document_id)
    if not document:
        raise NotFound(f"Document not found with id of {document_id}")
    return document


def _ensure_access(document: OrganizationDocument, user: User) -> None:
    if not policies.has_document_access(user.role, document.access_level):
        raise Forbidden("You do not have permission to access this document")


def get_document(document_id: int, user: User) -> OrganizationDocument:
    document = get_document_or_404(document_id)
    _ensure_access(document, user)
    return document


def _apply_fields(document: OrganizationDocument, payload: dict) -> None:
    for key, attr in _EDITABLE_FIELDS.items():
        if key in payload:
            setattr(document, attr, payload[key])
    if "fileSize" in payload:
        document.file_size = parse_int(payload["fileSize"], "fileSize")
    if "category" in payload:
        document.category = require_choice(payload["category"], DocumentCategories.ALL, "category")
    if "accessLevel" in payload:
        document.access_level = require_choice(payload["accessLevel"], AccessLevels.ALL, "accessLevel")
    if "status" in payload:
        document.status = require_choice(payload["status"], DocumentStatuses.ALL, "status")
    if "tags" in payload:
        tags = payload["tags"] or []
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]
        if not isinstance(tags, list):
            raise BadRequest("tags must be a list")
        document.tags = tags
    if "expirationDate" in payload:
        document.expiration_date = parse_optional_datetime(payload["expirationDate"], "expirationDate")


def create_document(payload: dict, actor: User) -> OrganizationDocument:
    if not payload.get("title") or not payload.get("fileUrl") or not payload.get("fileName"):
        raise BadRequest("Please provide title, fileUrl and fileName")

    now = utcnow()
    document = OrganizationDocument(uploaded_by=actor.id, uploaded_at=now, version=1)
    _apply_fields(document, payload)
    db.session.add(document)
    db.session.flush()

    db.session.add(
        DocumentVersion(
            document_id=document.id,
            version=1,
            file_url=document.file_url,
            file_name=document.file_name,
            file_size=document.file_size or 0,
            changes="Initial version",
            uploaded_by=actor.id,
            uploaded_at=now,
        )
    )
    db.session.commit()
    return document


def update_document(document_id: int, payload: dict, actor: User) -> OrganizationDocument:
    document = get_document_or_404(document_id)
    _apply_fields(document, payload)
    document.modified_by = actor.id
    document.modified_at = utcnow()
    db.session.commit()
    return document


def archive_document(document_id: int, actor: User) -> OrganizationDocument:
    document = get_document_or_404(document_id)
    document.status = DocumentStatuses.ARCHIVED
    document.modified_by = actor.id
    document.modified_at = utcnow()
    db.session.commit()
    return document


def delete_document(document_id: int) -> None:
    # Versions go with the document via the delete-orphan cascade
    document = get_document_or_404(document_id)
    db.session.delete(document)
    db.session.commit()


def list_documents(filters: dict, user: User, page: int = 1, limit: int = 10) -> tuple[list[OrganizationDocument], int]:
    levels = policies.accessible_levels(user.role)
    requested = filters.get("accessLevel")
    if requested:
        levels = [level for level in levels if level == requested]

    if not levels:
        return [], 0

    query = db.session.query(OrganizationDocument).filter(OrganizationDocument.access_level.in_(levels))
    if filters.get("category"):
        query = query.filter(OrganizationDocument.category == filters["category"])
    if filters.get("status"):
        query = query.filter(OrganizationDocument.status == filters["status"])
    if filters.get("search"):
        like = f"%{filters['search'].strip()}%"
        query = query.filter(
            or_(OrganizationDocument.title.ilike(like), OrganizationDocument.description.ilike(like))
        )

    total = query.count()
    rows = (
        query.order_by(OrganizationDocument.uploaded_at.desc(), OrganizationDocument.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def _record_activity(document: OrganizationDocument, user: User, action: str) -> None:
    audit_service.record_audit(
        user_id=user.id,
        action=action,
        resource_type=Resources.DOCUMENT,
        resource_id=document.id,
        details={"title": document.title},
    )


def view_document(document_id: int, user: User) -> OrganizationDocument:
    document = get_document(document_id, user)
    document.view_count = (document.view_count or 0) + 1
    _record_activity(document, user, Actions.READ)
    db.session.commit()
    return document


def download_document(document_id: int, user: User) -> OrganizationDocument:
    """Bump the download counter; the route redirects to file_url."""
    document = get_document(document_id, user)
    document.download_count = (document.download_count or 0) + 1
    _record_activity(document, user, Actions.EXPORT)
    db.session.commit()
    return document


# =============================================================================
# VERSIONS
# =============================================================================

def list_versions(document_id: int, user: User) -> list[DocumentVersion]:
    document = get_document(document_id, user)
    return list(document.versions)


def upload_version(document_id: int, payload: dict, actor: User) -> DocumentVersion:
    if not payload.get("fileUrl") or not payload.get("fileName"):
        raise BadRequest("Please provide fileUrl and fileName")

    document = get_document_or_404(document_id)
    now = utcnow()
    next_version = (document.version or 1) + 1
    file_size = parse_int(payload.get("fileSize") or 0, "fileSize")

    version = DocumentVersion(
        document_id=document.id,
        version=next_version,
        file_url=payload["fileUrl"],
        file_name=payload["fileName"],
        file_size=file_size,
        changes=payload.get("changes") or "New version uploaded",
        uploaded_by=actor.id,
        uploaded_at=now,
    )
    db.session.add(version)

    document.version = next_version
    document.file_url = version.file_url
    document.file_name = version.file_name
    document.file_size = file_size
    if payload.get("fileType"):
        document.file_type = payload["fileType"]
    document.modified_by = actor.id
    document.modified_at = now

    db.session.commit()
    return version


# =============================================================================
# SUMMARY
# =============================================================================

def _activity_series(now) -> list[dict]:
    first_day = start_of_day(now - timedelta(days=ACTIVITY_DAYS - 1))
    day = func.date(AuditTrail.timestamp)
    rows = (
        db.session.query(day.label("day"), AuditTrail.action, func.count(AuditTrail.id))
        .filter(
            AuditTrail.resource_type == Resources.DOCUMENT,
            AuditTrail.action.in_((Actions.READ, Actions.EXPORT)),
            AuditTrail.timestamp >= first_day,
        )
        .group_by(day, AuditTrail.action)
        .all()
    )
    counts: dict[str, dict] = {}
    for key, action, n in rows:
        slot = counts.setdefault(str(key), {"views": 0, "downloads": 0})
        slot["views" if action == Actions.READ else "downloads"] = int(n or 0)

    series = []
    for offset in range(ACTIVITY_DAYS):
        label = (first_day + timedelta(days=offset)).date().isoformat()
        slot = counts.get(label, {"views": 0, "downloads": 0})
        series.append({"date": label, "views": slot["views"], "downloads": slot["downloads"]})
    return series


def _zero_filled_counts(column, keys) -> dict:
    rows = (
        db.session.query(column, func.count(OrganizationDocument.id))
        .filter(OrganizationDocument.status == DocumentStatuses.ACTIVE)
        .group_by(column)
        .all()
    )
    found = {k: int(n or 0) for k, n in rows}
    return {key: found.get(key, 0) for key in keys}


def get_summary() -> dict:
    now = utcnow()
    active = db.session.query(OrganizationDocument).filter(OrganizationDocument.status == DocumentStatuses.ACTIVE)

    recent = active.order_by(OrganizationDocument.uploaded_at.desc(), OrganizationDocument.id.desc()).limit(5).all()
    popular = (
        active.order_by(OrganizationDocument.download_count.desc(), OrganizationDocument.id.desc()).limit(5).all()
    )

    return {
        "totalDocuments": active.count(),
        "byCategory": _zero_filled_counts(OrganizationDocument.category, DocumentCategories.ALL),
        "byAccessLevel": _zero_filled_counts(OrganizationDocument.access_level, AccessLevels.ALL),
        "recentDocuments": [d.to_dict() for d in recent],
        "popularDocuments": [d.to_dict() for d in popular],
        "activity": _activity_series(now),
        "generatedAt": to_utc_z(now),
    }
