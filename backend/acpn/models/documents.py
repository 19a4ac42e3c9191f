from __future__ import annotations

from ..extensions import db
from ..permissions import AccessLevels
from acpn.time_utils import to_utc_z


class DocumentCategories:
    ALL = ("policy", "form", "report", "newsletter", "minutes", "guideline", "other")


class DocumentStatuses:
    ACTIVE = "active"
    ARCHIVED = "archived"

    ALL = (ACTIVE, ARCHIVED)


class OrganizationDocument(db.Model):
    """
    Association document with access-level gating and version history.

    INVARIANT: `version` equals the highest DocumentVersion.version for the
    document; version 1 is written together with the document.
    """
    __tablename__ = "organization_documents"
    __table_args__ = (
        db.Index("ix_org_documents_status_access", "status", "access_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000), nullable=True)

    file_url = db.Column(db.String(512), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    file_type = db.Column(db.String(128), nullable=True)

    category = db.Column(db.String(32), nullable=False, default="other")
    tags = db.Column(db.JSON, nullable=True)
    access_level = db.Column(db.String(16), nullable=False, default=AccessLevels.MEMBERS)
    status = db.Column(db.String(16), nullable=False, default=DocumentStatuses.ACTIVE)

    uploaded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False)
    modified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    modified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False, default=1)
    download_count = db.Column(db.Integer, nullable=False, default=0)
    view_count = db.Column(db.Integer, nullable=False, default=0)
    expiration_date = db.Column(db.DateTime(timezone=True), nullable=True)

    uploader = db.relationship("User", foreign_keys=[uploaded_by])
    modifier = db.relationship("User", foreign_keys=[modified_by])
    versions = db.relationship(
        "DocumentVersion",
        backref="document",
        lazy=True,
        order_by="DocumentVersion.version.desc()",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "category": self.category,
            "tags": self.tags or [],
            "accessLevel": self.access_level,
            "status": self.status,
            "uploadedBy": self.uploader.to_summary() if self.uploader else None,
            "uploadedAt": to_utc_z(self.uploaded_at),
            "modifiedBy": self.modifier.to_summary() if self.modifier else None,
            "modifiedAt": to_utc_z(self.modified_at) if self.modified_at else None,
            "version": self.version,
            "downloadCount": self.download_count,
            "viewCount": self.view_count,
            "expirationDate": to_utc_z(self.expiration_date) if self.expiration_date else None,
        }


class DocumentVersion(db.Model):
    """Immutable snapshot of a document's file at a given version."""
    __tablename__ = "document_versions"
    __table_args__ = (
        db.UniqueConstraint("document_id", "version", name="uq_document_versions"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("organization_documents.id"), nullable=False, index=True)
    version = db.Column(db.Integer, nullable=False)
    file_url = db.Column(db.String(512), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    changes = db.Column(db.String(500), nullable=False, default="New version uploaded")

    uploaded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False)

    uploader = db.relationship("User", foreign_keys=[uploaded_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "version": self.version,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "changes": self.changes,
            "uploadedBy": self.uploader.to_summary() if self.uploader else None,
            "uploadedAt": to_utc_z(self.uploaded_at),
        }
