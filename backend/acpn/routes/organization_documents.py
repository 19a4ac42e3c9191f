# Overview: Flask API routes for organization documents; access-gated reads, managed writes, versions.

from flask import Blueprint, g, redirect, request

from ..decorators import require_auth, require_roles
from ..permissions import policies
from ..responses import json_body, paginated, success
from ..services import document_service
from ..validation import pagination_args


organization_documents_bp = Blueprint(
    "organization_documents", __name__, url_prefix="/api/organization-documents"
)


@organization_documents_bp.get("")
@require_auth
def list_documents_route():
    page, limit = pagination_args(request.args)
    rows, total = document_service.list_documents(request.args.to_dict(), g.current_user, page, limit)
    return paginated([d.to_dict() for d in rows], total, page, limit)


@organization_documents_bp.post("")
@require_auth
@require_roles(policies.DOCUMENT_MANAGERS)
def create_document_route():
    document = document_service.create_document(json_body(), g.current_user)
    return success(document.to_dict(), status_code=201)


@organization_documents_bp.get("/summary")
@require_auth
@require_roles(policies.DOCUMENT_MANAGERS)
def summary_route():
    return success(document_service.get_summary())


@organization_documents_bp.get("/<int:document_id>")
@require_auth
def get_document_route(document_id: int):
    """Counts as a view."""
    return success(document_service.view_document(document_id, g.current_user).to_dict())


@organization_documents_bp.put("/<int:document_id>")
@require_auth
@require_roles(policies.DOCUMENT_MANAGERS)
def update_document_route(document_id: int):
    document = document_service.update_document(document_id, json_body(), g.current_user)
    return success(document.to_dict())


@organization_documents_bp.delete("/<int:document_id>")
@require_auth
@require_roles(policies.DOCUMENT_ADMINS)
def delete_document_route(document_id: int):
    document_service.delete_document(document_id)
    return success({})


@organization_documents_bp.put("/<int:document_id>/archive")
@require_auth
@require_roles(policies.DOCUMENT_MANAGERS)
def archive_document_route(document_id: int):
    document = document_service.archive_document(document_id, g.current_user)
    return success(document.to_dict(), message="Document archived")


@organization_documents_bp.get("/<int:document_id>/download")
@require_auth
def download_document_route(document_id: int):
    document = document_service.download_document(document_id, g.current_user)
    return redirect(document.file_url, code=302)


@organization_documents_bp.get("/<int:document_id>/versions")
@require_auth
def list_versions_route(document_id: int):
    versions = document_service.list_versions(document_id, g.current_user)
    return success([v.to_dict() for v in versions], count=len(versions))


@organization_documents_bp.post("/<int:document_id>/versions")
@require_auth
@require_roles(policies.DOCUMENT_MANAGERS)
def upload_version_route(document_id: int):
    version = document_service.upload_version(document_id, json_body(), g.current_user)
    return success(version.to_dict(), status_code=201)
