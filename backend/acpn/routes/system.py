# Overview: System health endpoint; database reachability and role seeding status.

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Permission, Role, User
from ..permissions import UserRoles
from acpn.time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"users": user_count},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_authorization_health() -> dict:
    """Degraded until the default roles and permissions have been seeded."""
    try:
        role_names = {name for (name,) in db.session.query(Role.name).all()}
        permission_count = db.session.query(Permission).count()
    except SQLAlchemyError:
        current_app.logger.exception("Authorization health check failed")
        return {"status": "unhealthy", "error": "Authorization tables unavailable"}

    missing = [name for name in UserRoles.ALL if name not in role_names]
    details = {"permission_count": permission_count, "permissions_initialized": permission_count > 0}
    if missing or not permission_count:
        return {"status": "degraded", "warning": f"Missing roles: {', '.join(missing)}", "details": details}
    return {"status": "healthy", "details": details}


@system_bp.get("/health")
@system_bp.get("/api/health")
def health():
    checks = {
        "database": check_database_health(),
        "authorization": check_authorization_health(),
    }
    statuses = {c["status"] for c in checks.values()}
    if "unhealthy" in statuses:
        overall, code = "unhealthy", 503
    elif "degraded" in statuses:
        overall, code = "degraded", 200
    else:
        overall, code = "healthy", 200
    return jsonify({"success": overall != "unhealthy", "status": overall, "checks": checks, "timestamp": to_utc_z(utcnow())}), code
