# Overview: Service-layer operations for sessions; JWT issue/verify and token extraction.

"""
Stateless JWT sessions.

WHY: Every authenticated request carries {id, role} signed with the shared
secret; the user row is re-loaded on each request so status changes
(suspension, rejection) take effect immediately.

SECURITY NOTES:
- HS256 with JWT_SECRET
- Expiry enforced via the standard "exp" claim
- Token accepted from "Authorization: Bearer" or the HTTP-only cookie
"""

from __future__ import annotations

from datetime import timedelta, timezone

import jwt
from flask import current_app

from ..extensions import db
from ..models import User
from acpn.time_utils import utcnow


def issue_token(user: User) -> str:
    now = utcnow().replace(tzinfo=timezone.utc)
    payload = {
        "id": user.id,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(days=current_app.config["JWT_EXPIRES_DAYS"]),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def decode_token(token: str) -> dict | None:
    """Return the payload, or None for a malformed, tampered or expired token."""
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except jwt.PyJWTError:
        return None


def extract_token(req) -> str | None:
    auth_header = req.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    return req.cookies.get(current_app.config["JWT_COOKIE_NAME"]) or None


def load_user_from_token(token: str) -> User | None:
    payload = decode_token(token)
    if not payload or "id" not in payload:
        return None
    return db.session.get(User, payload["id"])


def cookie_max_age() -> int:
    return int(timedelta(days=current_app.config["JWT_EXPIRES_DAYS"]).total_seconds())
