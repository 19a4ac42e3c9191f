# Overview: Service-layer operations for auth; registration, login checks, tokens and account admin.

"""
Authentication and Account Service

WHY: Every action must be attributable. Uses bcrypt for password hashing
and one-time SHA-256-hashed tokens for email verification and password
reset.

LOGIN RULES (checked in this order):
1. Credentials must match (401)
2. Email must be verified (401)
3. Members must be approved by an administrator (403)
4. Status must be active (403)

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Verification/reset tokens: 32 random bytes, only the SHA-256 digest stored
- Unknown email and wrong password yield the same "Invalid credentials"
"""

from __future__ import annotations

import hashlib
import re
import secrets
from datetime import timedelta

import bcrypt
from sqlalchemy import or_
from flask import current_app

from ..errors import BadRequest, Forbidden, NotFound, Unauthorized
from ..extensions import db
from ..models import User
from ..permissions import Actions, Resources, UserRoles, UserStatuses
from . import audit_service
from acpn.time_utils import utcnow


MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash is treated as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()


def _new_token() -> tuple[str, str]:
    raw = secrets.token_hex(32)
    return raw, _hash_token(raw)


def _normalize_email(email: str) -> str:
    if not isinstance(email, str):
        raise BadRequest("Please provide a valid email")
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise BadRequest("Please provide a valid email")
    return email


def create_user(
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str = UserRoles.MEMBER,
    status: str = UserStatuses.PENDING,
    is_approved: bool = False,
    email_verified: bool = False,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises BadRequest on duplicate email, unknown role/status or a weak
    password. Does not commit.
    """
    email = _normalize_email(email)
    if role not in UserRoles.ALL:
        raise BadRequest(f"Invalid role: {role}")
    if status not in UserStatuses.ALL:
        raise BadRequest(f"Invalid status: {status}")
    if db.session.query(User).filter_by(email=email).first():
        raise BadRequest("User with this email already exists")

    user = User(
        first_name=str(first_name).strip(),
        last_name=str(last_name).strip(),
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        status=status,
        is_approved=is_approved,
        email_verified=email_verified,
    )
    db.session.add(user)
    db.session.flush()
    return user


def register_user(payload: dict) -> tuple[User, str]:
    """
    Self-registration. Returns (user, raw email verification token).

    New accounts are members with status=pending until verified and approved.
    """
    for field in ("firstName", "lastName", "email", "password"):
        if not payload.get(field):
            raise BadRequest("Please provide firstName, lastName, email and password")

    user = create_user(
        first_name=payload["firstName"],
        last_name=payload["lastName"],
        email=payload["email"],
        password=payload["password"],
        phone=payload.get("phone"),
    )

    raw, hashed = _new_token()
    user.email_verification_token = hashed
    user.email_verification_expires = utcnow() + timedelta(
        hours=current_app.config.get("EMAIL_VERIFICATION_HOURS", 24)
    )
    db.session.commit()
    current_app.logger.info("Registered user %s (pending approval)", user.id)
    return user, raw


def verify_email(raw_token: str) -> User:
    hashed = _hash_token(raw_token or "")
    user = db.session.query(User).filter(
        User.email_verification_token == hashed,
        User.email_verification_expires > utcnow(),
    ).first()
    if not user:
        raise BadRequest("Invalid or expired token")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User:
    """Apply the login rules and stamp last_login_at. Returns the user."""
    if not email or not password:
        raise BadRequest("Please provide email and password")
    if not isinstance(email, str) or not isinstance(password, str):
        raise BadRequest("Email and password must be strings")

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid credentials")

    if not user.email_verified:
        raise Unauthorized("Please verify your email first")

    if not user.is_approved and user.role == UserRoles.MEMBER:
        raise Forbidden("Your account is pending approval by an administrator")

    if user.status != UserStatuses.ACTIVE:
        raise Forbidden("Your account is not active. Please contact an administrator.")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def forgot_password(email: str) -> tuple[User, str]:
    """Issue a password-reset token. Returns (user, raw token)."""
    if not isinstance(email, str):
        raise BadRequest("Please provide a valid email")
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise NotFound("No user with that email")

    raw, hashed = _new_token()
    user.reset_password_token = hashed
    user.reset_password_expires = utcnow() + timedelta(
        minutes=current_app.config.get("PASSWORD_RESET_MINUTES", 10)
    )
    db.session.commit()
    return user, raw


def reset_password(raw_token: str, new_password: str) -> User:
    hashed = _hash_token(raw_token or "")
    user = db.session.query(User).filter(
        User.reset_password_token == hashed,
        User.reset_password_expires > utcnow(),
    ).first()
    if not user:
        raise BadRequest("Invalid or expired token")

    user.password_hash = hash_password(new_password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.session.commit()
    return user


def update_details(user: User, payload: dict) -> User:
    if "firstName" in payload and payload["firstName"]:
        user.first_name = str(payload["firstName"]).strip()
    if "lastName" in payload and payload["lastName"]:
        user.last_name = str(payload["lastName"]).strip()
    if "phone" in payload:
        user.phone = payload["phone"]
    db.session.commit()
    return user


def update_password(user: User, current_password: str, new_password: str) -> User:
    if not current_password or not new_password:
        raise BadRequest("Please provide currentPassword and newPassword")
    if not isinstance(current_password, str):
        raise BadRequest("currentPassword must be a string")
    if not verify_password(current_password, user.password_hash):
        raise Unauthorized("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()
    return user


# =============================================================================
# ACCOUNT ADMINISTRATION
# =============================================================================

def get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound(f"User not found with id of {user_id}")
    return user


def list_users(
    *,
    role: str | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[User], int]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(User.first_name.ilike(like), User.last_name.ilike(like), User.email.ilike(like))
        )
    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return users, total


def approve_user(user_id: int, actor: User) -> User:
    user = get_user_or_404(user_id)
    if not user.is_approved:
        user.is_approved = True
        user.status = UserStatuses.ACTIVE
        audit_service.record_audit(
            user_id=actor.id,
            action=Actions.APPROVE,
            resource_type=Resources.USER,
            resource_id=user.id,
            details={"email": user.email},
        )
        db.session.commit()
        current_app.logger.info("User %s approved by %s", user.id, actor.id)
    return user


def update_user_status(user_id: int, status: str, actor: User) -> User:
    if not status:
        raise BadRequest("Please provide a status")
    if status not in UserStatuses.ALL:
        raise BadRequest("Invalid status")

    user = get_user_or_404(user_id)
    if user.role == UserRoles.SUPERADMIN and actor.role != UserRoles.SUPERADMIN:
        raise Forbidden("Not authorized to update SuperAdmin status")

    old_status = user.status
    user.status = status
    if status == UserStatuses.ACTIVE:
        user.is_approved = True
    elif status == UserStatuses.REJECTED:
        user.is_approved = False

    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.REJECT if status == UserStatuses.REJECTED else Actions.UPDATE,
        resource_type=Resources.USER,
        resource_id=user.id,
        details={"oldStatus": old_status, "newStatus": status},
    )
    db.session.commit()
    return user


def update_user_role(user_id: int, role: str, actor: User) -> User:
    if role not in UserRoles.ALL:
        raise BadRequest("Invalid role")

    user = get_user_or_404(user_id)
    if user.id == actor.id:
        raise BadRequest("You cannot change your own role")

    old_role = user.role
    user.role = role
    audit_service.record_audit(
        user_id=actor.id,
        action=Actions.ASSIGN,
        resource_type=Resources.USER,
        resource_id=user.id,
        details={"oldRole": old_role, "newRole": role},
    )
    db.session.commit()
    return user
