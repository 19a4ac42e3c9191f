from __future__ import annotations

from ..extensions import db
from ..permissions import UserRoles, UserStatuses
from acpn.time_utils import to_utc_z


class User(db.Model):
    """
    Association member or officer account.

    WHY: Every action must be attributable. No shared logins.

    LIFECYCLE: created at registration with status=pending; becomes usable
    once the email is verified and an admin approves (status=active).
    Users are suspended/rejected/deactivated, never hard-deleted.

    SECURITY: verification and reset tokens are stored as SHA-256 hashes;
    the plaintext only ever leaves the server in the outgoing link.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_status", "role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(32), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # Role name; matches a Role row for the default roles
    role = db.Column(db.String(32), nullable=False, default=UserRoles.MEMBER)
    status = db.Column(db.String(16), nullable=False, default=UserStatuses.PENDING, index=True)

    is_approved = db.Column(db.Boolean, nullable=False, default=False)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)

    email_verification_token = db.Column(db.String(64), nullable=True, index=True)
    email_verification_expires = db.Column(db.DateTime(timezone=True), nullable=True)
    reset_password_token = db.Column(db.String(64), nullable=True, index=True)
    reset_password_expires = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "status": self.status,
            "isApproved": self.is_approved,
            "emailVerified": self.email_verified,
            "createdAt": to_utc_z(self.created_at),
            "lastLoginAt": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }

    def to_summary(self) -> dict:
        """Short form used when a user is embedded in another resource."""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
        }


class Role(db.Model):
    """
    Named bundle of permissions.

    WHY is_default: the six predefined roles back the UserRoles names and
    are rebuilt by initialize_roles(); they cannot be renamed, deactivated
    or deleted.
    """
    __tablename__ = "roles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    # Ordered by position so the permission list keeps its insertion order
    role_permissions = db.relationship(
        "RolePermission",
        backref="role",
        lazy=True,
        order_by="RolePermission.position",
        cascade="all, delete-orphan",
    )
    creator = db.relationship("User", foreign_keys=[created_by])

    @property
    def permissions(self) -> list["Permission"]:
        return [rp.permission for rp in self.role_permissions]

    def to_dict(self, include_permissions: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isDefault": self.is_default,
            "isActive": self.is_active,
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        if include_permissions:
            data["permissions"] = [p.to_dict() for p in self.permissions]
        return data


class Permission(db.Model):
    """
    A single (resource, action) capability.

    DESIGN: (resource, action) is unique; name/description are labels only
    and are the only fields editable after creation.
    """
    __tablename__ = "permissions"
    __table_args__ = (
        db.UniqueConstraint("resource", "action", name="uq_permissions_resource_action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    resource = db.Column(db.String(32), nullable=False, index=True)
    action = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "resource": self.resource,
            "action": self.action,
        }


class RolePermission(db.Model):
    """
    Role-Permission association.

    WHY position: a role's permissions are an ordered list.
    """
    __tablename__ = "role_permissions"
    __table_args__ = (
        db.UniqueConstraint("role_id", "permission_id", name="uq_role_permissions"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    permission_id = db.Column(db.Integer, db.ForeignKey("permissions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    permission = db.relationship("Permission", backref=db.backref("role_permissions", lazy=True))
