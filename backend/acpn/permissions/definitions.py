# Overview: Role, resource and action vocabularies plus curated default role grants.

"""
Permission System Constants and Definitions

WHY: Centralized definitions keep the Role/Permission tables, the route
guards and the CLI speaking the same vocabulary.

DESIGN PRINCIPLES:
- A permission is exactly one (resource, action) pair
- The default permission set is the full resource x action grid
- Default roles are rebuilt from the curated rules below on every
  initialization (reset-to-default, not additive)
"""

# =============================================================================
# ROLES AND STATUSES
# =============================================================================

class UserRoles:
    """User role names. Default Role rows share these names."""
    MEMBER = "member"
    ADMIN = "admin"
    SECRETARY = "secretary"
    TREASURER = "treasurer"
    FINANCIAL_SECRETARY = "financial_secretary"
    SUPERADMIN = "superadmin"

    ALL = (MEMBER, ADMIN, SECRETARY, TREASURER, FINANCIAL_SECRETARY, SUPERADMIN)


class UserStatuses:
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"
    REJECTED = "rejected"

    ALL = (ACTIVE, INACTIVE, SUSPENDED, PENDING, REJECTED)


# =============================================================================
# RESOURCES AND ACTIONS
# =============================================================================

class Resources:
    USER = "user"
    PHARMACY = "pharmacy"
    FINANCIAL_RECORD = "financial_record"
    EVENT = "event"
    DOCUMENT = "document"
    COMMUNICATION = "communication"
    ELECTION = "election"
    POLL = "poll"
    DONATION = "donation"
    DUE = "due"
    ROLE = "role"
    PERMISSION = "permission"
    AUDIT_TRAIL = "audit_trail"

    ALL = (
        USER, PHARMACY, FINANCIAL_RECORD, EVENT, DOCUMENT, COMMUNICATION,
        ELECTION, POLL, DONATION, DUE, ROLE, PERMISSION, AUDIT_TRAIL,
    )


class Actions:
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    MANAGE = "manage"
    EXPORT = "export"
    IMPORT = "import"

    ALL = (CREATE, READ, UPDATE, DELETE, APPROVE, REJECT, ASSIGN, MANAGE, EXPORT, IMPORT)


def permission_name(resource: str, action: str) -> str:
    return f"{action}_{resource}"


def permission_description(resource: str, action: str) -> str:
    return f"Permission to {action} {resource.replace('_', ' ')}"


# Format: (resource, action, name, description)
PERMISSION_DEFINITIONS = [
    (resource, action, permission_name(resource, action), permission_description(resource, action))
    for resource in Resources.ALL
    for action in Actions.ALL
]


# =============================================================================
# DEFAULT ROLES
# =============================================================================

DEFAULT_ROLE_DESCRIPTIONS = {
    UserRoles.SUPERADMIN: "Super Administrator with full system access",
    UserRoles.ADMIN: "Administrator with management access",
    UserRoles.SECRETARY: "Secretary with document and communication management",
    UserRoles.TREASURER: "Treasurer with financial management",
    UserRoles.FINANCIAL_SECRETARY: "Financial Secretary with dues and payment management",
    UserRoles.MEMBER: "Regular member with basic access",
}

# Resources each role manages in full; every role additionally gets all reads.
_ROLE_RESOURCES = {
    UserRoles.SECRETARY: {Resources.DOCUMENT, Resources.COMMUNICATION, Resources.EVENT},
    UserRoles.TREASURER: {Resources.FINANCIAL_RECORD, Resources.DONATION},
    UserRoles.FINANCIAL_SECRETARY: {Resources.FINANCIAL_RECORD, Resources.DUE, Resources.DONATION},
    UserRoles.MEMBER: set(),
}

# Admin holds everything except deleting roles or permissions.
_ADMIN_EXCLUDED = {
    (Resources.ROLE, Actions.DELETE),
    (Resources.PERMISSION, Actions.DELETE),
}


def default_role_grants(role_name: str, resource: str, action: str) -> bool:
    """Return True when the curated default `role_name` holds (resource, action)."""
    if role_name == UserRoles.SUPERADMIN:
        return True
    if role_name == UserRoles.ADMIN:
        return (resource, action) not in _ADMIN_EXCLUDED
    if role_name not in _ROLE_RESOURCES:
        return False
    return resource in _ROLE_RESOURCES[role_name] or action == Actions.READ
