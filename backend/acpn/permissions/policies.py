# Overview: Named role groups for coarse route gating and the document access table.

from .definitions import UserRoles

ADMINS = frozenset({UserRoles.ADMIN, UserRoles.SUPERADMIN})
SUPERADMINS = frozenset({UserRoles.SUPERADMIN})

# Users, roles, permissions, audit trail
USER_ADMINS = ADMINS
ROLE_ADMINS = ADMINS

# Dues
DUE_MANAGERS = frozenset({UserRoles.ADMIN, UserRoles.SUPERADMIN, UserRoles.TREASURER})
DUE_VIEWERS = DUE_MANAGERS | {UserRoles.FINANCIAL_SECRETARY}
PENALTY_ADDERS = DUE_MANAGERS | {UserRoles.FINANCIAL_SECRETARY}
PENALTY_REMOVERS = ADMINS
DUE_TYPE_MANAGERS = DUE_VIEWERS
PAYMENT_REVIEWERS = DUE_VIEWERS

# Pharmacies
PHARMACY_ADMINS = ADMINS | {UserRoles.SECRETARY, UserRoles.TREASURER, UserRoles.FINANCIAL_SECRETARY}

# Financial records
FINANCE_ROLES = frozenset({UserRoles.ADMIN, UserRoles.SUPERADMIN, UserRoles.TREASURER})

# Organization documents
DOCUMENT_MANAGERS = frozenset({UserRoles.ADMIN, UserRoles.SUPERADMIN, UserRoles.SECRETARY})
DOCUMENT_ADMINS = ADMINS


class AccessLevels:
    PUBLIC = "public"
    MEMBERS = "members"
    COMMITTEE = "committee"
    EXECUTIVES = "executives"
    ADMIN = "admin"

    ALL = (PUBLIC, MEMBERS, COMMITTEE, EXECUTIVES, ADMIN)


_ALL_MEMBERS = frozenset(UserRoles.ALL)
_COMMITTEE = _ALL_MEMBERS - {UserRoles.MEMBER}
_EXECUTIVES = _COMMITTEE - {UserRoles.SECRETARY}

# Document visibility. Independent from the Role/Permission tables.
DOCUMENT_ACCESS = {
    AccessLevels.PUBLIC: _ALL_MEMBERS,
    AccessLevels.MEMBERS: _ALL_MEMBERS,
    AccessLevels.COMMITTEE: _COMMITTEE,
    AccessLevels.EXECUTIVES: _EXECUTIVES,
    AccessLevels.ADMIN: ADMINS,
}


def has_document_access(user_role: str, access_level: str) -> bool:
    return user_role in DOCUMENT_ACCESS.get(access_level, frozenset())


def accessible_levels(user_role: str) -> list[str]:
    """Access levels readable by `user_role`, in hierarchy order."""
    return [level for level in AccessLevels.ALL if has_document_access(user_role, level)]
