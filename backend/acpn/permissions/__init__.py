from .definitions import (
    UserRoles,
    UserStatuses,
    Resources,
    Actions,
    PERMISSION_DEFINITIONS,
    DEFAULT_ROLE_DESCRIPTIONS,
    default_role_grants,
    permission_name,
    permission_description,
)
from .policies import AccessLevels, has_document_access, accessible_levels
from . import policies

__all__ = [
    'UserRoles', 'UserStatuses', 'Resources', 'Actions',
    'PERMISSION_DEFINITIONS', 'DEFAULT_ROLE_DESCRIPTIONS', 'default_role_grants',
    'permission_name', 'permission_description',
    'AccessLevels', 'has_document_access', 'accessible_levels', 'policies',
]
