# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import error_response
from .permissions import UserStatuses
from .services import permission_service, session_service


def _current_user():
    return getattr(g, "current_user", None)


def _deny(message: str):
    user = _current_user()
    current_app.logger.warning(
        "Access denied: user=%s role=%s %s %s",
        user.id if user else None,
        user.role if user else None,
        request.method,
        request.path,
    )
    return error_response(message, 403)


def require_auth(f):
    """
    Require a valid session token and load the caller into g.current_user.

    SECURITY: Returns 401 if:
    - No Bearer header and no token cookie
    - Token malformed, tampered or expired
    - User referenced by the token no longer exists

    Returns 403 if the user's status is not active, so suspension or
    rejection takes effect on the next request without revoking tokens.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = session_service.extract_token(request)
        if not token:
            return error_response("Not authorized to access this route", 401)

        user = session_service.load_user_from_token(token)
        if not user:
            return error_response("Not authorized to access this route", 401)

        if user.status != UserStatuses.ACTIVE:
            return error_response("Your account is not active. Please contact an administrator.", 403)

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles):
    """
    Coarse role gate.

    Accepts role names and/or policy groups (frozensets from
    permissions.policies), e.g. @require_roles(policies.DUE_MANAGERS).
    Must be stacked under @require_auth.
    """
    allowed = set()
    for role in roles:
        if isinstance(role, str):
            allowed.add(role)
        else:
            allowed.update(role)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = _current_user()
            if user is None:
                return error_response("Authentication context missing", 500)
            if not permission_service.authorize_roles(allowed, user.role):
                return _deny(f"Role '{user.role}' is not authorized to access this route")
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_permission(resource: str, action: str):
    """Fine-grained gate against the role's (resource, action) grants."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = _current_user()
            if user is None:
                return error_response("Authentication context missing", 500)
            if not permission_service.has_permission(user.role, resource, action):
                return _deny(f"You don't have permission to {action} {resource}")
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*pairs):
    """Require any of the given (resource, action) pairs."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = _current_user()
            if user is None:
                return error_response("Authentication context missing", 500)
            if not permission_service.has_any_permission(user.role, pairs):
                return _deny("You don't have any of the required permissions")
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_all_permissions(*pairs):
    """Require every one of the given (resource, action) pairs."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = _current_user()
            if user is None:
                return error_response("Authentication context missing", 500)
            if not permission_service.has_all_permissions(user.role, pairs):
                return _deny("You don't have all of the required permissions")
            return f(*args, **kwargs)

        return decorated_function
    return decorator
