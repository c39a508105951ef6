# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import failure
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'restaurant_id')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets on Flask g:
    - g.current_user: the authenticated User
    - g.restaurant_id: the tenant captured by the session
    - g.session_context: the full SessionContext

    Returns 401 for a missing/invalid/expired token or a deactivated
    user or restaurant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return failure("Authentication required", 401)

        context = session_service.validate_session(token)
        if not context:
            return failure("Invalid or expired token", 401)

        g.current_user = context.user
        g.restaurant_id = context.restaurant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of the given roles. Must be stacked under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return failure("Authentication required", 401)

            if g.current_user.role not in roles:
                return failure("You do not have permission to perform this action", 403)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
