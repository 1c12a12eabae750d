# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import Unauthorized
from .models.auth import ROLE_ADMIN
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'company_id')


def _unauthorized(message: str, status: int = 401):
    return jsonify({"error": Unauthorized.kind, "message": message}), status


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.company_id: The tenant (None only for ADMIN)
    - g.role: The user's role
    - g.session_context: The full SessionContext object

    Returns 401 when the Authorization header is missing, the token is
    invalid/expired/revoked, or the user or company was deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthorized("Authentication required")

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)

        if not context:
            return _unauthorized("Invalid or expired token")

        # Every non-ADMIN session must carry a tenant
        if context.company_id is None and context.role != ROLE_ADMIN:
            return _unauthorized("Invalid session: missing tenant context")

        g.current_user = context.user
        g.company_id = context.company_id
        g.role = context.role
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of `roles`. Use below
    @require_auth. Answers 403 otherwise.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return _unauthorized("Authentication required")
            if g.role not in roles:
                return _unauthorized(f"Requires role: {', '.join(roles)}", 403)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_company(f):
    """Reject sessions without a tenant (ADMIN) on company-scoped routes."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return _unauthorized("Authentication required")
        if g.company_id is None:
            return _unauthorized("This endpoint requires a company account", 403)
        return f(*args, **kwargs)
    return decorated_function
