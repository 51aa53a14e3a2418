# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import UnauthorizedError
from .services import session_service


def _unauthorized(message: str):
    error = UnauthorizedError(message)
    return jsonify(error.to_dict()), error.status_code


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a bearer token and establish the acting user.

    Sets on Flask g:
    - g.current_user: the authenticated User (the tenant/owner)
    - g.session_context: the full SessionContext

    Returns 401 if the Authorization header is missing, or the token is
    unknown, expired or revoked, or the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthorized("Unauthorized")

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)
        if not context:
            return _unauthorized("Invalid or expired token")

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to have the admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return _unauthorized("Unauthorized")
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function
