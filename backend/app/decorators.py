# Overview: Request and role decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import Forbidden, Unauthorized
from .services import session_service


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_auth(f):
    """
    Require a logged-in session.

    Sets g.current_user to a SessionUser parsed from the auth cookie.
    Returns 401 when the cookie is missing, malformed, or says the user is
    not authenticated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
        user = session_service.parse_auth_cookie(raw)
        if user is None:
            exc = Unauthorized("Authentication required")
            return jsonify(exc.to_dict()), exc.status_code

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require one of the given roles. Apply below @require_auth.

    admin passes every role check.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                exc = Unauthorized("Authentication required")
                return jsonify(exc.to_dict()), exc.status_code

            user = g.current_user
            if user.is_admin or user.role in roles:
                return f(*args, **kwargs)

            current_app.logger.warning(
                "Role check failed: user %s (%s) on %s %s needs one of %s",
                user.id, user.role, request.method, request.path, ", ".join(roles),
            )
            exc = Forbidden(f"Requires role: {', '.join(roles)}")
            return jsonify(exc.to_dict()), exc.status_code

        return decorated_function
    return decorator
