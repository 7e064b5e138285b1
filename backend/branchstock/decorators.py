# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import failure
from .services import user_service


USER_HEADER = "X-User-Id"


def require_user(f):
    """
    Resolve the acting user for the request.

    Authentication is done by the gateway in front of this service, which
    forwards the authenticated account id in the X-User-Id header. Sets
    g.current_user to the active User.

    Returns 401 if the header is missing or names an unknown or
    deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(USER_HEADER)
        if not raw:
            return failure("Authentication required", 401)

        user = user_service.get_active_user(raw)
        if user is None:
            return failure("Invalid or inactive user", 401)

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function
