from functools import wraps
from flask import g

from security.errors import AuthenticationRequired, AuthorizationDenied

def require_roles(*role_names: str):
    """
    Usage: @require_roles(ROLE_ADMIN)
    Checks the signed-in identity, never the impersonated one.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                raise AuthenticationRequired()

            if user.role not in role_names:
                raise AuthorizationDenied("Admin access required")

            return fn(*args, **kwargs)
        return wrapper
    return decorator
