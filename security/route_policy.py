from urllib.parse import urlencode
from flask import request, g, jsonify, redirect, current_app

from models.user import ROLE_ADMIN

# Pages that need a signed-in user
PROTECTED_PAGE_PREFIXES = (
    "/seeds",
    "/plantings",
    "/calendar",
    "/wishlist",
    "/almanac",
    "/settings",
)

# Pages that need a paid subscription on top of that
PAID_PAGE_PREFIXES = (
    "/plantings",
    "/calendar",
    "/almanac",
)

PROTECTED_API_PREFIXES = (
    "/auth/me",
    "/auth/logout",
    "/auth/csrf-token",
    "/auth/extend-session",
    "/admin/impersonate/stop",
)

ADMIN_API_PREFIXES = (
    "/admin/users",
    "/admin/audit-logs",
    "/admin/impersonate/start",
)

SIGNIN_PAGE = "/auth/signin"
UPGRADE_PAGE = "/upgrade"


def matches_prefix(path: str, prefixes) -> bool:
    """True when path is one of the prefixes or continues one with '/'."""
    for prefix in prefixes:
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def evaluate_access(path: str, user, effective_user=None):
    """
    Decides a request before any handler runs.

    Returns None to let it through, (302, location) for a page redirect,
    or (401 | 403, message) for an API rejection.
    """
    effective_user = effective_user or user

    is_page = matches_prefix(path, PROTECTED_PAGE_PREFIXES)
    is_admin_api = matches_prefix(path, ADMIN_API_PREFIXES)
    is_api = is_admin_api or matches_prefix(path, PROTECTED_API_PREFIXES)

    if user is None:
        if is_page:
            return 302, f"{SIGNIN_PAGE}?{urlencode({'callbackUrl': path})}"
        if is_api:
            return 401, "Authentication required"
        return None

    if is_admin_api and user.role != ROLE_ADMIN:
        return 403, "Admin access required"

    if matches_prefix(path, PAID_PAGE_PREFIXES) and not effective_user.is_paid:
        return 302, f"{UPGRADE_PAGE}?{urlencode({'feature': path})}"

    return None


def authorize_request():
    decision = evaluate_access(
        request.path,
        getattr(g, "user", None),
        getattr(g, "effective_user", None),
    )
    if decision is None:
        return None

    status, value = decision
    if status == 302:
        return redirect(value, code=302)

    current_app.logger.info("Access denied (%s) for %s %s", status, request.method, request.path)
    return jsonify(error=value), status
