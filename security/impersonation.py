"""
Admin impersonation.

An admin may view the app as a non-admin user for at most
IMPERSONATION_MAX_AGE_SECONDS. Nothing is stored server-side: the state
lives in two signed, httpOnly cookies

    admin_session   {adminId, adminEmail}
    impersonation   {adminId, adminEmail, user, token, startedAt}

Both are signed with SECRET_KEY (itsdangerous) and carry a signing
timestamp, so a cookie older than the window is rejected on read even if
the browser still presents it. Start and stop each write one audit entry.
"""
import secrets
from datetime import datetime
from flask import request, current_app
from itsdangerous import URLSafeTimedSerializer, BadData

from models import db
from models.user import User
from security.errors import NotFound, InvalidOperation, ImpersonationDataError
from utils.audit import record_admin_action

ADMIN_SESSION_COOKIE = "admin_session"
IMPERSONATION_COOKIE = "impersonation"


def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=salt)


def _max_age() -> int:
    return current_app.config.get("IMPERSONATION_MAX_AGE_SECONDS", 60 * 60)


def _decode(cookie_name: str):
    """Returns the cookie payload, None when absent; raises BadData when tampered or stale."""
    raw = request.cookies.get(cookie_name)
    if not raw:
        return None
    return _serializer(cookie_name).loads(raw, max_age=_max_age())


def _is_valid_state(data) -> bool:
    if not isinstance(data, dict):
        return False
    user = data.get("user")
    if data.get("adminId") is None or not isinstance(user, dict) or user.get("id") is None:
        return False
    try:
        datetime.fromisoformat(data.get("startedAt") or "")
    except (TypeError, ValueError):
        return False
    return True


def read_impersonation_state():
    try:
        data = _decode(IMPERSONATION_COOKIE)
    except BadData:
        raise ImpersonationDataError()
    if data is None:
        return None
    if not _is_valid_state(data):
        raise ImpersonationDataError()
    return data


def read_admin_session():
    try:
        data = _decode(ADMIN_SESSION_COOKIE)
    except BadData:
        return None
    return data if isinstance(data, dict) else None


def set_impersonation_cookies(resp, state: dict):
    options = dict(
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=_max_age(),
        path="/",
    )
    admin_session = {"adminId": state["adminId"], "adminEmail": state["adminEmail"]}
    resp.set_cookie(ADMIN_SESSION_COOKIE, _serializer(ADMIN_SESSION_COOKIE).dumps(admin_session), **options)
    resp.set_cookie(IMPERSONATION_COOKIE, _serializer(IMPERSONATION_COOKIE).dumps(state), **options)
    return resp


def clear_impersonation_cookies(resp):
    resp.delete_cookie(IMPERSONATION_COOKIE, path="/")
    resp.delete_cookie(ADMIN_SESSION_COOKIE, path="/")
    return resp


def start_impersonation(admin: User, target_user_id) -> dict:
    """
    Builds the impersonation state for `admin` viewing as `target_user_id`
    and records `impersonate_start`. The caller sets the cookies.
    """
    try:
        target = db.session.get(User, int(target_user_id))
    except (TypeError, ValueError):
        target = None
    if target is None:
        raise NotFound("User not found")
    if target.is_admin:
        raise InvalidOperation("Cannot impersonate admin users")

    token = secrets.token_hex(32)
    state = {
        "adminId": admin.id,
        "adminEmail": admin.email,
        "user": target.snapshot(),
        "token": token,
        "startedAt": datetime.utcnow().isoformat(),
    }

    record_admin_action(
        admin.id,
        admin.email,
        "impersonate_start",
        "user",
        target.id,
        target_email=target.email,
        details={"action": "impersonation_started", "token": token[:8] + "..."},
    )
    current_app.logger.info("Admin %s started impersonating user %s", admin.id, target.id)
    return state


def impersonation_status(user) -> dict:
    if user is None:
        return {"impersonating": False}

    try:
        state = read_impersonation_state()
    except ImpersonationDataError:
        return {"impersonating": False}

    if state is None:
        return {"impersonating": False}

    if user.id not in (state["adminId"], state["user"]["id"]):
        return {"impersonating": False}

    return {
        "impersonating": True,
        "user": state["user"],
        "adminId": state["adminId"],
    }


def stop_impersonation(reason: str = None) -> dict:
    """
    Records `impersonate_end` for the state in the request cookies and
    returns it. The caller deletes the cookies.
    """
    if not request.cookies.get(IMPERSONATION_COOKIE):
        raise InvalidOperation("Not currently impersonating")

    state = read_impersonation_state()

    started_at = datetime.fromisoformat(state["startedAt"])
    duration = round((datetime.utcnow() - started_at).total_seconds())

    record_admin_action(
        state["adminId"],
        state.get("adminEmail") or "",
        "impersonate_end",
        "user",
        state["user"]["id"],
        target_email=state["user"].get("email"),
        reason=reason,
        details={"action": "impersonation_ended", "duration": f"{duration} seconds"},
    )
    current_app.logger.info(
        "Admin %s stopped impersonating user %s after %ss",
        state["adminId"], state["user"]["id"], duration,
    )
    return state


def effective_user_for(user):
    """
    The identity the request acts as: the impersonated user while `user` is
    the impersonating admin and both cookies agree on it, else `user`.
    """
    if user is None or not user.is_admin:
        return user

    try:
        state = read_impersonation_state()
    except ImpersonationDataError:
        return user
    if state is None or state["adminId"] != user.id:
        return user

    admin_session = read_admin_session()
    if not admin_session or admin_session.get("adminId") != user.id:
        return user

    target = db.session.get(User, state["user"]["id"])
    if target is None or target.is_admin:
        return user
    return target
