from flask import Blueprint, request, jsonify, current_app, g

from models.user import User
from security.password import verify_password
from security.session import create_session, revoke_session, extend_session
from security.csrf import issue_csrf_token, invalidate_csrf_tokens
from security.errors import ImpersonationDataError
from security.impersonation import (
    read_impersonation_state,
    stop_impersonation,
    clear_impersonation_cookies,
)
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "username": user.username,
        "role": user.role,
        "isPaid": user.is_paid,
        "subscriptionTier": user.subscription_tier,
    }


def _end_own_impersonation() -> bool:
    """
    Ends an impersonation started by the signed-in admin.
    Returns True when the impersonation cookies should be cleared.
    """
    try:
        state = read_impersonation_state()
    except ImpersonationDataError:
        return True
    if state is None or state["adminId"] != g.user.id:
        return False
    stop_impersonation(reason="logout")
    return True


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        current_app.logger.warning("Failed login for %s", email or "<empty>")
        return jsonify(error="Invalid credentials"), 401

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "seedkeeper_session")
    max_age = current_app.config.get("SESSION_LIFETIME_SECONDS", 24 * 60 * 60)

    resp = jsonify(message="Login OK")
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max_age,
        path="/",
    )
    current_app.logger.info("User %s logged in", user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    user = g.effective_user or g.user
    payload = _user_payload(user)
    payload["impersonatedBy"] = g.user.id if user.id != g.user.id else None
    return jsonify(payload), 200


@auth_bp.get("/csrf-token")
@login_required
def csrf_token():
    if g.session is None:
        return jsonify(error="No active session found"), 401

    token = issue_csrf_token(g.session.id)
    return jsonify(csrfToken=token, expiresIn="24h"), 200


@auth_bp.post("/extend-session")
@login_required
def extend():
    data = request.get_json(silent=True) or {}
    if not data.get("remember"):
        return jsonify(success=True, message="Session will expire in 1 day"), 200

    seconds = current_app.config.get("REMEMBER_ME_SECONDS", 365 * 24 * 60 * 60)
    expires_at = extend_session(g.session, seconds)

    resp = jsonify(
        success=True,
        expiresAt=expires_at.isoformat(),
        duration="1 year",
        message="Session extended to 1 year",
    )
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "seedkeeper_session")
    resp.set_cookie(
        cookie_name,
        request.cookies.get(cookie_name),
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=seconds,
        path="/",
    )
    return resp, 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "seedkeeper_session")
    raw_token = request.cookies.get(cookie_name)
    user_id = g.user.id

    ended_impersonation = _end_own_impersonation()
    invalidate_csrf_tokens(g.session.id)
    revoke_session(raw_token)
    current_app.logger.info("User %s logged out", user_id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    if ended_impersonation:
        clear_impersonation_cookies(resp)
    return resp, 200
