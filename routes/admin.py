from flask import Blueprint, jsonify, g, request
from sqlalchemy import or_
from security.rbac import require_roles
from security.impersonation import (
    start_impersonation,
    impersonation_status,
    stop_impersonation,
    set_impersonation_cookies,
    clear_impersonation_cookies,
)
from security.errors import ValidationFailed
from utils.audit import record_admin_action
from utils.auth_context import login_required
from models import db
from models.user import User, ROLE_ADMIN, ROLE_USER

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _user_row(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "username": u.username,
        "role": u.role,
        "subscriptionTier": u.subscription_tier,
        "createdAt": u.created_at.isoformat(),
    }


@admin_bp.get("/users")
@require_roles(ROLE_ADMIN)
def list_users():
    search = (request.args.get("search") or "").strip()
    limit = request.args.get("limit", type=int) or 50
    limit = max(1, min(limit, 100))

    q = User.query
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern), User.username.ilike(pattern)))

    total = q.count()
    users = q.order_by(User.created_at.desc(), User.id.desc()).limit(limit).all()
    return jsonify(users=[_user_row(u) for u in users], total=total), 200


@admin_bp.get("/users/<int:user_id>")
@require_roles(ROLE_ADMIN)
def get_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    return jsonify(user=_user_row(user)), 200


@admin_bp.patch("/users/<int:user_id>")
@require_roles(ROLE_ADMIN)
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    action = data.get("action")

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    if action == "makeAdmin":
        new_role = ROLE_ADMIN
    elif action == "removeAdmin":
        if user.id == g.user.id:
            return jsonify(error="Cannot remove your own admin role"), 400
        new_role = ROLE_USER
    else:
        return jsonify(error="Invalid action"), 400

    previous_role = user.role
    if previous_role == new_role:
        return jsonify(success=True, unchanged=True), 200

    user.role = new_role
    record_admin_action(
        g.user.id,
        g.user.email,
        "update_user_role",
        "user",
        user.id,
        target_email=user.email,
        reason=data.get("reason"),
        details={"action": action, "role": new_role},
        previous_state={"role": previous_role},
        new_state={"role": new_role},
    )
    return jsonify(success=True), 200


@admin_bp.delete("/users/<int:user_id>")
@require_roles(ROLE_ADMIN)
def delete_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    if user.id == g.user.id:
        return jsonify(error="Cannot delete your own account from admin"), 400
    if user.is_admin:
        return jsonify(error="Cannot delete another admin account"), 400

    snapshot = _user_row(user)
    email = user.email
    target_id = user.id

    # sessions and their CSRF tokens go with the user (ORM cascade)
    db.session.delete(user)
    record_admin_action(
        g.user.id,
        g.user.email,
        "delete_user",
        "user",
        target_id,
        target_email=email,
        details={"deletedEmail": email},
        previous_state=snapshot,
    )
    return jsonify(success=True), 200


@admin_bp.post("/impersonate/start")
@require_roles(ROLE_ADMIN)
def impersonate_start():
    data = request.get_json(silent=True) or {}
    user_id = data.get("userId")
    if not user_id:
        raise ValidationFailed("User ID is required")

    state = start_impersonation(g.user, user_id)

    resp = jsonify(success=True, token=state["token"], user=state["user"])
    set_impersonation_cookies(resp, state)
    return resp, 200


@admin_bp.get("/impersonate/status")
def impersonate_status():
    return jsonify(impersonation_status(getattr(g, "user", None))), 200


@admin_bp.post("/impersonate/stop")
@login_required
def impersonate_stop():
    stop_impersonation()

    resp = jsonify(success=True)
    clear_impersonation_cookies(resp)
    return resp, 200
