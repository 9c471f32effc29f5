from datetime import datetime, timezone
from flask import Blueprint, jsonify, request
from models.admin_audit_log import AUDIT_ACTIONS
from models.user import ROLE_ADMIN
from security.errors import ValidationFailed
from security.rbac import require_roles
from utils.audit import query_admin_actions

audit_bp = Blueprint("audit", __name__, url_prefix="/admin")


def _parse_date(value: str):
    """ISO-8601 to naive UTC; raises ValueError on junk."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@audit_bp.get("/audit-logs")
@require_roles(ROLE_ADMIN)
def list_audit_logs():
    action = request.args.get("action") or None
    if action and action not in AUDIT_ACTIONS:
        raise ValidationFailed("Unknown action")

    try:
        start = _parse_date(request.args["startDate"]) if request.args.get("startDate") else None
        end = _parse_date(request.args["endDate"]) if request.args.get("endDate") else None
    except ValueError:
        raise ValidationFailed("Invalid date. Use ISO-8601")

    limit = request.args.get("limit", type=int)
    offset = request.args.get("offset", type=int) or 0

    result = query_admin_actions(
        admin_id=request.args.get("adminId") or None,
        target_id=request.args.get("targetId") or None,
        target_email=request.args.get("targetEmail") or None,
        action=action,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return jsonify(result), 200
