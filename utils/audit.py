import json
from datetime import datetime
from flask import request, has_request_context, current_app
from models import db
from models.admin_audit_log import AdminAuditLog, AUDIT_ACTIONS, AUDIT_TARGET_TYPES


def request_metadata():
    """
    Returns (ip_address, user_agent) of the current request.
    The first X-Forwarded-For hop wins over X-Real-IP and the socket address.
    """
    if not has_request_context():
        return None, None

    forwarded = request.headers.get("X-Forwarded-For")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    ip = ip or request.headers.get("X-Real-IP") or request.remote_addr
    user_agent = request.headers.get("User-Agent") or None
    return ip, user_agent[:255] if user_agent else None


def _dump(payload):
    return json.dumps(payload) if payload else None


def _load(text):
    return json.loads(text) if text else None


def record_admin_action(
    admin_id,
    admin_email: str,
    action: str,
    target_type: str,
    target_id,
    target_email: str = None,
    reason: str = None,
    details: dict = None,
    previous_state: dict = None,
    new_state: dict = None,
    ip_address: str = None,
    user_agent: str = None,
) -> int:
    """
    Appends one admin audit entry and returns its id.

    Commits the current SQLAlchemy session, so a mutation staged by the caller
    is written in the same transaction as its audit entry.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")
    if target_type not in AUDIT_TARGET_TYPES:
        raise ValueError(f"Unknown audit target type: {target_type}")

    if ip_address is None and user_agent is None:
        ip_address, user_agent = request_metadata()

    row = AdminAuditLog(
        admin_id=str(admin_id),
        admin_email=admin_email or "",
        action=action,
        target_type=target_type,
        target_id=str(target_id),
        target_email=target_email or None,
        reason=reason or None,
        details=_dump(details),
        previous_state=_dump(previous_state),
        new_state=_dump(new_state),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(row)
    db.session.commit()

    current_app.logger.info(
        "Admin action %s by %s on %s %s", action, row.admin_id, target_type, row.target_id
    )
    return row.id


def serialize_audit_entry(row: AdminAuditLog) -> dict:
    return {
        "id": row.id,
        "adminId": row.admin_id,
        "adminEmail": row.admin_email,
        "action": row.action,
        "targetType": row.target_type,
        "targetId": row.target_id,
        "targetEmail": row.target_email,
        "reason": row.reason,
        "details": _load(row.details),
        "previousState": _load(row.previous_state),
        "newState": _load(row.new_state),
        "ipAddress": row.ip_address,
        "userAgent": row.user_agent,
        "createdAt": row.created_at.isoformat(),
    }


def query_admin_actions(
    admin_id=None,
    target_id=None,
    target_email: str = None,
    action: str = None,
    start: datetime = None,
    end: datetime = None,
    limit: int = None,
    offset: int = 0,
) -> dict:
    """
    Newest-first page of audit entries matching every given filter.
    The time range is inclusive on both ends and the page size is clamped
    to AUDIT_LOG_MAX_PAGE_SIZE.
    """
    cap = current_app.config.get("AUDIT_LOG_MAX_PAGE_SIZE", 100)
    if limit is None:
        limit = current_app.config.get("AUDIT_LOG_DEFAULT_PAGE_SIZE", 50)
    limit = max(1, min(limit, cap))
    offset = max(0, offset or 0)

    q = AdminAuditLog.query
    if admin_id is not None:
        q = q.filter(AdminAuditLog.admin_id == str(admin_id))
    if target_id is not None:
        q = q.filter(AdminAuditLog.target_id == str(target_id))
    if target_email:
        q = q.filter(AdminAuditLog.target_email == target_email)
    if action:
        q = q.filter(AdminAuditLog.action == action)
    if start is not None:
        q = q.filter(AdminAuditLog.created_at >= start)
    if end is not None:
        q = q.filter(AdminAuditLog.created_at <= end)

    total = q.count()
    rows = (
        q.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    return {
        "logs": [serialize_audit_entry(r) for r in rows],
        "total": total,
        "hasMore": offset + len(rows) < total,
    }
