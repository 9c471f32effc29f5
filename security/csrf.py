import random
import secrets
from datetime import datetime, timedelta
from flask import request, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.csrf_token import CsrfToken
from security.errors import CsrfError, CsrfTokenMissing, CsrfTokenInvalid

CSRF_HEADER = "X-CSRF-Token"


def _generate_csrf_token(session_id: int, now: datetime) -> str:
    token = secrets.token_hex(32)
    lifetime = current_app.config.get("CSRF_TOKEN_LIFETIME_SECONDS", 24 * 60 * 60)

    db.session.add(CsrfToken(
        token=token,
        session_id=session_id,
        created_at=now,
        expires_at=now + timedelta(seconds=lifetime),
    ))
    db.session.commit()

    if random.random() < current_app.config.get("CSRF_SWEEP_PROBABILITY", 0.01):
        sweep_expired_csrf_tokens(now)

    return token


def issue_csrf_token(session_id: int, now: datetime = None) -> str:
    """
    Returns the newest unexpired token of the session, creating one if
    there is none.
    """
    now = now or datetime.utcnow()
    existing = (
        CsrfToken.query
        .filter(CsrfToken.session_id == session_id, CsrfToken.expires_at > now)
        .order_by(CsrfToken.created_at.desc(), CsrfToken.id.desc())
        .first()
    )
    if existing:
        return existing.token
    return _generate_csrf_token(session_id, now)


def validate_csrf_token(token: str, session_id: int, now: datetime = None) -> None:
    if not token:
        raise CsrfTokenMissing()

    now = now or datetime.utcnow()
    stored = (
        CsrfToken.query
        .filter(
            CsrfToken.token == token,
            CsrfToken.session_id == session_id,
            CsrfToken.expires_at > now,
        )
        .first()
    )
    if not stored:
        raise CsrfTokenInvalid()


def invalidate_csrf_tokens(session_id: int) -> int:
    count = CsrfToken.query.filter_by(session_id=session_id).delete(synchronize_session=False)
    db.session.commit()
    return count


def sweep_expired_csrf_tokens(now: datetime = None) -> int:
    """
    Deletes every token already past expiry. Best effort: a failure is
    logged and rolled back, never raised.
    """
    now = now or datetime.utcnow()
    try:
        count = (
            CsrfToken.query
            .filter(CsrfToken.expires_at < now)
            .delete(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("CSRF token sweep failed", exc_info=True)
        return 0

    if count:
        current_app.logger.info("Swept %d expired CSRF tokens", count)
    return count


def require_csrf():
    sess = getattr(g, "session", None)
    if sess is None:
        raise CsrfTokenInvalid()

    try:
        validate_csrf_token(request.headers.get(CSRF_HEADER), sess.id)
    except CsrfError as exc:
        current_app.logger.warning(
            "CSRF rejected for %s %s (session %s): %s",
            request.method, request.path, sess.id, exc.message,
        )
        raise
