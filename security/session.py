import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def create_session(user_id: int) -> str:
    """
    Creates a server-side session and returns the RAW token (to set as cookie).
    Only the hash is stored in DB.
    """
    raw_token = secrets.token_urlsafe(32)
    token_hash = _hash_token(raw_token)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 86400)
    expires_at = datetime.utcnow() + timedelta(seconds=lifetime)

    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    user_agent = (request.headers.get("User-Agent") or "")[:255]

    row = Session(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at,
        ip=ip,
        user_agent=user_agent,
    )
    db.session.add(row)
    db.session.commit()
    return raw_token

def find_session(raw_token: str, now: datetime = None):
    """
    Returns the active session for a raw cookie token, or None.
    An expired row found on the way is deleted together with its CSRF tokens.
    """
    if not raw_token:
        return None

    token_hash = _hash_token(raw_token)
    now = now or datetime.utcnow()

    sess = (
        Session.query
        .filter_by(token_hash=token_hash)
        .order_by(Session.expires_at.desc())
        .first()
    )
    if not sess:
        return None

    if sess.expires_at <= now:
        db.session.delete(sess)
        db.session.commit()
        return None

    return sess

def get_session_from_request():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "seedkeeper_session")
    return find_session(request.cookies.get(cookie_name))

def extend_session(sess: Session, seconds: int) -> datetime:
    """Pushes the expiry of a session out to now + seconds (remember me)."""
    sess.expires_at = datetime.utcnow() + timedelta(seconds=seconds)
    db.session.commit()
    return sess.expires_at

def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    token_hash = _hash_token(raw_token)
    sess = Session.query.filter_by(token_hash=token_hash).first()
    if not sess:
        return False
    db.session.delete(sess)
    db.session.commit()
    return True
