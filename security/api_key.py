import hmac
from functools import wraps
from flask import request, jsonify, current_app


def constant_time_equals(a: str, b: str) -> bool:
    """
    Compares two secrets in time independent of where they first differ.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _key_from_header():
    header = request.headers.get("Authorization")
    if not header:
        return None
    for scheme in ("Bearer ", "ApiKey "):
        if header.startswith(scheme):
            return header[len(scheme):]
    return header


def require_api_key(fn):
    """
    Usage: @require_api_key
    Accepts `Authorization: Bearer <key>`, `ApiKey <key>` or the bare key.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("ADMIN_API_KEY")
        if not expected:
            current_app.logger.error("ADMIN_API_KEY is not set")
            return jsonify(error="API key authentication is not configured"), 500

        provided = _key_from_header()
        if not provided:
            return jsonify(error="Missing API key. Provide it in the Authorization header (Bearer YOUR_KEY)."), 401

        if not constant_time_equals(provided, expected):
            current_app.logger.warning("Rejected API key for %s %s", request.method, request.path)
            return jsonify(error="Invalid API key"), 401

        return fn(*args, **kwargs)
    return wrapper
