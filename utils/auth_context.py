from functools import wraps
from flask import g
from models import db
from models.user import User
from security.errors import AuthenticationRequired
from security.session import get_session_from_request
from security.impersonation import effective_user_for

def load_current_user():
    sess = get_session_from_request()
    user = db.session.get(User, sess.user_id) if sess else None
    if not user:
        g.user = None
        g.session = None
        g.effective_user = None
        return
    g.session = sess
    g.user = user
    g.effective_user = effective_user_for(user)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            raise AuthenticationRequired()
        return fn(*args, **kwargs)
    return wrapper
