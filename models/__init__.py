from .db import db
from .user import User
from .session import Session
from .csrf_token import CsrfToken
from .admin_audit_log import AdminAuditLog
from .plant import Plant
