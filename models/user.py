from datetime import datetime
from models.db import db

ROLE_USER = "user"
ROLE_ADMIN = "admin"

# "free" is the only tier without access to paid pages
SUBSCRIPTION_TIERS = ("free", "paid", "lifetime")

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=True)
    username = db.Column(db.String(50), unique=True, nullable=True)

    role = db.Column(db.String(20), default=ROLE_USER, nullable=False)
    subscription_tier = db.Column(db.String(20), default="free", nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    sessions = db.relationship("Session", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_paid(self) -> bool:
        return (self.subscription_tier or "free") != "free"

    def snapshot(self) -> dict:
        """Identity fields copied into impersonation state."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
        }
