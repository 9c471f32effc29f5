from datetime import datetime
from models.db import db

AUDIT_ACTIONS = frozenset({
    "delete_user_data",
    "delete_user_seeds",
    "delete_user_plantings",
    "delete_user_wishlist",
    "approve_suggestion",
    "reject_suggestion",
    "approve_plant_request",
    "reject_plant_request",
    "edit_plant_request",
    "delete_user",
    "update_user_role",
    "update_user_details",
    "impersonate_start",
    "impersonate_end",
    # plant catalog changes made through the API key
    "create_plant_via_api",
    "update_plant_via_api",
    "patch_plant_via_api",
    "delete_plant_via_api",
    "bulk_upsert_plants_via_api",
    "bulk_delete_plants_via_api",
})

AUDIT_TARGET_TYPES = frozenset({
    "user",
    "suggestion",
    "plant",
    "seed",
    "planting",
    "wishlist",
    "plant_request",
})

class AdminAuditLog(db.Model):
    __tablename__ = "admin_audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    # string ids: API-key callers are recorded as "api"
    admin_id = db.Column(db.String(64), nullable=False, index=True)
    admin_email = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(64), nullable=False, index=True)
    target_type = db.Column(db.String(32), nullable=False)
    target_id = db.Column(db.String(64), nullable=False, index=True)
    target_email = db.Column(db.String(255), nullable=True, index=True)
    reason = db.Column(db.Text, nullable=True)

    # opaque JSON text, decoded on read
    details = db.Column(db.Text, nullable=True)
    previous_state = db.Column(db.Text, nullable=True)
    new_state = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
