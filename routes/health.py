from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from models import db

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as exc:
        db.session.rollback()
        db_status = f"unhealthy: {exc.__class__.__name__}"
    return jsonify(status="ok", database=db_status), 200
