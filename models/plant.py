from datetime import datetime
from models.db import db

class Plant(db.Model):
    __tablename__ = "plants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False, index=True)
    scientific_name = db.Column(db.String(160), nullable=True)
    category = db.Column(db.String(60), nullable=False, index=True)
    days_to_maturity = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)

    is_approved = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "scientificName": self.scientific_name,
            "category": self.category,
            "daysToMaturity": self.days_to_maturity,
            "description": self.description,
            "isApproved": self.is_approved,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
