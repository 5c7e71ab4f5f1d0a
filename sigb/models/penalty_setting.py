from datetime import datetime
from sigb.extensions import db

class PenaltySetting(db.Model):
    __tablename__ = "penalty_settings"

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(30), nullable=False, index=True)

    daily_rate = db.Column(db.Numeric(12, 2), nullable=False, default=100)
    max_penalty = db.Column(db.Numeric(12, 2), nullable=False, default=5000)
    grace_period_days = db.Column(db.Integer, nullable=False, default=1)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
