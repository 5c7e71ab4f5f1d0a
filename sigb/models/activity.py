from datetime import datetime
from sigb.extensions import db

class RecentActivity(db.Model):
    __tablename__ = "recent_activities"

    id = db.Column(db.Integer, primary_key=True)
    activity_type = db.Column(db.String(50), nullable=False, index=True)  # penalty_payment / penalty_waived
    description = db.Column(db.String(500), nullable=False)
    details = db.Column(db.Text, nullable=True)  # JSON

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
