# sigb/models/notification_log.py
from datetime import datetime
from sigb.extensions import db

class NotificationLog(db.Model):
    __tablename__ = "notification_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    loan_id = db.Column(db.Integer, db.ForeignKey("loans.id"), nullable=True, index=True)
    penalty_id = db.Column(db.Integer, db.ForeignKey("penalties.id"), nullable=True, index=True)

    # penalty_created / payment_confirmation / penalty_waived
    type = db.Column(db.String(50), nullable=False)

    email = db.Column(db.String(255), nullable=True)
    message = db.Column(db.String(1000), nullable=True)

    sent_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    success = db.Column(db.Boolean, nullable=False, default=True)
    error_message = db.Column(db.String(500), nullable=True)
