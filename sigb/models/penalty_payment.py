from datetime import datetime
from sigb.extensions import db

PAYMENT_METHODS = ("cash", "bank_transfer", "mobile_money", "check")


class PenaltyPayment(db.Model):
    __tablename__ = "penalty_payments"

    id = db.Column(db.Integer, primary_key=True)
    penalty_id = db.Column(db.Integer, db.ForeignKey("penalties.id"), nullable=False, index=True)

    amount_paid = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(30), nullable=False, default="cash")
    payment_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.String(1000), nullable=True)
    processed_by = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    penalty = db.relationship("Penalty", backref="payments")
