from datetime import datetime
from sigb.extensions import db

PENALTY_TYPES = ("late_return", "damage", "loss", "other")
PAYABLE_STATUSES = ("unpaid", "partial")


class Penalty(db.Model):
    __tablename__ = "penalties"
    # one penalty per (loan, type); penalties without a loan are not constrained
    __table_args__ = (
        db.Index(
            "ux_penalties_loan_type", "loan_id", "penalty_type", unique=True,
            mssql_where=db.text("loan_id IS NOT NULL"),
            postgresql_where=db.text("loan_id IS NOT NULL"),
            sqlite_where=db.text("loan_id IS NOT NULL"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    loan_id = db.Column(db.Integer, db.ForeignKey("loans.id"), nullable=True, index=True)

    penalty_type = db.Column(db.String(20), nullable=False, default="late_return")
    amount_fcfa = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    penalty_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="unpaid")  # unpaid/partial/paid/waived
    description = db.Column(db.String(500), nullable=True)

    waived_by = db.Column(db.String(200), nullable=True)
    waived_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", backref="penalties")
    loan = db.relationship("Loan", backref="penalties")
