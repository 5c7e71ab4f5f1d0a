from datetime import datetime
from sigb.extensions import db

DOCUMENT_TYPES = ("book", "thesis", "memoir", "internship_report")


class Loan(db.Model):
    __tablename__ = "loans"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=True, index=True)
    # theses / memoires / stage_reports, picked by document_type
    academic_document_id = db.Column(db.Integer, nullable=True, index=True)
    document_type = db.Column(db.String(30), nullable=False, default="book")

    loan_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    return_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="active")  # active/overdue/returned

    fine_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    fine_paid = db.Column(db.Boolean, nullable=False, default=False)
    fine_calculated_date = db.Column(db.DateTime, nullable=True)
    daily_fine_rate = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", backref="loans")
    book = db.relationship("Book", backref="loans")
