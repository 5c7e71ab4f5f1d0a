# sigb/models/academic.py
from datetime import datetime
from sigb.extensions import db


class Thesis(db.Model):
    __tablename__ = "theses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False, index=True)
    main_author = db.Column(db.String(200), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class Memoir(db.Model):
    __tablename__ = "memoires"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False, index=True)
    main_author = db.Column(db.String(200), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class StageReport(db.Model):
    __tablename__ = "stage_reports"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False, index=True)
    # internship reports carry the student's name instead of an author
    student_name = db.Column(db.String(200), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
