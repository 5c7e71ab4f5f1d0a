from datetime import datetime
from sigb.extensions import db

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    barcode = db.Column(db.String(64), unique=True, nullable=True, index=True)

    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="user")  # user/librarian/admin

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
