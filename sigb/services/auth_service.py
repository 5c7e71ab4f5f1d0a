from __future__ import annotations

from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token
from sigb.models.user import User
from sigb.repositories.user_repo import UserRepo

class AuthService:
    @staticmethod
    def register(full_name: str, email: str, password: str, barcode: str | None = None, role: str = "user"):
        if UserRepo.get_by_email(email):
            raise ValueError("Email already registered")
        if barcode and UserRepo.get_by_barcode(barcode):
            raise ValueError("Barcode already registered")

        user = User(
            full_name=full_name,
            email=email,
            barcode=barcode or None,
            password_hash=generate_password_hash(password),
            role=role
        )
        UserRepo.create(user)
        return user

    @staticmethod
    def login(email: str, password: str):
        user = UserRepo.get_by_email(email)
        if not user or not check_password_hash(user.password_hash, password):
            raise ValueError("Invalid email or password")

        token = create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role, "full_name": user.full_name}
        )
        return token, user
