from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt
from sigb.services.auth_service import AuthService
from sigb.repositories.user_repo import UserRepo

auth_bp = Blueprint("auth", __name__)

@auth_bp.post("/register", endpoint="auth_register")
def register():
    data = request.get_json(silent=True) or {}

    full_name = (data.get("full_name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = (data.get("password") or "").strip()
    barcode = (data.get("barcode") or "").strip() or None

    if not full_name or not email or not password:
        return jsonify({"success": False, "error": "full_name/email/password are required"}), 400

    try:
        user = AuthService.register(
            full_name=full_name,
            email=email,
            password=password,
            barcode=barcode,
            role="user"  # roles are never taken from the request
        )
        return jsonify({"success": True, "data": {"id": user.id, "full_name": user.full_name, "role": user.role}}), 201
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400


@auth_bp.post("/login", endpoint="auth_login")
def login():
    data = request.get_json(silent=True) or {}
    try:
        token, user = AuthService.login(
            (data.get("email") or "").strip().lower(),
            (data.get("password") or "").strip()
        )
        return jsonify({
            "success": True,
            "data": {
                "access_token": token,
                "user": {"id": user.id, "full_name": user.full_name, "role": user.role}
            }
        })
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 401


@auth_bp.get("/me", endpoint="auth_me")
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    claims = get_jwt()
    user = UserRepo.get_by_id(user_id)
    if not user:
        return jsonify({"success": False, "error": "User not found"}), 404

    return jsonify({
        "success": True,
        "data": {
            "id": user.id,
            "full_name": user.full_name,
            "email": user.email,
            "barcode": user.barcode,
            "role": claims.get("role", user.role)
        }
    })
