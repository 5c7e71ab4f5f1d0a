from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required

from sigb.services.penalty_service import PenaltyService
from sigb.utils.decorators import STAFF_ROLES
from sigb.utils.errors import ServiceError
from sigb.utils.responses import json_error, server_error, service_error

user_bp = Blueprint("users", __name__, url_prefix="/api/users")


@user_bp.get("/<int:user_id>/penalties")
@jwt_required()
def user_penalties(user_id: int):
    role = (get_jwt() or {}).get("role")
    # readers only see their own penalties
    if role not in STAFF_ROLES and int(get_jwt_identity()) != user_id:
        return json_error("Forbidden", 403)

    try:
        result = PenaltyService.user_penalties(user_id)
        return jsonify({"success": True, **result})
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while fetching user penalties")
