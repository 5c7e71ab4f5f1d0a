# sigb/controllers/penalty_controller.py

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt

from sigb.services.payment_service import PaymentService
from sigb.services.penalty_service import PenaltyService
from sigb.utils.decorators import staff_required
from sigb.utils.errors import ServiceError
from sigb.utils.responses import json_error, server_error, service_error
from sigb.utils.serializers import penalty_to_dict

penalty_bp = Blueprint("penalties", __name__, url_prefix="/api/penalties")


def _jwt_name():
    claims = get_jwt() or {}
    return claims.get("full_name") or claims.get("sub")


@penalty_bp.get("")
@staff_required
def list_penalties():
    try:
        limit = int(request.args.get("limit", 10))
        offset = int(request.args.get("offset", 0))
    except ValueError:
        return json_error("limit and offset must be integers", 400)

    try:
        result = PenaltyService.list_penalties(request.args.get("status"), limit, offset)
        return jsonify({"success": True, **result})
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while fetching penalties")


@penalty_bp.post("")
@staff_required
def create_penalty():
    data = request.get_json(silent=True) or {}
    if data.get("user_id") is None:
        return json_error("user_id is required", 400)

    try:
        penalty = PenaltyService.create(
            data.get("user_id"),
            data.get("loan_id"),
            data.get("penalty_type") or "other",
            data.get("amount_fcfa", data.get("amount")),
            data.get("description") or data.get("reason"),
        )
        return jsonify({"success": True, "message": "Penalty created", "data": penalty_to_dict(penalty)}), 201
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while creating the penalty")


@penalty_bp.post("/calculate")
@staff_required
def calculate():
    try:
        result = PenaltyService.calculate_all()
    except Exception as e:
        return server_error(e, "Error while calculating penalties")

    message = "Penalties calculated"
    if result["errors"]:
        message = f"Penalties calculated with {len(result['errors'])} failed loan(s)"
    return jsonify({"success": True, "message": message, "data": result})


@penalty_bp.get("/calculate")
@staff_required
def penalty_stats():
    include_loans = request.args.get("include_loans") == "true"
    try:
        data = {
            "stats": PenaltyService.stats(),
            "loans_with_penalties": PenaltyService.loans_with_penalties() if include_loans else [],
        }
    except Exception as e:
        return server_error(e, "Error while fetching penalty statistics")
    return jsonify({"success": True, "data": data})


@penalty_bp.post("/pay-new")
@staff_required
def pay():
    data = request.get_json(silent=True) or {}
    try:
        result = PaymentService.pay(
            data.get("penalty_ids"),
            data.get("amount_paid"),
            payment_method=data.get("payment_method") or "cash",
            notes=data.get("notes") or "",
            processed_by=data.get("processed_by") or _jwt_name() or "System",
        )
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while recording the payment")

    return jsonify({
        "success": True,
        "message": f"Payment of {result['total_amount_paid']:.0f} FCFA recorded",
        "data": result,
    })


@penalty_bp.post("/<int:penalty_id>/waive")
@staff_required
def waive(penalty_id: int):
    data = request.get_json(silent=True) or {}
    try:
        penalty = PenaltyService.waive(
            penalty_id,
            data.get("reason"),
            data.get("waived_by") or _jwt_name(),
        )
        return jsonify({"success": True, "message": "Penalty waived", "data": penalty_to_dict(penalty)})
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while waiving the penalty")
