# sigb/controllers/loan_controller.py

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required

from sigb.services.loan_service import LoanService
from sigb.utils.decorators import STAFF_ROLES, staff_required
from sigb.utils.errors import ServiceError
from sigb.utils.responses import json_error, server_error, service_error
from sigb.utils.serializers import loan_to_dict, penalty_to_dict

loan_bp = Blueprint("loans", __name__, url_prefix="/api/loans")


@loan_bp.post("")
@jwt_required()
def borrow():
    data = request.get_json(silent=True) or {}
    role = (get_jwt() or {}).get("role")

    try:
        user_id = int(get_jwt_identity())
        # staff may open a loan on behalf of a reader
        if role in STAFF_ROLES and data.get("user_id") is not None:
            user_id = int(data["user_id"])
        document_id = int(data["document_id"])
        days = int(data.get("days", 14))
    except KeyError:
        return json_error("document_id is required", 400)
    except (TypeError, ValueError):
        return json_error("user_id, document_id and days must be integers", 400)

    try:
        loan = LoanService.borrow(user_id, data.get("document_type") or "book", document_id, days)
        return jsonify({"success": True, "data": loan_to_dict(loan)}), 201
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while creating the loan")


@loan_bp.post("/<int:loan_id>/return")
@staff_required
def return_loan(loan_id: int):
    try:
        loan, penalty = LoanService.return_loan(loan_id)
        return jsonify({
            "success": True,
            "data": {
                "loan": loan_to_dict(loan),
                "penalty": penalty_to_dict(penalty) if penalty else None,
            },
        })
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while returning the loan")


@loan_bp.post("/update-overdue")
@staff_required
def update_overdue():
    try:
        result = LoanService.mark_overdue()
    except Exception as e:
        return server_error(e, "Error while updating overdue loans")

    if result["updated_count"] > 0:
        message = f"{result['updated_count']} loan(s) marked overdue"
    else:
        message = (
            f"{result['effective_overdue']} loan(s) overdue after grace period "
            f"({result['total_overdue']} total)"
        )
    return jsonify({"success": True, "message": message, "data": result})


@loan_bp.get("/update-overdue")
@staff_required
def list_overdue():
    try:
        result = LoanService.list_overdue()
    except Exception as e:
        return server_error(e, "Error while fetching overdue loans")
    return jsonify({"success": True, "data": result["data"], "meta": result["meta"]})
