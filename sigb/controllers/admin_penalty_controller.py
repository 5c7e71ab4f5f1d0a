# sigb/controllers/admin_penalty_controller.py

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from sigb.services.setting_service import SettingService, seed_defaults_as_dicts
from sigb.utils.decorators import role_required
from sigb.utils.errors import ServiceError
from sigb.utils.responses import server_error, service_error
from sigb.utils.serializers import setting_to_dict

admin_penalty_bp = Blueprint("admin_penalties", __name__, url_prefix="/api/admin/penalties")


@admin_penalty_bp.get("")
@jwt_required()
@role_required("admin")
def list_settings():
    document_type = request.args.get("document_type")
    try:
        rows = SettingService.list_settings(document_type)
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while loading penalty settings")

    if not rows:
        defaults = seed_defaults_as_dicts(document_type)
        return jsonify({
            "success": True,
            "data": defaults[0] if document_type else defaults,
            "message": "Default settings returned (table is empty)",
        })

    data = [setting_to_dict(s) for s in rows]
    return jsonify({"success": True, "data": data[0] if document_type else data})


@admin_penalty_bp.post("")
@jwt_required()
@role_required("admin")
def upsert_setting():
    data = request.get_json(silent=True) or {}
    try:
        setting = SettingService.upsert(data)
        return jsonify({
            "success": True,
            "message": "Penalty setting saved",
            "data": setting_to_dict(setting),
        })
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while saving the penalty setting")


@admin_penalty_bp.put("")
@jwt_required()
@role_required("admin")
def update_setting():
    data = request.get_json(silent=True) or {}
    try:
        setting = SettingService.update(data)
        return jsonify({
            "success": True,
            "message": "Penalty setting updated",
            "data": setting_to_dict(setting),
        })
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while updating the penalty setting")


@admin_penalty_bp.delete("")
@jwt_required()
@role_required("admin")
def delete_setting():
    try:
        SettingService.delete(request.args.get("id"), request.args.get("document_type"))
        return jsonify({"success": True, "message": "Penalty setting deleted"})
    except ServiceError as e:
        return service_error(e)
    except Exception as e:
        return server_error(e, "Error while deleting the penalty setting")
