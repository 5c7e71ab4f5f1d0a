from flask import current_app, jsonify

from sigb.extensions import db
from sigb.utils.errors import ServiceError


def json_error(message, code=400):
    return jsonify({"success": False, "error": message}), code


def service_error(e: ServiceError):
    return json_error(e.message, e.status_code)


def server_error(e: Exception, message: str):
    """Rolls back, logs, and answers 500; the raw error is only exposed in debug mode."""
    db.session.rollback()
    current_app.logger.exception(f"[api] {message}: {e}")
    body = {"success": False, "error": message}
    if current_app.debug:
        body["details"] = str(e)
    return jsonify(body), 500
