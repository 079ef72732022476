# Overview: Maps service-layer errors onto JSON error responses.

from flask import request, jsonify, current_app

from ..extensions import db
from ..validation import ValidationError, NotFoundError, ConflictError


STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def error_response(exc: Exception, action: str):
    """
    Roll back and turn an exception into ({"error": ...}, status).

    Known domain errors keep their message; anything else is logged with
    its traceback and reported as a generic 500.
    """
    db.session.rollback()
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return jsonify({"error": str(exc)}), status
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
