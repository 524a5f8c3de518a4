from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from shipdesk.errors import (
    BackendError,
    InvalidTransition,
    ProcessingBusy,
    RecordNotFound,
    ValidationError,
)

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(ValidationError)
def handle_validation_error(error: ValidationError):
    current_app.logger.info("Rejected input on %s: %s", request.path, error.errors)
    return jsonify({"error": str(error), "errors": error.errors}), 400


@bp.app_errorhandler(InvalidTransition)
def handle_invalid_transition(error: InvalidTransition):
    return jsonify({"error": str(error), "action": error.action, "status": error.status}), 409


@bp.app_errorhandler(ProcessingBusy)
def handle_processing_busy(error: ProcessingBusy):
    return jsonify({"error": str(error)}), 409


@bp.app_errorhandler(RecordNotFound)
def handle_not_found(error: RecordNotFound):
    return jsonify({"error": error.message, "code": error.code or "NOT_FOUND"}), 404


@bp.app_errorhandler(BackendError)
def handle_backend_error(error: BackendError):
    current_app.logger.warning(
        "Backend request failed on %s: %s (%s)", request.path, error.message, error.code
    )
    return jsonify({"error": error.message, "code": error.code}), 502


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    # Allow HTTP errors that are not 500 to propagate to their default handlers.
    if isinstance(error, HTTPException) and error.code != 500:
        return error

    current_app.logger.exception("Unhandled exception", exc_info=error)
    return (
        jsonify(
            {
                "error": "Internal Server Error",
                "endpoint": request.endpoint,
                "path": request.path,
            }
        ),
        500,
    )
