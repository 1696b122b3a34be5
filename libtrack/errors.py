from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from libtrack.extensions import db


class LibTrackError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(LibTrackError):
    status_code = 400


class PaymentRequiredError(LibTrackError):
    status_code = 402


class ForbiddenError(LibTrackError):
    status_code = 403


class NotFoundError(LibTrackError):
    status_code = 404


class ConflictError(LibTrackError):
    status_code = 409


class PenaltyConflictError(ConflictError):
    """Another writer created an active penalty for the same key first."""


def register_error_handlers(app):
    @app.errorhandler(LibTrackError)
    def _handle_libtrack_error(err: LibTrackError):
        body = {"success": False, "message": err.message}
        if err.details is not None:
            body["details"] = err.details
        return jsonify(body), err.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(err: HTTPException):
        return jsonify({"success": False, "message": err.description}), err.code

    @app.errorhandler(Exception)
    def _handle_unexpected(err: Exception):
        db.session.rollback()
        current_app.logger.exception(f"[api] Unhandled error: {err}")
        body = {"success": False, "message": "Internal server error"}
        if current_app.config.get("EXPOSE_ERRORS"):
            body["error"] = str(err)
        return jsonify(body), 500
