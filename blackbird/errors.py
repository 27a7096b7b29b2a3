# blackbird/errors.py
"""
Error kinds raised by the services and the JSON handlers that turn them
into `{"ok": False, "error": ...}` responses.
"""

import logging
from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed, missing or inconsistent input."""
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    """Role or ownership mismatch."""
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Unique constraint violation (duplicate name, email, ...)."""
    status_code = 409


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        if e.status_code >= 500:
            log.error(f"❌ {e.message}")
        return jsonify({"ok": False, "error": e.message}), e.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e: IntegrityError):
        log.warning(f"[db] integrity error → {e.orig}")
        return jsonify({"ok": False, "error": "Duplicate or conflicting record"}), 409

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"ok": False, "error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        log.exception("Unhandled error")
        return jsonify({"ok": False, "error": "Internal server error"}), 500
