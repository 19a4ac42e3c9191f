# Overview: Typed application errors and the JSON error boundary.

"""
Application error taxonomy.

Services raise these instead of returning error tuples; the handlers
registered in register_error_handlers() turn them into the standard
{"success": false, "message": ...} envelope.
"""

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .extensions import db


class AppError(Exception):
    """Base error carrying an HTTP status code."""
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(AppError):
    """Malformed or missing input, or a business-rule violation."""
    status_code = 400


class Unauthorized(AppError):
    """No credentials, or credentials that do not verify."""
    status_code = 401


class Forbidden(AppError):
    """Authenticated, but role or permission is insufficient."""
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(BadRequest):
    """Duplicate entity (e.g., a due for the same pharmacy/type/year)."""


class InternalError(AppError):
    status_code = 500


def error_response(message: str, status_code: int):
    return jsonify({"success": False, "message": message}), status_code


def register_error_handlers(app) -> None:
    """Install the error boundary on the app."""

    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        db.session.rollback()
        if exc.status_code >= 500:
            current_app.logger.error("Internal error: %s", exc.message)
        return error_response(exc.message, exc.status_code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        current_app.logger.warning("Integrity error: %s", exc.orig)
        return error_response("Duplicate field value entered", 400)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return error_response("Server Error", 500)
