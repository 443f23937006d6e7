# Overview: Shared JSON error responses for route handlers.

from flask import current_app, jsonify

from ..errors import DomainError
from ..extensions import db


def error_response(exc: DomainError):
    """Roll back and answer with the error's code and status."""
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str):
    """Roll back, log the traceback, and answer 500 without leaking details."""
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "code": "internal_error"}), 500
