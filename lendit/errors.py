"""Error taxonomy for lending operations.

Services raise these exceptions; the handler registered in ``create_app``
turns them into ``{"error": ...}`` JSON responses with the matching status.
"""

from flask import jsonify

from lendit import db


class LendingError(Exception):
    """Base exception for lending operations."""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class NotFoundError(LendingError):
    """Entity missing."""
    status_code = 404


class ForbiddenError(LendingError):
    """Actor is not allowed to perform the operation."""
    status_code = 403


class InvalidStateError(LendingError):
    """Transition is not legal from the current status."""
    status_code = 400


class ValidationError(LendingError):
    """Malformed or out-of-bounds input."""
    status_code = 400


class ConflictError(LendingError):
    """Code already used, deposit already resolved or a concurrent update won."""
    status_code = 409


class GatewayError(LendingError):
    """Payment transfer failed."""
    status_code = 502


class ItemSyncError(LendingError):
    """Transaction committed but the linked item could not be updated."""
    status_code = 500


def register_error_handlers(app):
    """Render LendingError subclasses as JSON and roll back the session."""

    @app.errorhandler(LendingError)
    def handle_lending_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error(f'{type(error).__name__}: {error.message}')
        return jsonify(error.to_dict()), error.status_code
