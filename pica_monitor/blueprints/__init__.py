"""
PICA Monitor
Blueprint registry and shared request plumbing.
"""

import logging

from flask import current_app, request
from werkzeug.exceptions import HTTPException

from pica_monitor.core.exceptions import (
    AuthenticationRequired,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    StaleStatusError,
    ValidationError,
)
from pica_monitor.services.pica_repository import PicaRepository
from pica_monitor.services.pica_service import PicaService
from pica_monitor.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def get_pica_service() -> PicaService:
    """Service bound to the application's configured store and clock."""
    repository = PicaRepository(
        current_app.extensions["pica_store"],
        today=current_app.extensions["pica_clock"],
        allow_reopen=current_app.config.get("PICA_ALLOW_REOPEN", True),
    )
    return PicaService(repository)


def json_body():
    """Return the request's JSON object, or None when absent or malformed."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def register_error_handlers(bp):
    """Map the core exception hierarchy onto the standard error envelope."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        code = E.VALIDATION_REQUIRED if error.status == 400 else E.VALIDATION_INVALID
        return api_error(code, str(error), status=error.status, details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        code = E.CONFLICT_STATE if isinstance(error, StaleStatusError) else E.CONFLICT_DUPLICATE
        return api_error(code, str(error), details={error.field: "conflict"})

    @bp.errorhandler(AuthenticationRequired)
    def _handle_unauthenticated(error: AuthenticationRequired):
        return api_error(E.UNAUTHENTICATED, "Authentication required")

    @bp.errorhandler(PermissionDenied)
    def _handle_forbidden(error: PermissionDenied):
        return api_error(E.FORBIDDEN, "Permission denied", details={"reason": error.reason} if error.reason else None)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        current_app.extensions["pica_store"].rollback()
        return api_error(E.INTERNAL, "Internal server error")
