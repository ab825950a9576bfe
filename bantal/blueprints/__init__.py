"""
BANTAL Back-Office
Blueprint registry helpers — pagination and the shared error mapping.
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from bantal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    IntegrationError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from bantal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def paginate_query(query, default_limit=50, max_limit=500):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 50, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def register_error_handlers(bp):
    """Map service exceptions to HTTP responses for one blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        code = E.CONFLICT_STATE if error.field == "status" else E.CONFLICT_DUPLICATE
        return api_error(code, str(error))

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(IntegrationError)
    def _handle_integration(error: IntegrationError):
        logger.error(
            "Downstream failure service=%s status=%s: %s",
            error.service, error.status_code, error,
        )
        return api_error(E.INTEGRATION, str(error), details={"downstream_status": error.status_code})

    @bp.errorhandler(InternalError)
    def _handle_internal(error: InternalError):
        logger.error("Internal invariant broken endpoint=%s: %s", request.endpoint, error)
        return api_error(E.INTERNAL, "Internal server error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    return bp
