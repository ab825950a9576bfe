"""
Back-office exception hierarchy.

Services raise these; they never build HTTP responses. Blueprints register
handlers against these types once and get consistent status codes
everywhere (see bantal/blueprints/__init__.py::register_error_handlers).

Usage:
    from bantal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="MasterDocument", resource_id=doc_id)
    raise ValidationError("clientId is required", details={"client_id": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist (or is deactivated).

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "MasterDocument", "DocumentType").
        resource_id: The key that was looked up. May be an id, a shorthand or a name.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised on a duplicate unique value or a state that forbids the operation.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field (or ``status``) that conflicts.
        value: The conflicting value.
        message: Optional override for the default "already exists" wording.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class ForbiddenError(Exception):
    """Raised when an authenticated caller is not allowed in (unknown or inactive identity).

    Maps to HTTP 403.
    """


class IntegrationError(Exception):
    """Raised when a downstream service call fails.

    Carries the downstream status and payload so the failure can be logged
    and surfaced without losing context. Maps to HTTP 502.

    Args:
        service: Name of the downstream service (e.g. "sso-jwks").
        message: What went wrong.
        status_code: HTTP status returned downstream, if any.
        payload: Decoded downstream body, if any.
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
        payload: dict | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(f"{service}: {message}")


class InternalError(Exception):
    """Raised when an invariant the code relies on is broken (e.g. a handler without a table row).

    Maps to HTTP 500.
    """
