"""Domain exceptions for template resolution and card rendering."""

from typing import Any, Dict, Optional


class CardServiceError(Exception):
    """Base class for errors that may be shown to API callers."""

    status_code: int = 400
    error_code: str = "card_service_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(CardServiceError):
    """Missing or invalid scope fields, tags outside the whitelist, bad request shape."""

    status_code = 400
    error_code = "validation_error"


class PreconditionError(CardServiceError):
    """A caller-side precondition (such as an active session) is not met."""

    status_code = 400
    error_code = "precondition_failed"


class ScopeResolutionError(CardServiceError):
    """No active template matched any tier of the waterfall."""

    status_code = 404
    error_code = "scope_resolution_error"

    def __init__(self, message: str = "no active template found for this scope", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class NotFoundError(CardServiceError):
    """Referenced entity or template does not exist."""

    status_code = 404
    error_code = "not_found"


class ConflictError(CardServiceError):
    """Write would collide with existing state."""

    status_code = 409
    error_code = "conflict"


class FatalBatchFailure(CardServiceError):
    """Every entity in a batch failed."""

    status_code = 422
    error_code = "batch_failed"
