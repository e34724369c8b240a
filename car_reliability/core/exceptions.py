"""
Application error taxonomy.

Every error raised by services and routes derives from :class:`AppError` and
carries an HTTP status plus a stable machine-readable code. The exception
handler registered in ``car_reliability.main`` maps them to JSON responses of
the form ``{"error": code, "detail": message}``.
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that are surfaced to API clients."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str = "Internal server error",
        *,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        """Serialize the error into a JSON-friendly dictionary."""
        data = {"error": self.code, "detail": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


class AuthenticationError(AppError):
    status_code = 401
    code = "authentication_failed"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class RateLimitExceededError(AppError):
    status_code = 429
    code = "rate_limited"


class ExternalServiceError(AppError):
    """Payment or language-model provider failure."""
    status_code = 502
    code = "external_service_error"


class DatabaseUnavailableError(AppError):
    status_code = 503
    code = "database_unavailable"


class SignatureVerificationError(AppError):
    """Webhook signature did not verify. Never bypassed."""
    status_code = 400
    code = "invalid_signature"


class UnresolvableEventError(AppError):
    """
    A billing event that is essential to entitlement could not be applied
    (e.g. checkout completion without a resolvable user).

    Surfaces as a 5xx so the payment provider redelivers the event.
    """
    status_code = 500
    code = "webhook_processing_failed"
