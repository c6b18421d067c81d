"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so handlers can read it without
    # parsing str(exception). Don't raise this directly - use a specific subclass so
    # callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input or entity validation fails.

    Example: a download task with an empty or "missing" URL.
    """

    pass


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: materializing a track for a generation that is not completed yet.
    """

    pass


class AuthenticationError(DomainException):
    """Caller credential is missing or invalid.

    HTTP Status: 401
    """

    pass


class AuthorizationError(DomainException):
    """Caller is authenticated but does not own the requested resource.

    HTTP Status: 403
    """

    pass


class ExternalServiceError(DomainException):
    """An external service (auth provider, provider CDN) returned an error.

    HTTP Status: 502
    """

    def __init__(
        self, message: str, service: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503
    """

    pass


class SyncAbortedError(DomainException):
    """A sync run stopped before processing any job.

    Raised for the fatal stage failures: the pending job list could not be loaded
    or the caller's inbox project could not be ensured. A partial job list must
    never be reported as a successful sync, so these bubble to the HTTP layer.

    HTTP Status: 500
    """

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"Sync aborted during {stage}: {reason}")
        self.stage = stage
        self.reason = reason


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "InvalidStateException",
    "SyncAbortedError",
    "ValidationException",
]
