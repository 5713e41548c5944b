"""
Custom exception classes for the application.
"""

from typing import Any
from uuid import UUID


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ValidationError(AppException):
    """Raised when business validation fails (distinct from pydantic ValidationError)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(AppException):
    """Raised when a requested entity does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "NOT_FOUND", details)


class EventNotFoundError(NotFoundError):
    """Raised when a survey event is not found."""

    def __init__(self, event_id: UUID) -> None:
        self.event_id = event_id
        super().__init__(
            f"Survey event not found: {event_id}",
            {"event_id": str(event_id)},
        )
        self.code = "EVENT_NOT_FOUND"


class ApiKeyNotFoundError(NotFoundError):
    """Raised when an API key is not found for the brand."""

    def __init__(self, key_id: UUID) -> None:
        self.key_id = key_id
        super().__init__(
            f"API key not found: {key_id}",
            {"key_id": str(key_id)},
        )
        self.code = "API_KEY_NOT_FOUND"


class ResponseNotFoundError(NotFoundError):
    """Raised when a survey response is not found."""

    def __init__(self, response_id: UUID) -> None:
        self.response_id = response_id
        super().__init__(
            f"Survey response not found: {response_id}",
            {"response_id": str(response_id)},
        )
        self.code = "RESPONSE_NOT_FOUND"


class EventNotSendableError(AppException):
    """Raised when distribution is requested for an event that cannot send (e.g. draft)."""

    def __init__(self, event_id: UUID, status: str) -> None:
        super().__init__(
            f"Survey event {event_id} is '{status}' and cannot be distributed",
            "EVENT_NOT_SENDABLE",
            {"event_id": str(event_id), "status": status},
        )


class AuthenticationError(AppException):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class InvalidApiKeyError(AuthenticationError):
    """Raised when a presented API key is missing, malformed, revoked or unknown."""

    def __init__(
        self,
        message: str = "Invalid API key",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "INVALID_API_KEY", details)


class ApiKeyIssuanceError(AppException):
    """Raised when an API key cannot be generated; nothing may be persisted."""

    def __init__(
        self,
        message: str = "API key issuance failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "API_KEY_ISSUANCE_FAILED", details)


class ThankYouConfigError(ValidationError):
    """Raised when a thank-you configuration cannot be accepted."""
