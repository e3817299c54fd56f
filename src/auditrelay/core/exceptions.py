"""
Custom exceptions for the audit relay service.

Provides structured error handling with appropriate HTTP status codes
and error details for API responses.
"""

from typing import Any, Dict, Optional


class AuditRelayException(Exception):
    """Base exception for the audit relay service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(AuditRelayException):
    """Raised when required server-side configuration is missing."""

    def __init__(
        self,
        message: str = "Server configuration error.",
        setting: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="configuration_error",
            details={"setting": setting} if setting else None,
        )


class AuthenticationError(AuditRelayException):
    """Raised when the callback token is missing or wrong."""

    def __init__(self, message: str = "Unauthorized: Invalid token.") -> None:
        super().__init__(
            message=message,
            status_code=401,
            error_code="authentication_error",
        )
