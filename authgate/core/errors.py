"""
Standardized error message catalog for authgate.

Centralizes error codes and default messages so API responses stay
consistent and do not leak internals.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication flow errors (AUTH_*)
    AUTH_NO_PROVIDER = "AUTH_001"
    AUTH_PROVIDER_NOT_FOUND = "AUTH_002"
    AUTH_PROVIDER_UNSUPPORTED = "AUTH_003"
    AUTH_SESSION_NOT_FOUND = "AUTH_004"
    AUTH_SESSION_INVALID = "AUTH_005"
    AUTH_PROVIDER_ERROR = "AUTH_006"
    AUTH_INVALID_REQUEST = "AUTH_007"

    # System errors (SYS_*)
    SYS_INTERNAL_ERROR = "SYS_001"
    SYS_EXTERNAL_SERVICE_ERROR = "SYS_002"
    SYS_CONFIGURATION_ERROR = "SYS_003"


class ErrorMessages:
    """Centralized error message definitions."""

    _messages: Dict[ErrorCode, str] = {
        ErrorCode.AUTH_NO_PROVIDER: "You must select a provider",
        ErrorCode.AUTH_PROVIDER_NOT_FOUND: "Unknown authentication provider",
        ErrorCode.AUTH_PROVIDER_UNSUPPORTED: "Provider does not support this operation",
        ErrorCode.AUTH_SESSION_NOT_FOUND: "Could not find a matching session for this request",
        ErrorCode.AUTH_SESSION_INVALID: "Authentication session is invalid",
        ErrorCode.AUTH_PROVIDER_ERROR: "Authentication with the provider failed",
        ErrorCode.AUTH_INVALID_REQUEST: "Invalid request",
        ErrorCode.SYS_INTERNAL_ERROR: "An internal error occurred. Please try again later",
        ErrorCode.SYS_EXTERNAL_SERVICE_ERROR: "External service is temporarily unavailable",
        ErrorCode.SYS_CONFIGURATION_ERROR: "System configuration error",
    }

    @classmethod
    def get(cls, code: ErrorCode, **kwargs) -> str:
        """
        Get error message for a given error code.

        Args:
            code: Error code
            **kwargs: Additional context for formatting

        Returns:
            Formatted error message
        """
        base_message = cls._messages.get(code, "An error occurred")

        if kwargs:
            try:
                return base_message.format(**kwargs)
            except KeyError:
                return base_message

        return base_message


class ErrorResponse:
    """Standardized error response structure."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message or ErrorMessages.get(code)
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        response = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }

        if self.details:
            response["error"]["details"] = self.details

        return response
