"""
Custom exceptions for the application.
"""
from typing import Any, Dict, Optional

from authgate.core.errors import ErrorCode


class AuthGateException(Exception):
    """Base exception for all authgate exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SYS_INTERNAL_ERROR,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.code = code
        super().__init__(self.message)


class ConfigurationError(AuthGateException):
    """Invalid or missing configuration."""

    def __init__(self, message: str):
        super().__init__(message, status_code=500, code=ErrorCode.SYS_CONFIGURATION_ERROR)


class NoProviderSelectedError(AuthGateException):
    """The request does not name a provider."""

    def __init__(self, message: str = "you must select a provider"):
        super().__init__(message, status_code=400, code=ErrorCode.AUTH_NO_PROVIDER)


class ProviderNotFoundError(AuthGateException):
    """No provider is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"no provider for {name} exists",
            status_code=404,
            details={"provider": name},
            code=ErrorCode.AUTH_PROVIDER_NOT_FOUND,
        )


class UnsupportedProviderError(AuthGateException):
    """The registered provider lacks the capability an operation needs."""

    def __init__(self, name: str, capability: str):
        self.name = name
        self.capability = capability
        super().__init__(
            f"provider {name} does not support {capability}",
            status_code=400,
            details={"provider": name, "capability": capability},
            code=ErrorCode.AUTH_PROVIDER_UNSUPPORTED,
        )


class SessionNotFoundError(AuthGateException):
    """A callback arrived without a pending authentication session."""

    def __init__(self, message: str = "could not find a matching session for this request"):
        super().__init__(message, status_code=400, code=ErrorCode.AUTH_SESSION_NOT_FOUND)


class InvalidSessionError(AuthGateException):
    """Stored session data is malformed or does not match the callback."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            status_code=400,
            details=details,
            code=ErrorCode.AUTH_SESSION_INVALID,
        )


class ProviderError(AuthGateException):
    """The identity provider rejected or failed the request."""

    def __init__(
        self,
        error: str,
        description: Optional[str] = None,
        status_code: int = 400,
    ):
        self.error = error
        self.description = description
        message = f"{error}: {description}" if description else error
        code = (
            ErrorCode.SYS_EXTERNAL_SERVICE_ERROR
            if status_code >= 500
            else ErrorCode.AUTH_PROVIDER_ERROR
        )
        super().__init__(
            message,
            status_code=status_code,
            details={"error": error},
            code=code,
        )
