"""
Dependency injection for FastAPI.
"""
from fastapi import Request

from authgate.core.exceptions import ConfigurationError
from authgate.services.auth_flow import AuthFlow


def get_auth_flow(request: Request) -> AuthFlow:
    """
    Authentication flow attached to the running application.

    Raises:
        ConfigurationError: If the application was not built by ``create_app``
    """
    flow = getattr(request.app.state, "auth_flow", None)
    if flow is None:
        raise ConfigurationError("authentication flow is not configured")
    return flow
