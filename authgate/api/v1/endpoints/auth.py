"""
Authentication endpoints.

Begin and complete the redirect flow for any registered provider, and
verify access tokens obtained outside the flow.
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from authgate.core.dependencies import get_auth_flow
from authgate.core.errors import ErrorCode, ErrorMessages
from authgate.core.exceptions import AuthGateException
from authgate.core.logging import log_error_details
from authgate.providers.base import Provider, User, Verifier
from authgate.services.auth_flow import AuthFlow

logger = structlog.get_logger(__name__)
router = APIRouter()


class VerifyTokenRequest(BaseModel):
    """Access token obtained by the client outside the redirect flow."""
    access_token: str = Field(..., min_length=1)


@router.get("/providers")
async def list_providers(flow: AuthFlow = Depends(get_auth_flow)) -> Dict[str, Any]:
    """
    List registered providers and what they support.

    Returns:
        Provider names with their capabilities
    """
    providers = []
    for name, provider in sorted(flow.registry.get_providers().items()):
        capabilities = []
        if isinstance(provider, Provider):
            capabilities.append("redirect")
        if isinstance(provider, Verifier):
            capabilities.append("verify")
        providers.append({"name": name, "capabilities": capabilities})

    return {"providers": providers}


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_auth(request: Request, flow: AuthFlow = Depends(get_auth_flow)) -> Response:
    """Abandon any pending authentication attempt."""
    await flow.cancel(request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{provider}")
async def begin_auth(
    provider: str,
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """
    Start authentication with a provider.

    Args:
        provider: Registered provider name
        request: FastAPI request object
        flow: Authentication flow

    Returns:
        Redirect to the provider's authorization page
    """
    try:
        url = await flow.get_auth_url(request)
    except AuthGateException as e:
        logger.warning("auth_begin_failed", **log_error_details(e, provider=provider))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorMessages.get(ErrorCode.AUTH_INVALID_REQUEST),
        ) from e
    except Exception as e:
        logger.error("auth_begin_unexpected_error", **log_error_details(e, provider=provider))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorMessages.get(ErrorCode.AUTH_INVALID_REQUEST),
        ) from e

    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/{provider}/callback", response_model=User)
async def auth_callback(
    provider: str,
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> User:
    """
    Handle the provider callback.

    Returns:
        The authenticated user
    """
    return await flow.complete_user_auth(request)


@router.post("/{provider}/verify", response_model=User)
async def verify_token(
    provider: str,
    body: VerifyTokenRequest,
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> User:
    """
    Verify an access token issued by a provider.

    Returns:
        The user the token belongs to
    """
    return await flow.verify_access_token(request, body.access_token)
