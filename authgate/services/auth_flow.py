"""
Authentication Flow

Wraps the common begin/callback sequence around the provider registry
and a session store. Applications wanting complete control over the
flow can drive providers directly instead.

The pending attempt is stored under a single session name, so starting
a new attempt replaces any earlier one for the same client.
"""
import secrets
from typing import Callable

import structlog
from starlette.requests import Request

from authgate.core.config import Settings
from authgate.core.exceptions import (
    AuthGateException,
    InvalidSessionError,
    NoProviderSelectedError,
    ProviderError,
    SessionNotFoundError,
    UnsupportedProviderError,
)
from authgate.core.logging import log_error_details, mask_token
from authgate.providers.base import Provider, User, Verifier
from authgate.providers.registry import ProviderRegistry, provider_registry
from .session_store import SessionStore, build_session_store

logger = structlog.get_logger(__name__)

ProviderNameGetter = Callable[[Request], str]
StateGetter = Callable[[Request], str]


def default_provider_name(request: Request) -> str:
    """
    Provider name for a request.

    Read from the ``provider`` path parameter, falling back to the
    ``provider`` query parameter.
    """
    provider = request.path_params.get("provider") or request.query_params.get("provider")
    if not provider:
        raise NoProviderSelectedError()
    return provider


def default_state(request: Request) -> str:
    """Random state sent to the provider and checked on callback."""
    return secrets.token_urlsafe(32)


class AuthFlow:
    """Drives begin-auth, callback and token verification."""

    def __init__(
        self,
        store: SessionStore,
        registry: ProviderRegistry = provider_registry,
        session_name: str = "_authgate_session",
        get_provider_name: ProviderNameGetter = default_provider_name,
        get_state: StateGetter = default_state,
    ):
        self.store = store
        self.registry = registry
        self.session_name = session_name
        self.get_provider_name = get_provider_name
        self.get_state = get_state

    def _provider(self, request: Request) -> Provider:
        name = self.get_provider_name(request)
        provider = self.registry.get_provider(name)
        if not isinstance(provider, Provider):
            raise UnsupportedProviderError(name, "begin/callback authentication")
        return provider

    async def get_auth_url(self, request: Request) -> str:
        """
        Start authentication with the requested provider.

        Stores the provider session so the callback can complete it.

        Returns:
            URL the user should be sent to
        """
        provider = self._provider(request)
        state = self.get_state(request)

        session = await provider.begin_auth(state)
        url = session.get_auth_url()

        await self.store.save(
            request,
            self.session_name,
            {
                "provider": provider.name,
                "state": state,
                "session": session.marshal(),
            },
        )

        logger.info("auth_begin", provider=provider.name, state=mask_token(state))
        return url

    async def complete_user_auth(self, request: Request) -> User:
        """
        Complete authentication and fetch the user from the provider.

        The stored session is discarded once consumed, whether or not
        completion succeeds.

        Raises:
            SessionNotFoundError: If no authentication is pending
            InvalidSessionError: If the pending attempt does not match
            ProviderError: If the provider rejects the callback or fails
        """
        provider = self._provider(request)

        stored = await self.store.get(request, self.session_name)
        if not stored or not stored.get("session"):
            logger.warning("auth_session_not_found", provider=provider.name)
            raise SessionNotFoundError()

        await self.store.delete(request, self.session_name)

        if stored.get("provider") != provider.name:
            logger.warning(
                "auth_session_provider_mismatch",
                expected=stored.get("provider"),
                actual=provider.name,
            )
            raise InvalidSessionError(
                "pending authentication belongs to a different provider",
                details={"provider": provider.name},
            )

        returned_state = request.query_params.get("state")
        expected_state = stored.get("state")
        if returned_state is not None and expected_state and not secrets.compare_digest(
            returned_state, expected_state
        ):
            logger.warning(
                "auth_state_mismatch",
                provider=provider.name,
                state=mask_token(returned_state),
            )
            raise InvalidSessionError("state parameter does not match the pending authentication")

        # Errors must reach the exception handler so the discarded entry is written back
        try:
            session = provider.unmarshal_session(stored["session"])
            await session.authorize(provider, request.query_params)
            user = await provider.fetch_user(session)
        except AuthGateException:
            raise
        except Exception as e:
            logger.error(
                "auth_complete_unexpected_error",
                **log_error_details(e, provider=provider.name),
            )
            raise ProviderError(
                "provider_failure",
                "unexpected error while completing authentication",
                status_code=502,
            ) from e

        logger.info("auth_complete", provider=provider.name, user_id=user.user_id)
        return user

    async def verify_access_token(self, request: Request, access_token: str) -> User:
        """Verify a token obtained outside the redirect flow."""
        name = self.get_provider_name(request)
        provider = self.registry.get_provider(name)
        if not isinstance(provider, Verifier):
            raise UnsupportedProviderError(name, "access token verification")

        user = await provider.verify_auth(access_token)
        logger.info("auth_token_verified", provider=name, user_id=user.user_id)
        return user

    async def cancel(self, request: Request) -> None:
        """Drop any pending authentication attempt."""
        await self.store.delete(request, self.session_name)
        logger.info("auth_cancelled")


def build_auth_flow(
    settings: Settings,
    registry: ProviderRegistry = provider_registry,
) -> AuthFlow:
    """Flow using the session backend and session name from settings."""
    return AuthFlow(
        store=build_session_store(settings),
        registry=registry,
        session_name=settings.SESSION_NAME,
    )
