"""
Authentication Provider Base Interfaces

Defines the abstract contracts every third-party authentication provider
must satisfy, along with the normalized user record they produce.

A ``Provider`` drives the redirect based flow:

1. ``begin_auth(state)`` returns a provider specific ``Session`` whose
   authorization URL the user is sent to.
2. The session is marshaled into the session store.
3. On callback it is unmarshaled, ``authorize``d with the callback
   parameters and handed to ``fetch_user``.

A ``Verifier`` instead checks an access token obtained out of band.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class User(BaseModel):
    """Normalized user information returned by providers."""
    provider: str
    user_id: str
    name: Optional[str] = None
    nick_name: Optional[str] = None
    email: Optional[str] = None
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    location: Optional[str] = None

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    # Provider payload, untouched
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class BaseProvider(ABC):
    """Common behaviour shared by every registered provider."""

    debug_enabled: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Name the provider is registered and looked up under."""

    def debug(self, enabled: bool) -> None:
        """Toggle verbose provider logging."""
        self.debug_enabled = enabled
        logger.debug("provider_debug_toggled", provider=self.name, enabled=enabled)


class Session(ABC):
    """Opaque, provider defined state for one in-flight authentication."""

    @abstractmethod
    def get_auth_url(self) -> str:
        """
        URL the user must visit to authenticate.

        Raises:
            InvalidSessionError: If no URL has been set
        """

    @abstractmethod
    def marshal(self) -> str:
        """Serialize the session for storage between begin and callback."""

    @abstractmethod
    async def authorize(self, provider: "Provider", params: Mapping[str, str]) -> str:
        """
        Complete the exchange using the callback parameters.

        Args:
            provider: Provider that created this session
            params: Query parameters of the callback request

        Returns:
            The access token granted by the provider

        Raises:
            ProviderError: If the provider rejects the exchange
        """


class Provider(BaseProvider):
    """Provider supporting the two-phase begin/callback flow."""

    @abstractmethod
    async def begin_auth(self, state: str) -> Session:
        """
        Start an authentication attempt.

        Args:
            state: Opaque value echoed back by the provider on callback

        Returns:
            New session carrying the authorization URL
        """

    @abstractmethod
    def unmarshal_session(self, data: str) -> Session:
        """
        Rebuild a session from ``Session.marshal()`` output.

        Raises:
            InvalidSessionError: If the data cannot be decoded
        """

    @abstractmethod
    async def fetch_user(self, session: Session) -> User:
        """
        Fetch the authenticated user for an authorized session.

        Raises:
            ProviderError: If the user cannot be fetched
        """


class Verifier(BaseProvider):
    """Provider able to verify an access token obtained elsewhere."""

    @abstractmethod
    async def verify_auth(self, access_token: str) -> User:
        """
        Validate an access token and return its user.

        Raises:
            ProviderError: If the provider rejects the token
        """
