"""
Generic OAuth2 Provider Implementation

Configuration driven authorization-code provider. Endpoints, scopes and
the mapping from the profile payload onto ``User`` are supplied by the
caller, so any standards compliant OAuth2 service can be plugged in
without provider specific code.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from authgate.core.config import OAuth2ProviderSettings, Settings
from authgate.core.exceptions import ConfigurationError, InvalidSessionError, ProviderError
from authgate.core.logging import mask_token
from .base import Provider, Session, User, Verifier

logger = structlog.get_logger(__name__)

# User field -> dotted path into the profile payload. The defaults fit flat
# OpenID Connect style profiles. A path that resolves to an object or list
# maps to None, so providers nesting these values (e.g. ``picture.data.url``)
# must override the entry.
DEFAULT_FIELD_MAP: Dict[str, str] = {
    "user_id": "id",
    "name": "name",
    "nick_name": "name",
    "email": "email",
    "description": "bio",
    "avatar_url": "picture",
    "location": "location",
}

USER_PROFILE_FIELDS = frozenset(DEFAULT_FIELD_MAP)


class OAuth2Tokens(BaseModel):
    """OAuth token information."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if not self.expires_in:
            return None
        return datetime.now(timezone.utc) + timedelta(seconds=self.expires_in)


class OAuth2Session(BaseModel, Session):
    """In-flight authorization-code exchange."""
    auth_url: str = ""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_at: Optional[datetime] = None

    def get_auth_url(self) -> str:
        if not self.auth_url:
            raise InvalidSessionError("an authorization URL has not been set")
        return self.auth_url

    def marshal(self) -> str:
        return self.model_dump_json()

    async def authorize(self, provider: Provider, params: Mapping[str, str]) -> str:
        if not isinstance(provider, OAuth2Provider):
            raise InvalidSessionError(
                "session does not belong to an OAuth2 provider",
                details={"provider": provider.name},
            )

        error = params.get("error")
        if error:
            raise ProviderError(error, params.get("error_description"))

        code = params.get("code")
        if not code:
            raise ProviderError("missing_code", "callback did not include an authorization code")

        tokens = await provider.exchange_code(code)
        self.access_token = tokens.access_token
        self.refresh_token = tokens.refresh_token
        self.token_type = tokens.token_type
        self.expires_at = tokens.expires_at
        return tokens.access_token


def _lookup(payload: Mapping[str, Any], path: str) -> Optional[str]:
    """Resolve a dotted path, returning only scalar values as strings."""
    value: Any = payload
    for key in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    if value is None or isinstance(value, (Mapping, list)):
        return None
    return str(value)


class OAuth2Provider(Provider, Verifier):
    """Authorization-code OAuth2 provider that also verifies bare access tokens."""

    def __init__(
        self,
        name: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        authorization_url: str,
        token_url: str,
        profile_url: str,
        scopes: Optional[List[str]] = None,
        field_map: Optional[Dict[str, str]] = None,
        extra_auth_params: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
    ):
        unknown = set(field_map or {}) - USER_PROFILE_FIELDS
        if unknown:
            raise ConfigurationError(
                f"unknown user fields in field map for {name}: {', '.join(sorted(unknown))}"
            )

        self._name = name
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.authorization_url = authorization_url
        self.token_url = token_url
        self.profile_url = profile_url
        self.scopes = list(scopes or [])
        self.field_map = {**DEFAULT_FIELD_MAP, **(field_map or {})}
        self.extra_auth_params = dict(extra_auth_params or {})
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls,
        name: str,
        config: OAuth2ProviderSettings,
        settings: Settings,
    ) -> "OAuth2Provider":
        """Build a provider from its ``OAUTH2_PROVIDERS`` entry."""
        return cls(
            name=name,
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri or settings.default_redirect_uri(name),
            authorization_url=config.authorization_url,
            token_url=config.token_url,
            profile_url=config.profile_url,
            scopes=config.scopes,
            field_map=config.field_map,
            extra_auth_params=config.extra_auth_params,
            timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
        )

    @property
    def name(self) -> str:
        return self._name

    def build_authorization_url(self, state: str) -> str:
        """
        Generate the OAuth authorization URL.

        Args:
            state: CSRF protection state parameter

        Returns:
            Authorization URL
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "state": state,
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        params.update(self.extra_auth_params)

        separator = "&" if "?" in self.authorization_url else "?"
        return f"{self.authorization_url}{separator}{urlencode(params)}"

    async def begin_auth(self, state: str) -> OAuth2Session:
        session = OAuth2Session(auth_url=self.build_authorization_url(state))
        logger.info("oauth2_auth_started", provider=self.name, state=mask_token(state))
        return session

    def unmarshal_session(self, data: str) -> OAuth2Session:
        try:
            return OAuth2Session.model_validate_json(data)
        except ValidationError as e:
            logger.warning("oauth2_session_decode_failed", provider=self.name, error=str(e))
            raise InvalidSessionError(
                "could not decode stored session",
                details={"provider": self.name},
            ) from e

    async def fetch_user(self, session: Session) -> User:
        if not isinstance(session, OAuth2Session):
            raise InvalidSessionError(
                "session was not created by an OAuth2 provider",
                details={"provider": self.name},
            )
        if not session.access_token:
            raise ProviderError("missing_access_token", "session has not been authorized")

        user = await self._fetch_profile(session.access_token)
        user.refresh_token = session.refresh_token
        user.expires_at = session.expires_at
        return user

    async def verify_auth(self, access_token: str) -> User:
        if not access_token:
            raise ProviderError("missing_access_token", "an access token is required")
        return await self._fetch_profile(access_token)

    async def exchange_code(self, code: str) -> OAuth2Tokens:
        """
        Exchange an authorization code for tokens.

        Raises:
            ProviderError: If the token endpoint rejects the code or is unreachable
        """
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_url,
                    data=token_data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("oauth2_token_request_failed", provider=self.name, error=str(e))
            raise ProviderError(
                "network_error",
                f"Failed to connect to {self.name}: {e}",
                status_code=502,
            ) from e

        payload = self._json(response)

        if "error" in payload:
            logger.error(
                "oauth2_token_exchange_error",
                provider=self.name,
                status=response.status_code,
                error=payload["error"],
            )
            raise ProviderError(str(payload["error"]), payload.get("error_description"))

        if response.status_code != 200:
            logger.error(
                "oauth2_token_exchange_failed",
                provider=self.name,
                status=response.status_code,
            )
            raise ProviderError(
                "token_exchange_failed",
                f"token endpoint returned {response.status_code}",
            )

        if "access_token" not in payload:
            raise ProviderError("invalid_response", "token response is missing access_token")

        try:
            expires_in = payload.get("expires_in")
            tokens = OAuth2Tokens(
                access_token=payload["access_token"],
                token_type=payload.get("token_type") or "Bearer",
                # Some providers send lifetimes as "3600" or 3600.0
                expires_in=int(float(expires_in)) if expires_in else None,
                refresh_token=payload.get("refresh_token"),
                scope=payload.get("scope"),
            )
        except (TypeError, ValueError, OverflowError) as e:
            logger.error("oauth2_token_response_invalid", provider=self.name, error=str(e))
            raise ProviderError("invalid_response", "token response has malformed fields") from e

        logger.info(
            "oauth2_tokens_obtained",
            provider=self.name,
            has_refresh_token=bool(tokens.refresh_token),
            expires_in=tokens.expires_in,
        )
        return tokens

    async def _fetch_profile(self, access_token: str) -> User:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.profile_url, headers=headers)
        except httpx.HTTPError as e:
            logger.error("oauth2_profile_request_failed", provider=self.name, error=str(e))
            raise ProviderError(
                "network_error",
                f"Failed to connect to {self.name}: {e}",
                status_code=502,
            ) from e

        if response.status_code != 200:
            logger.error("oauth2_profile_failed", provider=self.name, status=response.status_code)
            # Rejected tokens surface as authentication failures
            status_code = 401 if response.status_code in (401, 403) else 502
            raise ProviderError(
                "userinfo_failed",
                f"profile endpoint returned {response.status_code}",
                status_code=status_code,
            )

        payload = self._json(response)
        if not payload:
            raise ProviderError("invalid_response", "profile response is not a JSON object")

        if self.debug_enabled:
            logger.info("oauth2_profile_payload", provider=self.name, keys=sorted(payload))

        user = self.user_from_payload(payload, access_token)
        logger.info(
            "oauth2_user_obtained",
            provider=self.name,
            user_id=user.user_id,
            has_email=bool(user.email),
        )
        return user

    def user_from_payload(self, payload: Mapping[str, Any], access_token: str) -> User:
        """Map a profile payload onto ``User`` using the field map."""
        fields = {
            field: _lookup(payload, path)
            for field, path in self.field_map.items()
        }
        if not fields.get("user_id"):
            raise ProviderError("invalid_response", "profile is missing the user identifier")

        return User(
            provider=self.name,
            access_token=access_token,
            raw_data=dict(payload),
            **fields,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}


def providers_from_settings(settings: Settings) -> List[OAuth2Provider]:
    """Instantiate every provider configured in ``OAUTH2_PROVIDERS``."""
    return [
        OAuth2Provider.from_settings(name, config, settings)
        for name, config in settings.OAUTH2_PROVIDERS.items()
    ]
