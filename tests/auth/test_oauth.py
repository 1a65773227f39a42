"""
Tests for the generic OAuth2 provider.

Covers authorization URL generation, session marshaling, code exchange,
profile mapping and access token verification.
"""
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from httpx import Response

from authgate.core.config import OAuth2ProviderSettings, Settings
from authgate.core.exceptions import ConfigurationError, InvalidSessionError, ProviderError
from authgate.providers.base import User
from authgate.providers.oauth2 import OAuth2Provider, OAuth2Session, providers_from_settings
from tests.mocks.oauth_providers import MockSession


def mock_response(status_code: int, payload) -> Mock:
    response = Mock(spec=Response)
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def provider():
    """Create a generic OAuth2 provider instance."""
    return OAuth2Provider(
        name="example",
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:8000/api/v1/auth/example/callback",
        authorization_url="https://id.example.com/oauth/authorize",
        token_url="https://id.example.com/oauth/token",
        profile_url="https://api.example.com/me",
        scopes=["openid", "email", "profile"],
    )


class TestAuthorizationUrl:

    @pytest.mark.asyncio
    async def test_begin_auth_builds_authorization_url(self, provider):
        session = await provider.begin_auth("test-state-123")

        url = urlparse(session.get_auth_url())
        params = parse_qs(url.query)

        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://id.example.com/oauth/authorize"
        assert params["client_id"] == ["test-client-id"]
        assert params["redirect_uri"] == ["http://localhost:8000/api/v1/auth/example/callback"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["test-state-123"]
        assert params["scope"] == ["openid email profile"]

    def test_extra_params_and_existing_query(self):
        provider = OAuth2Provider(
            name="example",
            client_id="id",
            client_secret="secret",
            redirect_uri="http://localhost/cb",
            authorization_url="https://id.example.com/authorize?tenant=common",
            token_url="https://id.example.com/token",
            profile_url="https://id.example.com/me",
            extra_auth_params={"prompt": "consent"},
        )

        url = provider.build_authorization_url("abc")

        assert url.startswith("https://id.example.com/authorize?tenant=common&")
        params = parse_qs(urlparse(url).query)
        assert params["prompt"] == ["consent"]
        assert "scope" not in params

    def test_session_without_url(self):
        with pytest.raises(InvalidSessionError):
            OAuth2Session().get_auth_url()


class TestSessionMarshaling:

    def test_unmarshal_restores_session(self, provider):
        session = provider.unmarshal_session(
            '{"auth_url":"https://id.example.com/auth","access_token":"1234567890"}'
        )

        assert isinstance(session, OAuth2Session)
        assert session.auth_url == "https://id.example.com/auth"
        assert session.access_token == "1234567890"

    @pytest.mark.asyncio
    async def test_marshal_output_is_accepted_by_unmarshal(self, provider):
        session = await provider.begin_auth("state")

        restored = provider.unmarshal_session(session.marshal())

        assert restored.auth_url == session.auth_url
        assert restored.access_token is None

    @pytest.mark.parametrize("data", ["", "not json", "[1, 2]"])
    def test_unmarshal_garbage(self, provider, data):
        with pytest.raises(InvalidSessionError):
            provider.unmarshal_session(data)


class TestAuthorize:

    @pytest.mark.asyncio
    async def test_authorize_exchanges_code(self, provider):
        response = mock_response(200, {
            "access_token": "example-access-token",
            "refresh_token": "example-refresh-token",
            "token_type": "Bearer",
            "expires_in": 3600,
            "scope": "openid email profile",
        })
        session = OAuth2Session(auth_url="https://id.example.com/auth")

        with patch("httpx.AsyncClient.post", return_value=response) as post:
            token = await session.authorize(provider, {"code": "test-auth-code", "state": "s"})

        assert token == "example-access-token"
        assert session.access_token == "example-access-token"
        assert session.refresh_token == "example-refresh-token"
        assert session.expires_at is not None

        sent = post.call_args.kwargs["data"]
        assert sent["code"] == "test-auth-code"
        assert sent["grant_type"] == "authorization_code"
        assert sent["client_secret"] == "test-client-secret"

    @pytest.mark.asyncio
    async def test_token_endpoint_error(self, provider):
        response = mock_response(400, {
            "error": "invalid_grant",
            "error_description": "Invalid authorization code",
        })

        with patch("httpx.AsyncClient.post", return_value=response):
            with pytest.raises(ProviderError) as exc:
                await provider.exchange_code("invalid-code")

        assert exc.value.error == "invalid_grant"
        assert "Invalid authorization code" in str(exc.value)

    @pytest.mark.asyncio
    async def test_token_endpoint_non_json_failure(self, provider):
        response = mock_response(500, None)
        response.json.side_effect = ValueError("not json")

        with patch("httpx.AsyncClient.post", return_value=response):
            with pytest.raises(ProviderError) as exc:
                await provider.exchange_code("code")

        assert exc.value.error == "token_exchange_failed"

    @pytest.mark.asyncio
    async def test_token_response_without_access_token(self, provider):
        with patch("httpx.AsyncClient.post", return_value=mock_response(200, {"token_type": "Bearer"})):
            with pytest.raises(ProviderError) as exc:
                await provider.exchange_code("code")

        assert exc.value.error == "invalid_response"

    @pytest.mark.asyncio
    async def test_fractional_expires_in(self, provider):
        response = mock_response(200, {"access_token": "at", "expires_in": "3600.0"})

        with patch("httpx.AsyncClient.post", return_value=response):
            tokens = await provider.exchange_code("code")

        assert tokens.expires_in == 3600
        assert tokens.expires_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"access_token": "at", "expires_in": "soon"},
        {"access_token": {"value": "at"}},
    ])
    async def test_malformed_token_response(self, provider, payload):
        with patch("httpx.AsyncClient.post", return_value=mock_response(200, payload)):
            with pytest.raises(ProviderError) as exc:
                await provider.exchange_code("code")

        assert exc.value.error == "invalid_response"
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_network_failure(self, provider):
        error = httpx.ConnectError("connection refused")

        with patch("httpx.AsyncClient.post", side_effect=error):
            with pytest.raises(ProviderError) as exc:
                await provider.exchange_code("code")

        assert exc.value.error == "network_error"
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_callback_error_parameter(self, provider):
        session = OAuth2Session(auth_url="https://id.example.com/auth")

        with pytest.raises(ProviderError) as exc:
            await session.authorize(provider, {"error": "access_denied", "error_description": "User denied"})

        assert exc.value.error == "access_denied"

    @pytest.mark.asyncio
    async def test_callback_without_code(self, provider):
        session = OAuth2Session(auth_url="https://id.example.com/auth")

        with pytest.raises(ProviderError) as exc:
            await session.authorize(provider, {"state": "s"})

        assert exc.value.error == "missing_code"

    @pytest.mark.asyncio
    async def test_authorize_with_foreign_provider(self, mock_provider):
        session = OAuth2Session(auth_url="https://id.example.com/auth")

        with pytest.raises(InvalidSessionError):
            await session.authorize(mock_provider, {"code": "c"})


class TestFetchUser:

    @pytest.mark.asyncio
    async def test_fetch_user_maps_profile(self, provider):
        profile = {
            "id": 42,
            "name": "Jane Doe",
            "email": "jane@example.com",
            "bio": "Researcher",
            "picture": "https://example.com/jane.jpg",
            "location": "Berlin",
        }
        session = OAuth2Session(auth_url="u", access_token="tok", refresh_token="ref")

        with patch("httpx.AsyncClient.get", return_value=mock_response(200, profile)) as get:
            user = await provider.fetch_user(session)

        assert isinstance(user, User)
        assert user.provider == "example"
        assert user.user_id == "42"
        assert user.name == "Jane Doe"
        assert user.nick_name == "Jane Doe"
        assert user.email == "jane@example.com"
        assert user.description == "Researcher"
        assert user.avatar_url == "https://example.com/jane.jpg"
        assert user.location == "Berlin"
        assert user.access_token == "tok"
        assert user.refresh_token == "ref"
        assert user.raw_data == profile
        assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_nested_field_map(self):
        provider = OAuth2Provider(
            name="graph",
            client_id="id",
            client_secret="secret",
            redirect_uri="http://localhost/cb",
            authorization_url="https://graph.example.com/dialog/oauth",
            token_url="https://graph.example.com/oauth/access_token",
            profile_url="https://graph.example.com/me",
            field_map={"avatar_url": "picture.data.url", "location": "location.name"},
        )
        profile = {
            "id": "1001",
            "name": "Sam",
            "picture": {"data": {"url": "https://cdn.example.com/sam.png"}},
            "location": {"name": "Lisbon"},
        }

        with patch("httpx.AsyncClient.get", return_value=mock_response(200, profile)):
            user = await provider.verify_auth("tok")

        assert user.avatar_url == "https://cdn.example.com/sam.png"
        assert user.location == "Lisbon"
        assert user.email is None

    @pytest.mark.asyncio
    async def test_nested_values_need_explicit_paths(self, provider):
        profile = {
            "id": "7",
            "picture": {"data": {"url": "https://cdn.example.com/7.png"}},
            "location": {"name": "Oslo"},
        }

        with patch("httpx.AsyncClient.get", return_value=mock_response(200, profile)):
            user = await provider.verify_auth("tok")

        assert user.avatar_url is None
        assert user.location is None
        assert user.raw_data["location"] == {"name": "Oslo"}

    @pytest.mark.asyncio
    async def test_debug_logs_payload_keys(self, provider):
        provider.debug(True)
        profile = {"id": "1", "email": "a@example.com"}

        with patch("httpx.AsyncClient.get", return_value=mock_response(200, profile)), \
                patch("authgate.providers.oauth2.logger") as logger:
            await provider.verify_auth("tok")

        logger.info.assert_any_call("oauth2_profile_payload", provider="example", keys=["email", "id"])

    @pytest.mark.asyncio
    async def test_payload_keys_not_logged_without_debug(self, provider):
        with patch("httpx.AsyncClient.get", return_value=mock_response(200, {"id": "1"})), \
                patch("authgate.providers.oauth2.logger") as logger:
            await provider.verify_auth("tok")

        events = [call.args[0] for call in logger.info.call_args_list]
        assert "oauth2_profile_payload" not in events

    def test_unknown_field_map_entry(self):
        with pytest.raises(ConfigurationError):
            OAuth2Provider(
                name="bad",
                client_id="id",
                client_secret="secret",
                redirect_uri="http://localhost/cb",
                authorization_url="https://a",
                token_url="https://t",
                profile_url="https://p",
                field_map={"shoe_size": "size"},
            )

    @pytest.mark.asyncio
    async def test_fetch_user_requires_authorized_session(self, provider):
        with pytest.raises(ProviderError) as exc:
            await provider.fetch_user(OAuth2Session(auth_url="u"))

        assert exc.value.error == "missing_access_token"

    @pytest.mark.asyncio
    async def test_fetch_user_rejects_foreign_session(self, provider):
        with pytest.raises(InvalidSessionError):
            await provider.fetch_user(MockSession(auth_url="u", access_token="t"))

    @pytest.mark.asyncio
    async def test_profile_missing_identifier(self, provider):
        with patch("httpx.AsyncClient.get", return_value=mock_response(200, {"name": "No Id"})):
            with pytest.raises(ProviderError) as exc:
                await provider.verify_auth("tok")

        assert exc.value.error == "invalid_response"


class TestVerifyAuth:

    @pytest.mark.asyncio
    async def test_rejected_token(self, provider):
        response = mock_response(401, {"error": "invalid_token"})

        with patch("httpx.AsyncClient.get", return_value=response):
            with pytest.raises(ProviderError) as exc:
                await provider.verify_auth("expired-token")

        assert exc.value.error == "userinfo_failed"
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_provider_outage(self, provider):
        with patch("httpx.AsyncClient.get", return_value=mock_response(503, {})):
            with pytest.raises(ProviderError) as exc:
                await provider.verify_auth("tok")

        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_empty_token(self, provider):
        with pytest.raises(ProviderError):
            await provider.verify_auth("")


class TestProvidersFromSettings:

    def test_builds_configured_providers(self):
        settings = Settings(
            _env_file=None,
            API_BASE_URL="https://auth.example.org/",
            OAUTH_HTTP_TIMEOUT_SECONDS=3.0,
            OAUTH2_PROVIDERS={
                "example": OAuth2ProviderSettings(
                    client_id="id",
                    client_secret="secret",
                    authorization_url="https://id.example.com/authorize",
                    token_url="https://id.example.com/token",
                    profile_url="https://id.example.com/me",
                    scopes=["email"],
                    field_map={"user_id": "sub"},
                ),
            },
        )

        [provider] = providers_from_settings(settings)

        assert provider.name == "example"
        assert provider.redirect_uri == "https://auth.example.org/api/v1/auth/example/callback"
        assert provider.field_map["user_id"] == "sub"
        assert provider.field_map["email"] == "email"
        assert provider.timeout == 3.0
