"""
Shared test fixtures.
"""
import httpx
import pytest
import pytest_asyncio

from authgate.core.config import Settings
from authgate.main import create_app
from authgate.providers.registry import ProviderRegistry
from authgate.services.auth_flow import AuthFlow
from authgate.services.session_store import CookieSessionStore
from tests.mocks.oauth_providers import MockProvider, MockVerifier


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        SESSION_SECRET_KEY="test-session-secret-key-0123456789abcdef",
        SESSION_BACKEND="cookie",
        OAUTH2_PROVIDERS={},
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider("mock")


@pytest.fixture
def registry(mock_provider) -> ProviderRegistry:
    """Fresh registry holding a redirect provider and a verifier-only provider."""
    registry = ProviderRegistry()
    registry.use_providers(mock_provider, MockVerifier("tokens"))
    return registry


@pytest.fixture
def auth_flow(registry) -> AuthFlow:
    return AuthFlow(store=CookieSessionStore(), registry=registry)


@pytest.fixture
def app(test_settings, registry):
    return create_app(test_settings, registry)


@pytest_asyncio.fixture
async def client(app):
    """HTTP client that keeps cookies between requests."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
