"""
Authentication provider framework.

Providers are registered by name and looked up when a request names
them. ``OAuth2Provider`` is a configurable reference implementation.
"""

from .base import (
    BaseProvider,
    Provider,
    Session,
    User,
    Verifier,
)
from .oauth2 import (
    OAuth2Provider,
    OAuth2Session,
    OAuth2Tokens,
    providers_from_settings,
)
from .registry import (
    ProviderRegistry,
    clear_providers,
    get_provider,
    get_providers,
    provider_registry,
    use_providers,
)

__all__ = [
    # Contracts
    "BaseProvider",
    "Provider",
    "Session",
    "User",
    "Verifier",

    # Reference provider
    "OAuth2Provider",
    "OAuth2Session",
    "OAuth2Tokens",
    "providers_from_settings",

    # Registry
    "ProviderRegistry",
    "clear_providers",
    "get_provider",
    "get_providers",
    "provider_registry",
    "use_providers",
]
