"""
Provider registry.

Maps provider names to provider instances. A process wide default
registry backs the module level helpers.
"""
from typing import Dict

import structlog

from authgate.core.exceptions import ProviderNotFoundError
from .base import BaseProvider

logger = structlog.get_logger(__name__)


class ProviderRegistry:
    """Registry of available authentication providers."""

    def __init__(self) -> None:
        self._providers: Dict[str, BaseProvider] = {}

    def use_providers(self, *providers: BaseProvider) -> None:
        """Register providers, replacing any already using the same name."""
        for provider in providers:
            replaced = provider.name in self._providers
            self._providers[provider.name] = provider
            logger.info("provider_registered", provider=provider.name, replaced=replaced)

    def get_providers(self) -> Dict[str, BaseProvider]:
        """Return all providers currently in use."""
        return dict(self._providers)

    def get_provider(self, name: str) -> BaseProvider:
        """
        Return a previously registered provider.

        Raises:
            ProviderNotFoundError: If no provider is registered under ``name``
        """
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def clear_providers(self) -> None:
        """Remove all providers currently in use."""
        self._providers = {}
        logger.info("providers_cleared")

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


provider_registry = ProviderRegistry()


def use_providers(*providers: BaseProvider) -> None:
    provider_registry.use_providers(*providers)


def get_providers() -> Dict[str, BaseProvider]:
    return provider_registry.get_providers()


def get_provider(name: str) -> BaseProvider:
    return provider_registry.get_provider(name)


def clear_providers() -> None:
    """Remove all providers from the default registry. Mostly useful in tests."""
    provider_registry.clear_providers()
