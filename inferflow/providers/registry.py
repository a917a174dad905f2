"""Providers the application can answer with, keyed by the name LLMConfig uses."""

import logging

from inferflow.config import LLMConfig
from inferflow.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_providers: dict[str, LLMProvider] = {}


def register_provider(provider: LLMProvider) -> None:
    """Make a provider selectable through ``LLMConfig.provider``.

    A provider registered under a name already in use replaces the old one.
    """
    name = provider.name
    if not name or not name.strip():
        raise ValueError("provider name must not be empty")
    if name in _providers:
        logger.info("Replacing provider %s", name)
    _providers[name] = provider


def get_provider(name: str) -> LLMProvider:
    """Registered provider for name. Raises ProviderNotFoundError if absent."""
    try:
        return _providers[name]
    except KeyError:
        raise ProviderNotFoundError(name, list(_providers)) from None


def resolve_provider(config: LLMConfig) -> LLMProvider:
    """Provider selected by the configuration, with its model logged."""
    provider = get_provider(config.provider)
    logger.info("Answering with provider %s, model %s", provider.name, config.model)
    return provider


def list_providers() -> list[str]:
    return list(_providers)


def clear_providers() -> None:
    _providers.clear()


class ProviderNotFoundError(LookupError):
    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(
            f"Provider {name!r} not registered. Available: {', '.join(available) or '(none)'}"
        )
