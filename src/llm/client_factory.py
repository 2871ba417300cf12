# src/llm/client_factory.py — v1
"""Build an LLM client from configuration.

Adapters are registered by dotted path and imported on demand so that the
provider SDKs stay optional.
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from copilens.llm.base_client import BaseLLMClient

if TYPE_CHECKING:
    from copilens.config.settings import Settings

logger = logging.getLogger(__name__)

_ADAPTERS: dict[str, str] = {
    "anthropic": "copilens.llm.adapters.anthropic_adapter:AnthropicAdapter",
    "ollama": "copilens.llm.adapters.ollama_adapter:OllamaAdapter",
}


class UnsupportedProviderError(ValueError):
    """The requested provider has no registered adapter."""


def available_providers() -> list[str]:
    return sorted(_ADAPTERS)


def register_provider(name: str, target: str) -> None:
    """Register an adapter as ``"package.module:ClassName"``."""
    _ADAPTERS[name] = target
    logger.info("Registered LLM provider %s (%s)", name, target)


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the adapter registered for `provider`.

    Credentials and endpoints come from `settings` unless given in `kwargs`.

    Raises:
        UnsupportedProviderError: If `provider` is not registered.
    """
    target = _ADAPTERS.get(provider)
    if target is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider {provider!r}; "
            f"choose one of: {', '.join(available_providers())}"
        )
    module_name, _, class_name = target.partition(":")
    adapter_cls = getattr(importlib.import_module(module_name), class_name)

    options = dict(kwargs)
    if settings is not None:
        if provider == "anthropic":
            options.setdefault("api_key", settings.anthropic_api_key)
        elif provider == "ollama":
            options.setdefault("host", settings.ollama_base_url)

    logger.debug("Creating %s client for model %s", provider, model)
    return adapter_cls(model=model, **options)


def create_from_settings(settings: Settings) -> BaseLLMClient:
    return create_llm_client(settings.llm_provider, settings.llm_model, settings=settings)
