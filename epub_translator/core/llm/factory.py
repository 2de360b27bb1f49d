"""
Factory for creating LLM provider instances.

This module provides the create_llm_provider() function which instantiates
the appropriate provider based on the provider_type parameter.
"""

from typing import Callable, Optional

from epub_translator.config import (
    default_model,
    DEEPSEEK_API_KEY, OPENAI_API_KEY, MISTRAL_API_KEY,
    TranslationConfig,
)
from .base import LLMProvider
from .providers.openai import OpenAICompatibleProvider
from .providers.mistral import MistralProvider
from .providers.deepseek import DeepSeekProvider

PROVIDER_TYPES = ("deepseek", "openai", "mistral")

# Settings shared by every provider
_COMMON_KWARGS = ("timeout", "max_attempts", "retry_delay", "transport", "log_callback")


def create_llm_provider(provider_type: str = "deepseek", **kwargs) -> LLMProvider:
    """
    Create an LLM provider instance.

    Args:
        provider_type: Type of provider ("deepseek", "openai", "mistral")
        **kwargs: Provider parameters:
            - api_endpoint: API endpoint URL (provider default when empty)
            - model: Model name/identifier (provider default when empty)
            - api_key: API key (the environment key is used only when None)
            - timeout, max_attempts, retry_delay: request behaviour
            - transport: httpx transport override
            - log_callback: Logging callback function

    Returns:
        Instantiated LLMProvider subclass

    Raises:
        ValueError: If provider_type is unknown or a required API key is missing

    Examples:
        >>> provider = create_llm_provider("deepseek", api_key="sk-...")

        >>> # Local llama.cpp server, no key needed
        >>> provider = create_llm_provider("openai", api_endpoint="http://localhost:8080/v1", model="qwen")
    """
    common = {key: kwargs[key] for key in _COMMON_KWARGS if kwargs.get(key) is not None}
    api_endpoint = kwargs.get("api_endpoint") or None
    provider_type = (provider_type or "").lower()

    if provider_type == "deepseek":
        api_key = _api_key(kwargs, DEEPSEEK_API_KEY)
        if not api_key:
            raise ValueError("DeepSeek provider requires an API key. Set DEEPSEEK_API_KEY environment variable or pass api_key parameter.")
        return DeepSeekProvider(
            api_key=api_key,
            model=kwargs.get("model") or default_model(provider_type),
            api_endpoint=api_endpoint,
            **common
        )
    elif provider_type == "openai":
        return OpenAICompatibleProvider(
            model=kwargs.get("model") or default_model(provider_type),
            api_endpoint=api_endpoint,
            api_key=_api_key(kwargs, OPENAI_API_KEY),
            **common
        )
    elif provider_type == "mistral":
        api_key = _api_key(kwargs, MISTRAL_API_KEY)
        if not api_key:
            raise ValueError("Mistral provider requires an API key. Set MISTRAL_API_KEY environment variable or pass api_key parameter.")
        return MistralProvider(
            api_key=api_key,
            model=kwargs.get("model") or default_model(provider_type),
            api_endpoint=api_endpoint,
            **common
        )
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")


def create_provider_from_config(config: TranslationConfig, transport=None,
                                log_callback: Optional[Callable] = None) -> LLMProvider:
    """Create the provider described by a TranslationConfig."""
    return create_llm_provider(
        config.llm_provider,
        model=config.model,
        api_endpoint=config.api_endpoint,
        api_key=config.api_key,
        timeout=config.timeout,
        max_attempts=config.max_attempts,
        retry_delay=config.retry_delay,
        transport=transport,
        log_callback=log_callback,
    )


def _api_key(kwargs: dict, environment_key: str) -> str:
    """Key passed by the caller; the environment key only when none was given."""
    api_key = kwargs.get("api_key")
    return environment_key if api_key is None else api_key
