"""
LLM Provider System

Streaming clients for chat-completions translation services.

Public API:
    - Exceptions: TranslationError, TranslationTransportError, EmptyTranslationError, TranslationCancelled
    - Base class: LLMProvider
    - Streaming: StreamDecoder, decode_response
    - Providers: DeepSeekProvider, OpenAICompatibleProvider, MistralProvider
    - Factory: create_llm_provider, create_provider_from_config

Example usage:
    >>> from epub_translator.core.llm import create_llm_provider
    >>> provider = create_llm_provider("deepseek", api_key="sk-...")
    >>> async with provider.stream_chat(system_prompt, "<p>Hello</p>") as response:
    ...     text = await decode_response(response, StreamDecoder(len("<p>Hello</p>")))
"""

# Exceptions
from epub_translator.core.exceptions import (
    TranslationError,
    TranslationTransportError,
    EmptyTranslationError,
    TranslationCancelled,
)

# Base class
from .base import LLMProvider

# Streaming
from .stream_decoder import StreamDecoder, decode_response, extract_delta_text

# Providers
from .providers.openai import OpenAICompatibleProvider
from .providers.mistral import MistralProvider
from .providers.deepseek import DeepSeekProvider

# Factory
from .factory import create_llm_provider, create_provider_from_config, PROVIDER_TYPES

__all__ = [
    # Exceptions
    'TranslationError',
    'TranslationTransportError',
    'EmptyTranslationError',
    'TranslationCancelled',

    # Base
    'LLMProvider',

    # Streaming
    'StreamDecoder',
    'decode_response',
    'extract_delta_text',

    # Providers
    'OpenAICompatibleProvider',
    'MistralProvider',
    'DeepSeekProvider',

    # Factory
    'create_llm_provider',
    'create_provider_from_config',
    'PROVIDER_TYPES',
]
