"""
DeepSeek LLM Provider.

DeepSeek exposes an OpenAI-compatible streaming chat-completions API and is
the default translation service.
"""

from typing import Optional

from ..base import LLMProvider


class DeepSeekProvider(LLMProvider):
    """
    Provider for DeepSeek API.

    Configuration:
        endpoint: https://api.deepseek.com/v1/chat/completions
        model: Model identifier (e.g., "deepseek-chat")
        api_key: DeepSeek API key

    Example:
        >>> provider = DeepSeekProvider(
        ...     api_key="your-api-key",
        ...     model="deepseek-chat"
        ... )
        >>> async with provider.stream_chat(system_prompt, "<p>Hello</p>") as response:
        ...     ...
    """

    name = "DeepSeek"
    API_URL = "https://api.deepseek.com/v1/chat/completions"
    DEFAULT_MODEL = "deepseek-chat"

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL,
                 api_endpoint: Optional[str] = None, **kwargs):
        """
        Initialize the DeepSeek provider.

        Args:
            api_key: DeepSeek API key
            model: Model identifier (default: deepseek-chat)
            api_endpoint: Optional custom API endpoint
        """
        super().__init__(
            model=model,
            api_endpoint=api_endpoint or self.API_URL,
            api_key=api_key,
            **kwargs
        )
