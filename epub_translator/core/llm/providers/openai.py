"""
OpenAI-compatible provider implementation.

Works with OpenAI and any server exposing the same streaming
chat-completions API (llama.cpp, LM Studio, vLLM, ...).
"""

from typing import Optional

from ..base import LLMProvider


class OpenAICompatibleProvider(LLMProvider):
    """OpenAI-compatible API provider"""

    name = "OpenAI-compatible API"
    API_URL = "https://api.openai.com/v1/chat/completions"

    def __init__(self, model: str, api_endpoint: Optional[str] = None,
                 api_key: Optional[str] = None, **kwargs):
        super().__init__(
            model=model,
            api_endpoint=self._normalize_endpoint(api_endpoint or self.API_URL),
            api_key=api_key,
            **kwargs
        )

    @staticmethod
    def _normalize_endpoint(endpoint: str) -> str:
        """
        Normalize API endpoint URL for OpenAI-compatible APIs.

        Adds '/chat/completions' when the URL stops at '/v1':
        - http://localhost:8080/v1 -> http://localhost:8080/v1/chat/completions
        - https://api.example.com/v1/ -> https://api.example.com/v1/chat/completions

        Args:
            endpoint: Raw endpoint URL provided by user

        Returns:
            Normalized endpoint URL with complete path
        """
        if not endpoint:
            return endpoint

        endpoint = endpoint.rstrip('/')

        if endpoint.endswith('/v1'):
            return endpoint + '/chat/completions'

        # Full path or custom path
        return endpoint
