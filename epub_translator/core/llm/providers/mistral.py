"""
Mistral AI LLM Provider.
"""

from typing import Optional

from ..base import LLMProvider


class MistralProvider(LLMProvider):
    """
    Provider for Mistral AI API.

    Configuration:
        endpoint: https://api.mistral.ai/v1/chat/completions
        model: Model identifier (e.g., "mistral-large-latest")
        api_key: Mistral API key
    """

    name = "Mistral"
    API_URL = "https://api.mistral.ai/v1/chat/completions"

    def __init__(self, api_key: str, model: str = "mistral-large-latest",
                 api_endpoint: Optional[str] = None, **kwargs):
        super().__init__(
            model=model,
            api_endpoint=api_endpoint or self.API_URL,
            api_key=api_key,
            **kwargs
        )
