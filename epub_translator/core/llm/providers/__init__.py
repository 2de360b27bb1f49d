"""
LLM Provider Implementations

Streaming chat-completions providers.

Providers:
    - deepseek: DeepSeek API (default)
    - openai: OpenAI-compatible APIs
    - mistral: Mistral AI API
"""

__all__ = []
