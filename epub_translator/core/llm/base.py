"""
Base class for streaming chat-completion providers.

Every provider speaks the same wire format (an OpenAI-style chat-completions
request with ``"stream": true``) and only differs in its default endpoint,
model and credentials.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional

import httpx

from epub_translator.config import REQUEST_TIMEOUT, MAX_TRANSLATION_ATTEMPTS, RETRY_DELAY
from epub_translator.core.exceptions import TranslationTransportError

logger = logging.getLogger(__name__)


class LLMProvider:
    """
    Streaming chat-completions client.

    The underlying ``httpx.AsyncClient`` is created lazily on first use and
    must be released with ``close()`` (or ``async with provider:``).
    """

    name = "generic"

    def __init__(self, model: str, api_endpoint: str, api_key: Optional[str] = None,
                 timeout: float = REQUEST_TIMEOUT,
                 max_attempts: int = MAX_TRANSLATION_ATTEMPTS,
                 retry_delay: float = RETRY_DELAY,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 log_callback: Optional[Callable] = None):
        """
        Args:
            model: Model identifier sent with each request
            api_endpoint: Full chat-completions URL
            api_key: Bearer token, omitted from headers when empty
            timeout: Request timeout in seconds
            max_attempts: Connection attempts before giving up (1 = no retry)
            retry_delay: Seconds to wait between connection attempts
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
            log_callback: Optional ``log_callback(event_key, message)``
        """
        self.model = model
        self.api_endpoint = api_endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.log_callback = log_callback
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Release the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> 'LLMProvider':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _log(self, event_key: str, message: str) -> None:
        if self.log_callback:
            self.log_callback(event_key, message)
        elif 'error' in event_key:
            logger.error(message)
        else:
            logger.warning(message)

    def build_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_messages(self, system_prompt: Optional[str], content: str) -> List[Dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})
        return messages

    def build_payload(self, system_prompt: Optional[str], content: str) -> dict:
        return {
            "model": self.model,
            "messages": self.build_messages(system_prompt, content),
            "stream": True,
        }

    @staticmethod
    def describe_error(response: httpx.Response) -> str:
        """Build a readable message for a non-success response, using the JSON error body when present."""
        error_message = ""
        try:
            error_json = response.json()
            if isinstance(error_json, dict) and "error" in error_json:
                if isinstance(error_json["error"], dict):
                    error_message = str(error_json["error"].get("message", ""))
                else:
                    error_message = str(error_json["error"])
        except (json.JSONDecodeError, UnicodeDecodeError):
            error_message = response.text[:200]

        status = f"HTTP {response.status_code}"
        if response.reason_phrase:
            status += f" {response.reason_phrase}"
        if error_message:
            return f"Translation service error ({status}): {error_message}"
        return f"Translation service error ({status})"

    async def open_stream(self, system_prompt: Optional[str], content: str) -> httpx.Response:
        """
        Send a streaming translation request and return the open response.

        The caller owns the response and must ``aclose()`` it.

        Raises:
            TranslationTransportError: Connection failure after all attempts,
                or a non-success status
        """
        client = await self._get_client()
        request = client.build_request(
            "POST",
            self.api_endpoint,
            json=self.build_payload(system_prompt, content),
            headers=self.build_headers(),
        )

        response = None
        for attempt in range(self.max_attempts):
            try:
                response = await client.send(request, stream=True)
                break
            except httpx.TransportError as e:
                self._log("llm_connection_warning",
                          f"⚠️ {self.name} request failed (attempt {attempt + 1}/{self.max_attempts}): "
                          f"{type(e).__name__}: {e}")
                if attempt < self.max_attempts - 1:
                    self._log("llm_retry", f"   Retrying in {self.retry_delay:g} seconds...")
                    await asyncio.sleep(self.retry_delay)
                    continue
                raise TranslationTransportError(
                    f"Could not reach the translation service at {self.api_endpoint}: {e}"
                ) from e

        if not response.is_success:
            read_error = None
            try:
                await response.aread()
                message = self.describe_error(response)
            except httpx.HTTPError as e:
                read_error = e
                message = (f"Translation service error (HTTP {response.status_code}), "
                           f"error body unreadable: {type(e).__name__}: {e}")
            finally:
                await response.aclose()
            self._log("llm_http_error", f"❌ {message}")
            raise TranslationTransportError(message, status_code=response.status_code) from read_error

        return response

    @asynccontextmanager
    async def stream_chat(self, system_prompt: Optional[str], content: str) -> AsyncIterator[httpx.Response]:
        """
        Context manager form of ``open_stream()``.

        Example:
            >>> async with provider.stream_chat(system_prompt, "<p>Hello</p>") as response:
            ...     async for data in response.aiter_bytes():
            ...         ...
        """
        response = await self.open_stream(system_prompt, content)
        try:
            yield response
        finally:
            await response.aclose()
