"""
Incremental decoder for streamed (SSE) chat-completion responses.

The service answers with newline-delimited Server-Sent Events records::

    data: {"choices": [{"delta": {"content": "Bon"}}]}
    data: {"choices": [{"delta": {"content": "jour"}}]}
    data: [DONE]

Reads may cut a record (or a UTF-8 sequence) anywhere, so the decoder keeps
the incomplete tail of each read until the rest arrives.
"""
import codecs
import json
import logging
from typing import Any, AsyncIterator, Callable, List, Optional

from epub_translator.core.concurrency import CancellationToken, wait_or_cancel
from epub_translator.core.exceptions import TranslationCancelled
from epub_translator.core.progress_tracker import UnitProgress

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def extract_delta_text(payload: Any) -> str:
    """Return ``choices[0].delta.content`` of a decoded record, or "" when absent."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class StreamDecoder:
    """
    Turns raw response bytes into translated text and progress estimates.

    Args:
        total_chars: Length of the source segment, used to estimate progress
        unit_progress: Progress slice owned by the segment
        on_progress: Called with the new progress after each delta and at the end
    """

    def __init__(self, total_chars: int, unit_progress: Optional[UnitProgress] = None,
                 on_progress: Optional[Callable[[float], None]] = None):
        self.total_chars = total_chars
        self.unit_progress = unit_progress
        self.on_progress = on_progress
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._parts: List[str] = []
        self._processed = 0
        self.done = False
        self.finished = False
        self.malformed_records = 0

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def feed(self, data: bytes) -> str:
        """
        Consume one read of the byte stream.

        Returns:
            The text extracted from the complete records of this read
        """
        if self.done:
            return ""
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process_lines(lines)

    def finish(self) -> str:
        """
        Flush the buffered fragment and report the end of the segment's slice.

        Safe to call more than once; only the first call has an effect.
        """
        if self.finished:
            return ""
        self.finished = True
        extracted = ""
        if not self.done:
            self._buffer += self._decoder.decode(b"", final=True)
            tail, self._buffer = self._buffer, ""
            if tail:
                extracted = self._process_lines(tail.split("\n"))
        if self.unit_progress is not None and self.on_progress:
            self.on_progress(self.unit_progress.next)
        return extracted

    def _process_lines(self, lines: List[str]) -> str:
        extracted = []
        for line in lines:
            if self.done:
                break
            text = self._process_line(line.strip())
            if text:
                extracted.append(text)
                self._append(text)
        return "".join(extracted)

    def _process_line(self, line: str) -> str:
        if not line.startswith(DATA_PREFIX):
            return ""
        data = line[len(DATA_PREFIX):].strip()
        if not data:
            return ""
        if data == DONE_SENTINEL:
            self.done = True
            return ""
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            self.malformed_records += 1
            logger.warning("⚠️ Skipping malformed stream record (%s): %.120s", e, data)
            return ""
        return extract_delta_text(payload)

    def _append(self, text: str) -> None:
        self._parts.append(text)
        self._processed += len(text)
        if self.unit_progress is not None and self.on_progress:
            self.on_progress(self.unit_progress.at(self._processed, self.total_chars))


async def _next_chunk(iterator: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


async def decode_response(response, decoder: StreamDecoder,
                          cancellation: Optional[CancellationToken] = None) -> str:
    """
    Read a streamed response to its end and return the accumulated text.

    Cancellation is checked before each read and raced against it. When it
    fires the response is closed and "" is returned without raising.

    Args:
        response: Object exposing ``aiter_bytes()`` and ``aclose()`` (an httpx.Response)
        decoder: Decoder accumulating text and reporting progress
        cancellation: Optional run cancellation token
    """
    iterator = response.aiter_bytes().__aiter__()
    while not decoder.done:
        if cancellation is not None and cancellation.is_cancelled:
            await response.aclose()
            return ""
        try:
            chunk = await wait_or_cancel(_next_chunk(iterator), cancellation)
        except TranslationCancelled:
            await response.aclose()
            return ""
        if chunk is None:
            break
        decoder.feed(chunk)

    decoder.finish()
    return decoder.text
