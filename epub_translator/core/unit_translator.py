"""
Translation of a single segment.

A segment is served from the translation cache when possible; otherwise it
is sent to the translation service through the shared request gate and its
streamed answer is decoded incrementally.
"""
import logging
from typing import Callable, Optional

import httpx

from prompts.prompts import TargetLanguage
from epub_translator.core.concurrency import CancellationToken, ConcurrencyGate, wait_or_cancel
from epub_translator.core.translation_metrics import TranslationMetrics
from epub_translator.core.exceptions import (
    EmptyTranslationError,
    TranslationCancelled,
    TranslationTransportError,
)
from epub_translator.core.llm.base import LLMProvider
from epub_translator.core.llm.stream_decoder import StreamDecoder, decode_response
from epub_translator.core.progress_tracker import SegmentPosition, calculate_unit_progress
from epub_translator.core.translation_cache import TranslationCache

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class UnitTranslator:
    """
    Translates one segment at a time, sharing a provider, cache and request gate.

    Args:
        provider: Streaming chat-completions provider
        request_gate: Gate bounding concurrent requests for the whole run
        cache: Optional translation cache shared across runs
        metrics: Optional metrics collector
    """

    def __init__(self, provider: LLMProvider, request_gate: ConcurrencyGate,
                 cache: Optional[TranslationCache] = None,
                 metrics: Optional[TranslationMetrics] = None):
        self.provider = provider
        self.request_gate = request_gate
        self.cache = cache
        self.metrics = metrics

    async def translate(self, segment: str, position: SegmentPosition,
                        target_language: TargetLanguage,
                        progress: Optional[ProgressCallback] = None,
                        cancellation: Optional[CancellationToken] = None) -> str:
        """
        Translate one segment.

        Returns:
            The translated text, or "" when cancellation was requested

        Raises:
            TranslationTransportError: The service could not be reached or refused the request
            EmptyTranslationError: The service finished without producing text
        """
        unit_progress = calculate_unit_progress(position)

        if cancellation is not None and cancellation.is_cancelled:
            self._record_cancelled()
            return ""

        # Whitespace between blocks is kept as is
        if not segment.strip():
            if progress:
                progress(unit_progress.next)
            return segment

        if self.cache is not None:
            cached = self.cache.get(segment, target_language.code)
            if cached is not None:
                if self.metrics:
                    self.metrics.record_cache_hit()
                if progress:
                    progress(unit_progress.next)
                return cached

        try:
            return await self.request_gate.admit(
                lambda: self._request(segment, position, unit_progress, target_language, progress, cancellation),
                cancellation,
            )
        except TranslationCancelled:
            self._record_cancelled()
            return ""
        except (TranslationTransportError, EmptyTranslationError):
            if self.metrics:
                self.metrics.record_failure()
            raise

    async def _request(self, segment, position, unit_progress, target_language, progress, cancellation) -> str:
        if cancellation is not None and cancellation.is_cancelled:
            raise TranslationCancelled()

        response = await wait_or_cancel(
            self.provider.open_stream(target_language.system_prompt, segment),
            cancellation,
            release=lambda abandoned: abandoned.aclose(),
        )
        decoder = StreamDecoder(len(segment), unit_progress, progress)
        try:
            text = await decode_response(response, decoder, cancellation)
        except httpx.HTTPError as e:
            raise TranslationTransportError(f"Translation stream interrupted: {e}") from e
        finally:
            await response.aclose()

        if not text:
            if cancellation is not None and cancellation.is_cancelled:
                raise TranslationCancelled()
            raise EmptyTranslationError("Empty translation received")

        if self.cache is not None:
            self.cache.set(segment, target_language.code, text)
        if self.metrics:
            self.metrics.record_request(len(segment), len(text), decoder.malformed_records)
        logger.debug("Translated segment %d/%d of document %d (%d -> %d chars)",
                     position.chunk_index + 1, position.total_chunks,
                     position.file_index + 1, len(segment), len(text))
        return text

    def _record_cancelled(self) -> None:
        if self.metrics:
            self.metrics.record_cancelled()
