"""
EPUB translation orchestration

This module coordinates the translation pipeline for EPUB files:
1. List the text parts of the archive
2. Translate documents concurrently through the file gate
3. Write each translated document back as soon as it resolves
4. Repackage the EPUB

Translation progress occupies [0, 99] of the progress axis and repackaging
the final percent. A cancelled run never repackages and produces no output.
"""
import os
import asyncio
import functools
import logging
from typing import Callable, Optional

import aiofiles

from prompts.prompts import TargetLanguage
from epub_translator.config import (
    MAX_SEGMENT_SIZE, SEGMENT_BATCH_SIZE,
    MAX_CONCURRENT_REQUESTS, MAX_CONCURRENT_FILES,
    REPACK_PROGRESS_SHARE, TranslationConfig,
)
from epub_translator.core.concurrency import CancellationToken, ConcurrencyGate, gather_or_cancel
from epub_translator.core.document_translator import DocumentTranslator
from epub_translator.core.exceptions import TranslationCancelled, TranslationError
from epub_translator.core.llm.base import LLMProvider
from epub_translator.core.llm.factory import create_provider_from_config
from epub_translator.core.progress_tracker import ProgressTracker
from epub_translator.core.segmenter import Segmenter
from epub_translator.core.translation_cache import TranslationCache, get_translation_cache
from epub_translator.core.translation_metrics import TranslationMetrics
from epub_translator.core.unit_translator import UnitTranslator
from .archive import ArchiveError, EpubArchive

logger = logging.getLogger(__name__)


class EpubTranslationPipeline:
    """
    Translates the text parts of an EPUB archive.

    One pipeline may be reused for several runs; each run gets its own gates,
    progress tracker and (unless given) cancellation token.

    Example:
        >>> pipeline = EpubTranslationPipeline(provider)
        >>> data = await pipeline.run(archive, "fr", progress_callback=print)
    """

    def __init__(self, provider: LLMProvider, cache: Optional[TranslationCache] = None,
                 max_segment_size: int = MAX_SEGMENT_SIZE,
                 batch_size: int = SEGMENT_BATCH_SIZE,
                 max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS,
                 max_concurrent_files: int = MAX_CONCURRENT_FILES,
                 update_metadata: bool = True,
                 log_callback: Optional[Callable] = None):
        """
        Args:
            provider: Streaming translation service client
            cache: Translation cache (defaults to the process-wide cache)
            max_segment_size: Maximum segment length in characters
            batch_size: Segments of one document dispatched together
            max_concurrent_requests: Size of the request gate
            max_concurrent_files: Size of the file gate
            update_metadata: Record the target language in the OPF
            log_callback: Optional ``log_callback(event_key, message)``
        """
        self.provider = provider
        self.cache = cache if cache is not None else get_translation_cache()
        self.segmenter = Segmenter(max_segment_size)
        self.batch_size = batch_size
        self.max_concurrent_requests = max_concurrent_requests
        self.max_concurrent_files = max_concurrent_files
        self.update_metadata = update_metadata
        self.log_callback = log_callback
        self._cancellation: Optional[CancellationToken] = None
        self._metrics: Optional[TranslationMetrics] = None

    @property
    def metrics(self) -> Optional[TranslationMetrics]:
        """Metrics of the current or last run."""
        return self._metrics

    def cancel(self) -> None:
        """Cancel the current run. Safe to call repeatedly and from another thread."""
        if self._cancellation is not None:
            self._cancellation.cancel()

    def _log(self, event_key: str, message: str) -> None:
        if self.log_callback:
            self.log_callback(event_key, message)

    async def run(self, archive: EpubArchive, target_language,
                  progress_callback: Optional[Callable[[float], None]] = None,
                  cancellation: Optional[CancellationToken] = None) -> Optional[bytes]:
        """
        Translate every text part of ``archive``.

        Args:
            archive: Archive to translate; its parts are replaced in place
            target_language: TargetLanguage or language code
            progress_callback: Receives monotonic progress in [0, 100]
            cancellation: Optional token; a fresh one is created otherwise

        Returns:
            The repackaged archive, or None when the run was cancelled

        Raises:
            TranslationError: A segment could not be translated (the run is aborted)
            ValueError: Unsupported target language
        """
        language = TargetLanguage.from_code(target_language)
        token = cancellation or CancellationToken()
        self._cancellation = token
        metrics = TranslationMetrics()
        self._metrics = metrics

        tracker = ProgressTracker(progress_callback, token)
        tracker.start()
        translation_progress = tracker.scaled((100 - REPACK_PROGRESS_SHARE) / 100)

        file_gate = ConcurrencyGate(self.max_concurrent_files, name="files")
        unit_translator = UnitTranslator(
            self.provider,
            ConcurrencyGate(self.max_concurrent_requests, name="requests"),
            cache=self.cache,
            metrics=metrics,
        )
        document_translator = DocumentTranslator(
            unit_translator, self.segmenter, self.batch_size, self.log_callback
        )

        parts = archive.list_text_parts()
        total_files = len(parts)
        metrics.total_files = total_files
        self._log("epub_files_found", f"Found {total_files} content files to translate into {language.display_name}.")

        async def process_part(index: int, part_id: str) -> bool:
            async def work() -> bool:
                content = archive.read_part(part_id)
                translated = await document_translator.translate_document(
                    content, index, total_files, language,
                    translation_progress, token, name=part_id,
                )
                if token.is_cancelled:
                    return False
                archive.write_part(part_id, translated)
                metrics.record_file_completed()
                self._log("document_done", f"✅ {part_id} translated ({metrics.completed_files}/{total_files})")
                return True

            try:
                return await file_gate.admit(work, token)
            except TranslationCancelled:
                return False

        try:
            await gather_or_cancel(process_part(index, part_id) for index, part_id in enumerate(parts))
        except TranslationError as e:
            self._log("epub_translation_error", f"❌ Translation failed: {e}")
            raise
        finally:
            metrics.finalize()

        if token.is_cancelled:
            self._log("translation_cancelled",
                      f"🛑 Translation cancelled after {metrics.completed_files}/{total_files} documents")
            return None

        if self.update_metadata:
            archive.set_language(language.language_tag)

        self._log("epub_repack_start", "📦 Repackaging EPUB...")
        # Compression is CPU-bound, keep it off the event loop
        repack_progress = tracker.scaled(REPACK_PROGRESS_SHARE / 100, offset=100 - REPACK_PROGRESS_SHARE)
        data = await asyncio.get_running_loop().run_in_executor(
            None, functools.partial(archive.repack, on_progress=repack_progress)
        )
        if token.is_cancelled:
            self._log("translation_cancelled", "🛑 Translation cancelled during repackaging")
            return None

        tracker.update(100.0)
        metrics.log_summary(self.log_callback)
        return data


async def translate_epub_file(
    input_filepath: str,
    output_filepath: str,
    target_language,
    provider: Optional[LLMProvider] = None,
    config: Optional[TranslationConfig] = None,
    cache: Optional[TranslationCache] = None,
    log_callback: Optional[Callable] = None,
    progress_callback: Optional[Callable[[float], None]] = None,
    cancellation: Optional[CancellationToken] = None,
    stats_callback: Optional[Callable[[dict], None]] = None,
) -> bool:
    """
    Translate an EPUB file and write the result to ``output_filepath``.

    The output is first written to ``<output>.part`` and moved into place
    only once complete, so a failed or cancelled run leaves no output file.

    Args:
        input_filepath: Path to the input EPUB
        output_filepath: Path of the translated EPUB
        target_language: TargetLanguage or language code
        provider: Translation service client (built from ``config`` when None)
        config: Job settings (defaults from the environment)
        cache: Translation cache (defaults to the process-wide cache)
        log_callback: Optional ``log_callback(event_key, message)``
        progress_callback: Receives progress in [0, 100]
        cancellation: Optional token used to cancel the run
        stats_callback: Receives the run metrics as a dict when the run ends

    Returns:
        True when the output was written, False when the run was cancelled

    Raises:
        ArchiveError: The input is not an EPUB archive
        TranslationError: The translation service failed
    """
    config = config or TranslationConfig(target_language=getattr(target_language, 'code', target_language))
    owns_provider = provider is None
    if owns_provider:
        provider = create_provider_from_config(config, log_callback=log_callback)

    pipeline = None
    try:
        async with aiofiles.open(input_filepath, 'rb') as f:
            data = await f.read()
        try:
            archive = EpubArchive.from_bytes(data)
        except ArchiveError as e:
            if log_callback:
                log_callback("epub_major_error", f"❌ Cannot open '{input_filepath}': {e}")
            raise

        pipeline = EpubTranslationPipeline(
            provider,
            cache=cache,
            max_segment_size=config.max_segment_size,
            batch_size=config.segment_batch_size,
            max_concurrent_requests=config.max_concurrent_requests,
            max_concurrent_files=config.max_concurrent_files,
            log_callback=log_callback,
        )
        result = await pipeline.run(archive, target_language, progress_callback, cancellation)
    finally:
        if owns_provider:
            await provider.close()
        if stats_callback and pipeline is not None and pipeline.metrics is not None:
            stats_callback(pipeline.metrics.to_dict())

    if result is None:
        return False

    partial_filepath = output_filepath + '.part'
    try:
        async with aiofiles.open(partial_filepath, 'wb') as f:
            await f.write(result)
        os.replace(partial_filepath, output_filepath)
    except OSError:
        if os.path.exists(partial_filepath):
            os.remove(partial_filepath)
        raise

    if log_callback:
        log_callback("epub_save_success", f"💾 Translated EPUB saved: '{output_filepath}'")
    return True
