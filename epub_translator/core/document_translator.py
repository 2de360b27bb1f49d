"""
Translation of a whole document.

The document is segmented, segments are dispatched in batches (batches run
one after another, segments inside a batch run concurrently) and the
translations are joined back in their original order.
"""
import logging
from typing import Callable, List, Optional

from prompts.prompts import TargetLanguage
from epub_translator.config import SEGMENT_BATCH_SIZE
from epub_translator.core.concurrency import CancellationToken, gather_or_cancel
from epub_translator.core.progress_tracker import SegmentPosition, document_end_progress
from epub_translator.core.segmenter import Segmenter
from epub_translator.core.unit_translator import UnitTranslator

logger = logging.getLogger(__name__)


class DocumentTranslator:
    """
    Translates documents segment by segment.

    Args:
        unit_translator: Translator for individual segments
        segmenter: Segmenter splitting documents into segments
        batch_size: Segments dispatched together
        log_callback: Optional ``log_callback(event_key, message)``
    """

    def __init__(self, unit_translator: UnitTranslator, segmenter: Optional[Segmenter] = None,
                 batch_size: int = SEGMENT_BATCH_SIZE, log_callback: Optional[Callable] = None):
        self.unit_translator = unit_translator
        self.segmenter = segmenter or Segmenter()
        self.batch_size = max(1, batch_size)
        self.log_callback = log_callback

    async def translate_document(self, content: str, file_index: int, total_files: int,
                                 target_language: TargetLanguage,
                                 progress: Optional[Callable[[float], None]] = None,
                                 cancellation: Optional[CancellationToken] = None,
                                 name: str = "") -> str:
        """
        Translate one document.

        Args:
            content: Raw document markup
            file_index: Position of the document in the run
            total_files: Number of documents in the run
            target_language: Target language
            progress: Receives progress on the run's global axis
            cancellation: Run cancellation token
            name: Document name used in log messages

        Returns:
            The translated document. When cancelled between batches, only the
            batches completed so far.
        """
        segments = self.segmenter.segment(content)
        metrics = self.unit_translator.metrics
        if metrics:
            metrics.record_segments(len(segment) for segment in segments)

        if self.log_callback:
            self.log_callback("document_start",
                              f"📄 Translating {name or f'document {file_index + 1}'} "
                              f"({file_index + 1}/{total_files}, {len(segments)} segments)")

        translated: List[str] = []
        total_segments = len(segments)
        for batch_start in range(0, total_segments, self.batch_size):
            if cancellation is not None and cancellation.is_cancelled:
                logger.info("Stopping %s after %d/%d segments: cancelled",
                            name or f"document {file_index + 1}", len(translated), total_segments)
                return "".join(translated)

            batch = segments[batch_start:batch_start + self.batch_size]
            results = await gather_or_cancel(
                self.unit_translator.translate(
                    segment,
                    SegmentPosition(file_index, total_files, batch_start + offset, total_segments),
                    target_language,
                    progress,
                    cancellation,
                )
                for offset, segment in enumerate(batch)
            )
            translated.extend(results)

        if progress and not (cancellation is not None and cancellation.is_cancelled):
            progress(document_end_progress(file_index, total_files))
        return "".join(translated)
