"""
Progress tracking for translation runs.

All components report the progress they intend to reach; only the
ProgressTracker decides what is forwarded to the observer:

- Values are clamped to [0, 100]
- Values never go backwards (clamp-to-max)
- Nothing is forwarded once the run has been cancelled

The global progress axis gives each segment of each document its own slice,
so segments finishing out of submission order never make progress regress.
"""

import logging
import threading
from dataclasses import dataclass
from time import time
from typing import Callable, Optional

from epub_translator.config import PROGRESS_THRESHOLD

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class SegmentPosition:
    """Position of a segment on the global progress axis."""
    file_index: int
    total_files: int
    chunk_index: int
    total_chunks: int


@dataclass(frozen=True)
class UnitProgress:
    """Progress slice [base, next) owned by one segment."""
    base: float
    next: float

    @property
    def range(self) -> float:
        return self.next - self.base

    def at(self, processed_chars: int, total_chars: int) -> float:
        """
        Estimated progress after receiving ``processed_chars`` characters.

        Capped at PROGRESS_THRESHOLD of the slice so that the end of the slice
        is only reported once the stream has been finalized.
        """
        ratio = processed_chars / max(total_chars, 1)
        return self.base + min(PROGRESS_THRESHOLD, ratio) * self.range


def calculate_unit_progress(position: SegmentPosition) -> UnitProgress:
    """
    Compute a segment's slice of the global progress axis.

    base = (file_index * total_chunks + chunk_index) / (total_files * total_chunks) * 100
    next = (file_index * total_chunks + chunk_index + 1) / (total_files * total_chunks) * 100
    """
    total_files = max(position.total_files, 1)
    total_chunks = max(position.total_chunks, 1)
    denominator = total_files * total_chunks
    offset = position.file_index * total_chunks + position.chunk_index
    return UnitProgress(
        base=offset / denominator * 100,
        next=(offset + 1) / denominator * 100,
    )


def document_end_progress(file_index: int, total_files: int) -> float:
    """Progress reached once every segment of a document is done."""
    return (file_index + 1) / max(total_files, 1) * 100


@dataclass
class ProgressStats:
    """Immutable progress statistics snapshot."""
    progress_percent: float
    updates_forwarded: int
    updates_ignored: int
    elapsed_seconds: float

    def to_dict(self) -> dict:
        return {
            'progress_percent': self.progress_percent,
            'updates_forwarded': self.updates_forwarded,
            'updates_ignored': self.updates_ignored,
            'elapsed_seconds': self.elapsed_seconds,
        }


class ProgressTracker:
    """
    Authoritative, monotonic progress for one pipeline run.

    Thread-safe: the archive may report repackaging progress from a worker
    thread while the event loop reports translation progress.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, cancellation=None):
        """
        Args:
            callback: Observer receiving each new progress value in [0, 100]
            cancellation: Optional CancellationToken; updates stop once it fires
        """
        self._callback = callback
        self._cancellation = cancellation
        self._lock = threading.Lock()
        self._progress = 0.0
        self._started = False
        self._forwarded = 0
        self._ignored = 0
        self._start_time: Optional[float] = None

    @property
    def progress(self) -> float:
        return self._progress

    def start(self) -> None:
        """Mark the start of the run and report 0."""
        self._start_time = time()
        self.update(0.0)

    def update(self, value: float) -> float:
        """
        Report intended progress.

        Returns:
            The authoritative progress after the update
        """
        if self._cancellation is not None and self._cancellation.is_cancelled:
            with self._lock:
                self._ignored += 1
                return self._progress

        value = min(100.0, max(0.0, float(value)))
        with self._lock:
            if self._started and value <= self._progress:
                self._ignored += 1
                return self._progress
            self._started = True
            self._progress = value
            self._forwarded += 1

        if self._callback:
            self._callback(value)
        return value

    def scaled(self, factor: float, offset: float = 0.0) -> ProgressCallback:
        """
        Build a progress callback mapping [0, 100] into [offset, offset + 100 * factor].

        Example:
            >>> translation_progress = tracker.scaled(0.99)  # 0-100 -> 0-99
        """
        def _report(value: float) -> None:
            self.update(offset + value * factor)
        return _report

    def get_stats(self) -> ProgressStats:
        elapsed = time() - self._start_time if self._start_time else 0.0
        return ProgressStats(
            progress_percent=self._progress,
            updates_forwarded=self._forwarded,
            updates_ignored=self._ignored,
            elapsed_seconds=elapsed,
        )
