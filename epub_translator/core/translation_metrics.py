"""Translation metrics and statistics tracking.

This module contains the counters collected during one pipeline run.
"""

import time
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class TranslationMetrics:
    """Translation metrics for one run.

    Tracks document and segment counts, cache efficiency, network usage and timing.

    Segment flow:
    1. Cache lookup on (segment, language); a hit costs no network request
    2. Streaming request through the request gate
    3. Result stored in the cache when non-empty
    """
    # === Documents ===
    total_files: int = 0
    completed_files: int = 0

    # === Segments ===
    total_segments: int = 0
    completed_segments: int = 0  # Segments resolved (cache hit or network)
    cache_hits: int = 0
    network_requests: int = 0
    failed_segments: int = 0
    cancelled_segments: int = 0

    # === Stream decoding ===
    malformed_records: int = 0  # SSE records skipped because their JSON was invalid

    # === Characters ===
    characters_sent: int = 0
    characters_received: int = 0

    # === Timing ===
    total_time_seconds: float = 0.0
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    # === Segment Size Stats ===
    min_segment_size: int = field(default_factory=lambda: float('inf'))
    max_segment_size: int = 0
    total_segment_size: int = 0

    def record_segments(self, sizes) -> None:
        """Record the segments produced for one document.

        Args:
            sizes: Length of each segment in characters
        """
        for size in sizes:
            self.total_segments += 1
            self.min_segment_size = min(self.min_segment_size, size)
            self.max_segment_size = max(self.max_segment_size, size)
            self.total_segment_size += size

    def record_cache_hit(self) -> None:
        self.cache_hits += 1
        self.completed_segments += 1

    def record_request(self, sent_chars: int, received_chars: int, malformed_records: int = 0) -> None:
        """Record a completed network translation."""
        self.network_requests += 1
        self.completed_segments += 1
        self.characters_sent += sent_chars
        self.characters_received += received_chars
        self.malformed_records += malformed_records

    def record_failure(self) -> None:
        self.failed_segments += 1

    def record_cancelled(self) -> None:
        self.cancelled_segments += 1

    def record_file_completed(self) -> None:
        self.completed_files += 1

    def finalize(self) -> None:
        """Finalize metrics (call when the run ends)."""
        self.end_time = time.time()
        self.total_time_seconds = self.end_time - self.start_time

    @property
    def avg_segment_size(self) -> float:
        """Average segment size in characters."""
        if self.total_segments == 0:
            return 0.0
        return self.total_segment_size / self.total_segments

    @property
    def cache_hit_rate(self) -> float:
        if self.completed_segments == 0:
            return 0.0
        return self.cache_hits / self.completed_segments

    def to_dict(self) -> Dict:
        """Convert metrics to dictionary for serialization."""
        return {
            "total_files": self.total_files,
            "completed_files": self.completed_files,
            "total_segments": self.total_segments,
            "completed_segments": self.completed_segments,
            "cache_hits": self.cache_hits,
            "network_requests": self.network_requests,
            "failed_segments": self.failed_segments,
            "cancelled_segments": self.cancelled_segments,
            "malformed_records": self.malformed_records,
            "characters_sent": self.characters_sent,
            "characters_received": self.characters_received,
            "total_time_seconds": self.total_time_seconds,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "avg_segment_size": self.avg_segment_size,
            "min_segment_size": self.min_segment_size if self.min_segment_size != float('inf') else 0,
            "max_segment_size": self.max_segment_size,
            "cache_hit_rate": self.cache_hit_rate,
        }

    def _pct(self, value: int, total: int) -> float:
        if total == 0:
            return 0.0
        return round(value / total * 100, 1)

    def log_summary(self, log_callback=None) -> str:
        """Log comprehensive summary.

        Args:
            log_callback: Optional callback for logging

        Returns:
            Summary string
        """
        summary_lines = [
            "=== Translation Summary ===",
            f"Documents: {self.completed_files}/{self.total_files}",
            f"Segments: {self.completed_segments}/{self.total_segments}",
            f"Cache hits: {self.cache_hits} ({self._pct(self.cache_hits, self.completed_segments)}%)",
            f"Network requests: {self.network_requests}",
        ]

        if self.failed_segments or self.cancelled_segments:
            summary_lines.append(
                f"Failed: {self.failed_segments}, cancelled: {self.cancelled_segments}"
            )

        if self.malformed_records:
            summary_lines.append(f"⚠️ Malformed stream records skipped: {self.malformed_records}")

        if self.characters_sent or self.characters_received:
            summary_lines.extend([
                "",
                "=== Characters ===",
                f"Sent: {self.characters_sent:,}",
                f"Received: {self.characters_received:,}",
            ])

        if self.max_segment_size > 0:
            summary_lines.extend([
                "",
                "=== Segment Sizes ===",
                f"Min: {self.min_segment_size if self.min_segment_size != float('inf') else 0} chars",
                f"Max: {self.max_segment_size} chars",
                f"Avg: {self.avg_segment_size:.1f} chars",
            ])

        if self.total_time_seconds > 0:
            summary_lines.extend([
                "",
                "=== Timing ===",
                f"Total time: {self.total_time_seconds:.2f}s",
            ])

        summary = "\n".join(summary_lines)

        if log_callback:
            log_callback("translation_stats", summary)

        return summary
