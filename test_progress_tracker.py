"""
Tests for the global progress axis and the monotonic progress tracker.
"""
import pytest

from epub_translator.config import PROGRESS_THRESHOLD
from epub_translator.core.concurrency import CancellationToken
from epub_translator.core.progress_tracker import (
    ProgressTracker,
    SegmentPosition,
    UnitProgress,
    calculate_unit_progress,
    document_end_progress,
)


def test_unit_slices_tile_the_axis_in_order():
    total_files, total_chunks = 2, 3
    slices = [
        calculate_unit_progress(SegmentPosition(f, total_files, c, total_chunks))
        for f in range(total_files)
        for c in range(total_chunks)
    ]

    assert slices[0].base == 0.0
    assert slices[-1].next == pytest.approx(100.0)
    for previous, current in zip(slices, slices[1:]):
        assert previous.next == pytest.approx(current.base)


def test_unit_slice_formula():
    unit = calculate_unit_progress(SegmentPosition(file_index=1, total_files=2, chunk_index=1, total_chunks=4))

    assert unit.base == pytest.approx(5 / 8 * 100)
    assert unit.next == pytest.approx(6 / 8 * 100)
    assert unit.range == pytest.approx(12.5)


def test_unit_progress_is_capped_below_slice_end():
    unit = UnitProgress(base=0.0, next=10.0)

    assert unit.at(5, 10) == pytest.approx(5.0)
    assert unit.at(50, 10) == pytest.approx(PROGRESS_THRESHOLD * 10.0)
    assert unit.at(1, 0) == pytest.approx(PROGRESS_THRESHOLD * 10.0)


def test_document_end_progress():
    assert document_end_progress(0, 4) == 25.0
    assert document_end_progress(3, 4) == 100.0
    assert document_end_progress(0, 0) == 100.0


def test_tracker_is_monotonic_and_clamped():
    reported = []
    tracker = ProgressTracker(reported.append)
    tracker.start()

    for value in (10, 5, 30, 30, 150, 90, -4):
        tracker.update(value)

    assert reported == [0.0, 10.0, 30.0, 100.0]
    assert tracker.progress == 100.0

    stats = tracker.get_stats()
    assert stats.updates_forwarded == 4
    assert stats.updates_ignored == 4


def test_tracker_ignores_updates_after_cancellation():
    reported = []
    token = CancellationToken()
    tracker = ProgressTracker(reported.append, token)
    tracker.start()
    tracker.update(40)
    token.cancel()
    tracker.update(60)
    tracker.update(100)

    assert reported == [0.0, 40.0]
    assert tracker.progress == 40.0


def test_scaled_callbacks_map_into_sub_ranges():
    reported = []
    tracker = ProgressTracker(reported.append)
    translation = tracker.scaled(0.99)
    repack = tracker.scaled(0.01, offset=99.0)

    translation(50)
    translation(100)
    repack(50)
    repack(100)

    assert reported == pytest.approx([49.5, 99.0, 99.5, 100.0])
