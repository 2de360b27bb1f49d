"""
Tests for HTML-aware document segmentation.
"""
import pytest

from epub_translator.core.segmenter import (
    Segmenter,
    SegmentKind,
    partition_content,
    segment_content,
    slice_fixed,
    split_oversized_block,
)


def test_block_and_text_fit_in_one_segment():
    assert segment_content("<p>Hello</p> world", 20) == ["<p>Hello</p> world"]


def test_block_and_text_are_separated_when_too_large_together():
    assert segment_content("<p>Hello</p> world", 12) == ["<p>Hello</p>", " world"]


def test_oversized_block_is_split_and_rewrapped():
    segments = segment_content("<p>Hello</p> world", 10)

    assert segments == ["<p>Hel</p>", "<p>lo</p>", " world"]
    assert all(len(segment) <= 10 for segment in segments)


def test_empty_document_has_no_segments():
    assert segment_content("", 100) == []


def test_concatenation_preserves_content_when_no_block_is_split():
    content = "<h1>Title</h1>\n<p>First paragraph.</p>\n<div>Second <em>block</em></div>\ntrailing text"

    for max_size in (40, 64, 200):
        segments = segment_content(content, max_size)
        assert "".join(segments) == content
        assert all(len(segment) <= max_size for segment in segments)


def test_attributes_and_case_of_block_tags_are_recognized():
    partitions = partition_content('<P class="x">One</P><section id="s">Two</section>')

    assert [p.kind for p in partitions] == [SegmentKind.BLOCK, SegmentKind.BLOCK]
    assert partitions[0].text == '<P class="x">One</P>'


def test_nested_block_is_carried_inside_its_outer_block():
    partitions = partition_content("<section><p>Inner</p></section>after")

    # The non-greedy scan stops at the first matching close tag
    assert partitions[0].kind is SegmentKind.BLOCK
    assert "".join(p.text for p in partitions) == "<section><p>Inner</p></section>after"


def test_long_plain_run_is_sliced_at_fixed_size():
    segments = segment_content("x" * 25, 10)

    assert segments == ["x" * 10, "x" * 10, "x" * 5]


def test_split_block_keeps_open_tag_attributes():
    block = '<p class="intro">' + "a" * 30 + "</p>"
    pieces = split_oversized_block(block, 30)

    for piece in pieces:
        assert piece.startswith('<p class="intro">')
        assert piece.endswith("</p>")
        assert len(piece) <= 30
    assert "".join(piece[len('<p class="intro">'):-4] for piece in pieces) == "a" * 30


def test_block_whose_tags_leave_no_room_falls_back_to_slicing():
    block = '<p class="a-very-long-class-name">text</p>'

    assert split_oversized_block(block, 10) == slice_fixed(block, 10)


def test_slice_fixed_handles_degenerate_sizes():
    assert slice_fixed("abc", 0) == ["a", "b", "c"]
    assert slice_fixed("", 5) == []


@pytest.mark.parametrize("max_size", [1, 5, 13, 64])
def test_segments_never_exceed_max_size(max_size):
    content = "<p>" + "word " * 20 + "</p><div>short</div>" + "tail " * 5
    segments = Segmenter(max_size).segment(content)

    assert segments
    assert all(len(segment) <= max_size for segment in segments)


def test_custom_block_tags():
    segmenter = Segmenter(12, block_tags=("li",))

    assert segmenter.segment("<li>one</li><li>two</li>") == ["<li>one</li>", "<li>two</li>"]
