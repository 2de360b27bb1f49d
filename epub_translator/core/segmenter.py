"""
HTML-aware segmentation of XHTML documents.

Splits one document's raw markup into an ordered list of translation units
that never cut through a tag:

1. Partition the document into complete block elements (p, div, h1-h6,
   section) and the plain runs between them
2. Pack partitions greedily into units of at most ``max_size`` characters
3. Blocks too large on their own are split on their inner content and each
   piece is re-wrapped in the block's own open/close tags
4. Plain runs too large on their own are sliced at fixed size

Example:
    >>> segment_content("<p>Hello</p> world", 20)
    ['<p>Hello</p> world']
    >>> segment_content("<p>Hello</p> world", 12)
    ['<p>Hello</p>', ' world']
    >>> segment_content("<p>Hello</p>", 10)
    ['<p>Hel</p>', '<p>lo</p>']
"""
import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from epub_translator.config import BLOCK_TAGS, MAX_SEGMENT_SIZE

logger = logging.getLogger(__name__)


class SegmentKind(Enum):
    BLOCK = "block"
    TEXT = "text"


@dataclass(frozen=True)
class Partition:
    """A contiguous piece of a document: a complete block element or a plain run."""
    kind: SegmentKind
    text: str


_OPEN_TAG_PATTERN = re.compile(r'<([a-zA-Z0-9]+)[^>]*>')
_CLOSE_TAG_PATTERN = re.compile(r'</([a-zA-Z0-9]+)\s*>')


def _build_block_pattern(block_tags: Sequence[str]) -> 're.Pattern[str]':
    """Match one block element from its open tag to the first close tag of the same name."""
    names = '|'.join(sorted((re.escape(tag) for tag in block_tags), key=len, reverse=True))
    return re.compile(rf'<({names})(?:\s[^>]*)?>.*?</\1\s*>', re.DOTALL | re.IGNORECASE)


_BLOCK_PATTERN = _build_block_pattern(BLOCK_TAGS)


def partition_content(content: str, block_pattern: 're.Pattern[str]' = _BLOCK_PATTERN) -> List[Partition]:
    """
    Partition markup into block elements and the plain runs between them.

    The scan is non-overlapping, so a nested block is carried inside its
    outer block. Concatenating the partitions returns ``content``.
    """
    partitions: List[Partition] = []
    position = 0
    for match in block_pattern.finditer(content):
        if match.start() > position:
            partitions.append(Partition(SegmentKind.TEXT, content[position:match.start()]))
        partitions.append(Partition(SegmentKind.BLOCK, match.group(0)))
        position = match.end()
    if position < len(content):
        partitions.append(Partition(SegmentKind.TEXT, content[position:]))
    return partitions


def slice_fixed(text: str, size: int) -> List[str]:
    """Slice text into consecutive pieces of at most ``size`` characters."""
    size = max(1, size)
    return [text[start:start + size] for start in range(0, len(text), size)]


def _extract_block_tags(block: str) -> Optional[Tuple[str, str]]:
    """Return the (open tag, close tag) wrapping a block, or None when they cannot be found."""
    open_match = _OPEN_TAG_PATTERN.match(block)
    if not open_match:
        return None
    close_tag = f"</{open_match.group(1)}>"
    if not block.lower().endswith(close_tag.lower()):
        close_matches = list(_CLOSE_TAG_PATTERN.finditer(block))
        if not close_matches or close_matches[-1].end() != len(block):
            return None
        close_tag = close_matches[-1].group(0)
    if len(open_match.group(0)) + len(close_tag) > len(block):
        return None
    return open_match.group(0), close_tag


def split_oversized_block(block: str, max_size: int) -> List[str]:
    """
    Split a block larger than ``max_size`` on its inner content.

    Each piece is re-wrapped with the block's open and close tags so every
    emitted unit stays well-formed. When the tags cannot be extracted, or
    leave no room for content, the block is sliced at fixed size instead.
    """
    tags = _extract_block_tags(block)
    if tags is not None:
        open_tag, close_tag = tags
        inner_budget = max_size - len(open_tag) - len(close_tag)
        if inner_budget > 0:
            inner = block[len(open_tag):len(block) - len(close_tag)]
            pieces = slice_fixed(inner, inner_budget) or ['']
            return [f"{open_tag}{piece}{close_tag}" for piece in pieces]

    logger.warning(
        "Block of %d chars could not be split on its tags; falling back to fixed-size slicing",
        len(block)
    )
    return slice_fixed(block, max_size)


def segment_content(content: str, max_size: int = MAX_SEGMENT_SIZE,
                    block_pattern: 're.Pattern[str]' = _BLOCK_PATTERN) -> List[str]:
    """
    Split a document into ordered segments of at most ``max_size`` characters.

    Args:
        content: Raw document markup
        max_size: Maximum segment length
        block_pattern: Pattern matching the block elements kept whole

    Returns:
        Ordered list of segments (empty for an empty document)
    """
    if not content:
        return []
    max_size = max(1, max_size)

    segments: List[str] = []
    current = ""

    for partition in partition_content(content, block_pattern):
        element = partition.text
        if len(current) + len(element) <= max_size:
            current += element
            continue

        if current:
            segments.append(current)
            current = ""

        if partition.kind is SegmentKind.BLOCK:
            if len(element) > max_size:
                segments.extend(split_oversized_block(element, max_size))
            else:
                current = element
        else:
            pieces = slice_fixed(element, max_size)
            segments.extend(pieces[:-1])
            current = pieces[-1]

    if current:
        segments.append(current)

    logger.debug("Split content of %d chars into %d segments", len(content), len(segments))
    return segments


class Segmenter:
    """Segments documents with a maximum segment size and block tag set."""

    def __init__(self, max_size: int = MAX_SEGMENT_SIZE, block_tags: Sequence[str] = BLOCK_TAGS):
        self.max_size = max(1, max_size)
        self._block_pattern = (
            _BLOCK_PATTERN if tuple(block_tags) == tuple(BLOCK_TAGS)
            else _build_block_pattern(block_tags)
        )

    def segment(self, content: str) -> List[str]:
        return segment_content(content, self.max_size, self._block_pattern)
