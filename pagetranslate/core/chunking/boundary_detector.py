"""
Sentence boundary detection and sentence-safe splitting.

Used to cut fragments that are too large for one request into chunks that
end on a sentence boundary whenever one is available.
"""

import bisect
import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from pagetranslate.common.placeholder_format import PlaceholderFormat

# A terminator counts only when followed by whitespace or end of text
SENTENCE_END_PATTERN = re.compile(r'[.!?](?=\s|$)')


class BoundaryType(Enum):
    """Type of chunk boundary."""
    SENTENCE_END = "sentence_end"
    FORCED_SIZE = "forced_size"
    END_OF_TEXT = "end_of_text"


@dataclass
class TextChunk:
    """A piece of a split text and the kind of boundary it ends on."""
    text: str
    boundary: BoundaryType

    def __len__(self) -> int:
        return len(self.text)


def find_sentence_boundaries(text: str) -> List[int]:
    """
    Locate every sentence end in text.

    Args:
        text: Text to scan

    Returns:
        Sorted positions just after each terminator

    Example:
        >>> find_sentence_boundaries("Hi. How are you? Fine")
        [3, 16]
    """
    return [match.end() for match in SENTENCE_END_PATTERN.finditer(text)]


def split_at_sentences(text: str, max_size: int) -> List[TextChunk]:
    """
    Split text into chunks of at most max_size characters.

    Each chunk is filled greedily with whole sentences. A sentence longer
    than max_size is cut at raw character offsets instead, moving the cut
    back so it does not fall inside a placeholder. Whitespace between chunks
    is dropped.

    Args:
        text: Text to split
        max_size: Maximum characters per chunk

    Returns:
        List of TextChunk in text order
    """
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")

    boundaries = find_sentence_boundaries(text)
    chunks: List[TextChunk] = []
    length = len(text)
    start = 0

    while start < length:
        while start < length and text[start].isspace():
            start += 1
        if start >= length:
            break

        if length - start <= max_size:
            chunks.append(TextChunk(text[start:].rstrip(), BoundaryType.END_OF_TEXT))
            break

        limit = start + max_size
        last = bisect.bisect_right(boundaries, limit) - 1
        if last >= 0 and boundaries[last] > start:
            end = boundaries[last]
            chunks.append(TextChunk(text[start:end], BoundaryType.SENTENCE_END))
        else:
            end = _safe_cut(text, start, limit)
            chunks.append(TextChunk(text[start:end], BoundaryType.FORCED_SIZE))
        start = end

    return chunks


def _safe_cut(text: str, start: int, limit: int) -> int:
    """Move a forced cut before any placeholder it would split."""
    window_start = max(start, limit - 64)
    for token in PlaceholderFormat().find_all(text[window_start:limit + 64]):
        token_start = window_start + token.start
        token_end = window_start + token.end
        if token_start < limit < token_end and token_start > start:
            return token_start
    return limit
