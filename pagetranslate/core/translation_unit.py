"""
Translation unit abstraction.

A TranslationUnit is one piece of translation work: a whole fragment, or one
chunk of a fragment too large for a single request. Units are created when
batches are prepared and discarded once their translation has been applied or
has failed.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pagetranslate.core.fragments import FragmentState


@dataclass
class TranslationUnit:
    """
    Represents a single unit of translation work.

    Attributes:
        unit_id: Position of the owning fragment in the submitted list
        source_markup: Original markup of the fragment
        encoded_text: Markup with tags replaced by placeholders (this chunk only, for chunks)
        placeholder_map: Placeholder -> original tag, in document order
        chunk_id: Shared identifier of all chunks of one oversized fragment
        chunk_index: Position of this chunk in its group
        total_chunks: Number of chunks in the group
        original_text: Unsplit encoded text of the fragment (set on chunks)
    """
    unit_id: int
    source_markup: str
    encoded_text: str
    placeholder_map: Dict[str, str] = field(default_factory=dict)
    chunk_id: Optional[str] = None
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None
    original_text: Optional[str] = None

    @property
    def is_chunk(self) -> bool:
        return self.chunk_id is not None

    @property
    def cache_text(self) -> str:
        """Text the finished translation is cached under."""
        return self.original_text if self.original_text is not None else self.encoded_text

    @property
    def size(self) -> int:
        return len(self.encoded_text)

    def __repr__(self) -> str:
        preview = self.encoded_text[:50] + "..." if len(self.encoded_text) > 50 else self.encoded_text
        chunk = f", chunk={self.chunk_index + 1}/{self.total_chunks}" if self.is_chunk else ""
        return f"TranslationUnit(id={self.unit_id}{chunk}, text='{preview}')"


@dataclass
class Batch:
    """Units sent together in one request, joined by the batch delimiter."""
    batch_id: int
    units: List[TranslationUnit]

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self):
        return iter(self.units)

    def joined_text(self, delimiter: str) -> str:
        return delimiter.join(unit.encoded_text for unit in self.units)

    def encoded_size(self, delimiter: str) -> int:
        """Total characters of the request body text."""
        if not self.units:
            return 0
        return sum(unit.size for unit in self.units) + len(delimiter) * (len(self.units) - 1)


@dataclass
class FragmentOutcome:
    """
    Final result of one submitted fragment.

    Attributes:
        index: Position in the submitted list
        state: APPLIED, FAILED or SKIPPED
        translation: Decoded translated markup, None unless applied
        error: Why the fragment failed, if it did
        cached: True when the translation came from the cache
    """
    index: int
    state: FragmentState
    translation: Optional[str] = None
    error: Optional[str] = None
    cached: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state == FragmentState.APPLIED

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'state': self.state.value,
            'translation': self.translation,
            'error': self.error,
            'cached': self.cached,
        }
