"""
Reassembly of chunk translations.

Chunks of one oversized fragment can come back in any order. Their
translations are parked in a fixed-size slot list per chunk group and joined
once the last slot is filled.
"""

import logging
from typing import Dict, List, Optional

from pagetranslate.core.translation_unit import TranslationUnit

logger = logging.getLogger(__name__)

CHUNK_JOINER = " "


class ChunkAssembler:
    """Arena of pending chunk groups keyed by chunk id."""

    def __init__(self):
        self._groups: Dict[str, List[Optional[str]]] = {}

    def store(self, unit: TranslationUnit, translation: str) -> Optional[str]:
        """
        Park the translation of one chunk.

        Args:
            unit: Chunk unit (chunk_id, chunk_index and total_chunks set)
            translation: Translated text of this chunk

        Returns:
            The joined translation when this was the last missing chunk,
            otherwise None
        """
        if not unit.is_chunk:
            raise ValueError(f"{unit!r} is not a chunk")

        slots = self._groups.get(unit.chunk_id)
        if slots is None:
            slots = [None] * unit.total_chunks
            self._groups[unit.chunk_id] = slots

        slots[unit.chunk_index] = translation
        filled = sum(1 for slot in slots if slot is not None)
        logger.debug(f"Chunk {unit.chunk_index + 1}/{unit.total_chunks} of {unit.chunk_id} received ({filled} filled)")

        if filled < len(slots):
            return None

        del self._groups[unit.chunk_id]
        return CHUNK_JOINER.join(slots)

    def discard(self, chunk_id: str) -> None:
        """Forget a group whose fragment has failed."""
        self._groups.pop(chunk_id, None)

    def __len__(self) -> int:
        return len(self._groups)
