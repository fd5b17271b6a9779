"""
Batch planning.

Packs translation units into as few requests as possible without exceeding
the character budget and without ever cutting a fragment in two, unless the
fragment alone is larger than the budget.
"""

import logging
import uuid
from typing import List

from pagetranslate.config import CHUNK_FILL_RATIO, DEFAULT_BATCH_DELIMITER, MAX_CHARACTERS_PER_BATCH
from pagetranslate.core.chunking import split_at_sentences
from pagetranslate.core.exceptions import ConfigurationError
from pagetranslate.core.translation_unit import Batch, TranslationUnit

logger = logging.getLogger(__name__)


class BatchPlanner:
    """
    Greedy, order-preserving batch builder.

    Units are added to the current batch while the joined size (unit texts
    plus one delimiter between each pair) stays within max_characters. An
    oversized unit closes the current batch and is split into chunks of at
    most CHUNK_FILL_RATIO * max_characters, each sent as its own batch.
    """

    def __init__(self, max_characters: int = MAX_CHARACTERS_PER_BATCH,
                 delimiter: str = DEFAULT_BATCH_DELIMITER):
        if max_characters <= len(delimiter):
            raise ConfigurationError(
                f"Batch budget ({max_characters}) must exceed the delimiter length ({len(delimiter)})"
            )
        self.max_characters = max_characters
        self.delimiter = delimiter

    @property
    def chunk_limit(self) -> int:
        return max(1, int(self.max_characters * CHUNK_FILL_RATIO))

    def plan(self, units: List[TranslationUnit]) -> List[Batch]:
        """
        Group units into batches.

        Args:
            units: Units in document order

        Returns:
            Batches in the same order
        """
        batches: List[Batch] = []
        current: List[TranslationUnit] = []
        current_size = 0

        def close_current():
            nonlocal current, current_size
            if current:
                batches.append(Batch(batch_id=len(batches), units=current))
            current = []
            current_size = 0

        for unit in units:
            if unit.size > self.max_characters:
                close_current()
                for chunk in self.split_unit(unit):
                    batches.append(Batch(batch_id=len(batches), units=[chunk]))
                continue

            added = unit.size + (len(self.delimiter) if current else 0)
            if current and current_size + added > self.max_characters:
                close_current()
                added = unit.size

            current.append(unit)
            current_size += added

        close_current()

        logger.debug(f"Planned {len(batches)} batch(es) for {len(units)} unit(s)")
        return batches

    def split_unit(self, unit: TranslationUnit) -> List[TranslationUnit]:
        """
        Split an oversized unit into chunk units.

        All chunks share the fragment's placeholder map and remember its
        unsplit encoded text, under which the reassembled translation is cached.
        """
        pieces = split_at_sentences(unit.encoded_text, self.chunk_limit)
        chunk_id = uuid.uuid4().hex
        logger.info(
            f"Fragment {unit.unit_id} exceeds batch size ({unit.size} > {self.max_characters}), "
            f"split into {len(pieces)} chunk(s)"
        )
        return [
            TranslationUnit(
                unit_id=unit.unit_id,
                source_markup=unit.source_markup,
                encoded_text=piece.text,
                placeholder_map=unit.placeholder_map,
                chunk_id=chunk_id,
                chunk_index=index,
                total_chunks=len(pieces),
                original_text=unit.encoded_text,
            )
            for index, piece in enumerate(pieces)
        ]
