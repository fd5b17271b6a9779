"""
Chunking module for oversized fragments.

Splits text at sentence boundaries and reassembles chunk translations.
"""
from pagetranslate.core.chunking.boundary_detector import (
    BoundaryType,
    TextChunk,
    find_sentence_boundaries,
    split_at_sentences,
)
from pagetranslate.core.chunking.chunk_assembler import ChunkAssembler

__all__ = [
    'BoundaryType',
    'TextChunk',
    'find_sentence_boundaries',
    'split_at_sentences',
    'ChunkAssembler',
]
