"""
In-memory LRU cache for translation results.

Entries are keyed by a 32-bit rolling hash of ``language:text``. The hash is
small and fast but not collision free, so each entry also keeps the text it
was created for; a lookup whose text differs is a miss rather than a wrong
translation.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from pagetranslate.config import CACHE_MAX_SIZE

logger = logging.getLogger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return sign + "".join(reversed(digits))


def generate_cache_key(text: str, target_language: str) -> str:
    """
    Hash ``target_language:text`` into a short key.

    Rolling ``h = h * 31 + code`` hash wrapped to a signed 32-bit integer,
    rendered in base 36.

    Args:
        text: Source text (placeholder-encoded)
        target_language: Target language identifier

    Returns:
        Cache key string
    """
    combined = f"{target_language}:{text}"
    value = 0
    for char in combined:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _to_base36(value)


@dataclass
class CacheEntry:
    """Cached translation for one (text, language) pair"""
    source_text: str
    target_language: str
    translated_text: str
    timestamp: float = field(default_factory=time.time)


class TranslationCache:
    """
    Capacity-bounded least-recently-used translation store.

    Recency is refreshed on every successful get. Inserting a new key at
    capacity evicts exactly one entry, the least recently touched. There is
    no time-based expiry.
    """

    def __init__(self, max_size: int = CACHE_MAX_SIZE):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries kept
        """
        self.max_size = max_size
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, text: str, target_language: str) -> Optional[str]:
        """
        Get cached translation.

        Args:
            text: Source text
            target_language: Target language identifier

        Returns:
            Translated text, or None on a miss
        """
        key = generate_cache_key(text, target_language)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.source_text != text or entry.target_language != target_language:
            logger.debug(f"Cache key collision on {key}, treating as miss")
            return None

        self._entries.move_to_end(key)
        return entry.translated_text

    def set(self, text: str, target_language: str, translated_text: str) -> None:
        """
        Store a translation, evicting the least recently used entry if full.

        A colliding entry for different text is replaced.
        """
        key = generate_cache_key(text, target_language)

        if key not in self._entries and len(self._entries) >= self.max_size:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Cache full ({self.max_size}), evicted {evicted_key}")

        self._entries[key] = CacheEntry(
            source_text=text,
            target_language=target_language,
            translated_text=translated_text,
        )
        self._entries.move_to_end(key)

    def clear(self) -> None:
        """Clear all cached data."""
        self._entries.clear()

    def size(self) -> int:
        """Number of cached entries."""
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item) -> bool:
        text, target_language = item
        entry = self._entries.get(generate_cache_key(text, target_language))
        return entry is not None and entry.source_text == text and entry.target_language == target_language
