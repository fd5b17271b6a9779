"""
Centralized placeholder format detection and manipulation.

Placeholders stand in for HTML tags while text travels through the model.
They look like tags so the model keeps them in place: ``<p_0>``,
``</strong_2>``. This module knows how to build, parse and find them.
"""
import re
from typing import List, NamedTuple, Optional

from pagetranslate.config import FALLBACK_TAG_NAME, PLACEHOLDER_PATTERN


class PlaceholderToken(NamedTuple):
    """One placeholder occurrence found in text."""
    start: int
    end: int
    text: str
    closing: bool
    name: str
    index: int


class PlaceholderFormat:
    """
    Encapsulates placeholder creation and matching.

    Matching is case-insensitive and tolerates whitespace after ``<``,
    around ``/`` and before ``>``, which is how models usually damage them.

    Example:
        >>> fmt = PlaceholderFormat()
        >>> fmt.create("p", 0)
        '<p_0>'
        >>> fmt.create("strong", 2, closing=True)
        '</strong_2>'
        >>> fmt.normalize('< /Strong_2 >')
        '</strong_2>'
    """

    def __init__(self, pattern: str = PLACEHOLDER_PATTERN):
        """
        Initialize placeholder format.

        Args:
            pattern: Regex with groups (slash, name, index)
        """
        self.pattern = pattern
        self._compiled_pattern = re.compile(pattern, re.IGNORECASE)

    @staticmethod
    def sanitize_name(tag_text: str) -> str:
        """
        Derive a placeholder name from the inside of a tag.

        Args:
            tag_text: Tag content without angle brackets (e.g. '/a href="x"')

        Returns:
            Lower-cased tag name restricted to a-z and 0-9

        Example:
            >>> PlaceholderFormat.sanitize_name('SPAN class="x"')
            'span'
            >>> PlaceholderFormat.sanitize_name('!-- note --')
            'tag'
        """
        stripped = tag_text[1:] if tag_text.startswith('/') else tag_text
        parts = stripped.split(None, 1)
        first = parts[0] if parts else ''
        name = re.sub(r'[^a-z0-9]', '', first.lower())
        return name or FALLBACK_TAG_NAME

    def create(self, name: str, index: int, closing: bool = False) -> str:
        """
        Create a placeholder for the given tag name and index.

        Example:
            >>> PlaceholderFormat().create("a", 4)
            '<a_4>'
        """
        slash = '/' if closing else ''
        return f"<{slash}{name}_{index}>"

    def parse(self, placeholder: str) -> Optional[PlaceholderToken]:
        """
        Parse a single placeholder string.

        Args:
            placeholder: Placeholder text, possibly with stray whitespace

        Returns:
            PlaceholderToken, or None if the text is not a placeholder

        Example:
            >>> PlaceholderFormat().parse('</em_3>').index
            3
            >>> PlaceholderFormat().parse('<em>') is None
            True
        """
        match = self._compiled_pattern.fullmatch(placeholder)
        if not match:
            return None
        return self._token(match)

    def normalize(self, placeholder: str) -> Optional[str]:
        """
        Return the canonical spelling of a damaged placeholder.

        Whitespace is removed and the name lower-cased.

        Example:
            >>> PlaceholderFormat().normalize('<  A_4 >')
            '<a_4>'
        """
        token = self.parse(placeholder)
        if token is None:
            return None
        return self.create(token.name, token.index, token.closing)

    def find_all(self, text: str) -> List[PlaceholderToken]:
        """
        Find all placeholders in text.

        Args:
            text: Text to search

        Returns:
            List of PlaceholderToken in order of appearance

        Example:
            >>> [t.text for t in PlaceholderFormat().find_all("<p_0>Hi</p_1>")]
            ['<p_0>', '</p_1>']
        """
        return [self._token(match) for match in self._compiled_pattern.finditer(text)]

    def _token(self, match: re.Match) -> PlaceholderToken:
        slash, name, index = match.groups()
        return PlaceholderToken(
            start=match.start(),
            end=match.end(),
            text=match.group(0),
            closing=bool(slash),
            name=name.lower(),
            index=int(index),
        )

    def __repr__(self) -> str:
        return f"PlaceholderFormat(pattern={self.pattern!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PlaceholderFormat):
            return False
        return self.pattern == other.pattern
