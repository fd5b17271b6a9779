"""
Tag preservation for markup-bearing fragments

This module handles the preservation of HTML tags during translation by
replacing them with numbered placeholders that look like tags (<p_0>,
</strong_2>), then restoring them once the model has answered.
"""
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from pagetranslate.common.placeholder_format import PlaceholderFormat, PlaceholderToken
from pagetranslate.config import FALLBACK_TAG_NAME, TAG_PATTERN

logger = logging.getLogger(__name__)


class TagPreserver:
    """
    Preserves HTML tags during translation by replacing them with placeholders

    The TagPreserver converts tags like <em>text</em> into <em_0>text</em_1>
    before translation, then restores them afterward. Restoration never fails:
    placeholders the model damaged or renumbered are recovered when possible
    and dropped otherwise, so the output is always renderable markup.
    """

    def __init__(self, placeholder_format: Optional[PlaceholderFormat] = None):
        self.placeholder_format = placeholder_format or PlaceholderFormat()
        self._tag_pattern = re.compile(TAG_PATTERN)

    def preserve_tags(self, text: str) -> Tuple[str, Dict[str, str]]:
        """
        Replace HTML tags with placeholders

        Args:
            text: Markup containing HTML tags

        Returns:
            Tuple of (processed_text, tag_map)

        Example:
            >>> preserver = TagPreserver()
            >>> text, tag_map = preserver.preserve_tags("<em>Hello</em> world")
            >>> text
            '<em_0>Hello</em_1> world'
        """
        tag_map: Dict[str, str] = {}
        counter = 0

        def replace_tag(match: re.Match) -> str:
            nonlocal counter
            inner = match.group(1)
            name = self.placeholder_format.sanitize_name(inner)
            placeholder = self.placeholder_format.create(name, counter, closing=inner.startswith('/'))
            tag_map[placeholder] = match.group(0)
            counter += 1
            return placeholder

        processed_text = self._tag_pattern.sub(replace_tag, text)
        return processed_text, tag_map

    def restore_tags(self, text: str, tag_map: Dict[str, str]) -> str:
        """
        Restore HTML tags from placeholders

        Every placeholder-shaped token is resolved as a whole, so a short
        placeholder can never eat into a longer one (<a_1> vs <a_10>).
        Resolution order for each token:

        1. exact key of tag_map
        2. same key once whitespace is removed and case folded
        3. the first unused entry with the same tag name and kind (the
           model renumbered it)
        4. a bare tag of that name, if the fragment had such a tag
        5. dropped

        Args:
            text: Text with placeholders
            tag_map: Dictionary mapping placeholders to original tags

        Returns:
            Text with restored tags

        Example:
            >>> preserver = TagPreserver()
            >>> tag_map = {'<em_0>': '<em>', '</em_1>': '</em>'}
            >>> preserver.restore_tags('< em_0>Hello</em_1 >', tag_map)
            '<em>Hello</em>'
        """
        tokens = self.placeholder_format.find_all(text)
        if not tokens:
            return text

        canonical_keys = self._canonical_keys(tag_map)
        replacements: List[Optional[str]] = [None] * len(tokens)
        used: Set[str] = set()
        orphans: List[int] = []

        for position, token in enumerate(tokens):
            key = token.text if token.text in tag_map else canonical_keys.get(self._canonical(token))
            if key is None:
                orphans.append(position)
                continue
            replacements[position] = tag_map[key]
            used.add(key)

        if orphans:
            known_names = {parsed.name for parsed in self._parsed_keys(tag_map).values()}
            for position in orphans:
                token = tokens[position]
                replacements[position] = self._recover_orphan(token, tag_map, used, known_names)

        pieces = []
        cursor = 0
        for token, replacement in zip(tokens, replacements):
            pieces.append(text[cursor:token.start])
            pieces.append(replacement)
            cursor = token.end
        pieces.append(text[cursor:])
        return ''.join(pieces)

    def validate_placeholders(self, text: str, tag_map: Dict[str, str]) -> Tuple[bool, List[str], List[str]]:
        """
        Check that the model kept every placeholder and invented none

        Whitespace damage is tolerated here since restore_tags repairs it.

        Args:
            text: Translated text to validate
            tag_map: Dictionary mapping placeholders to original tags

        Returns:
            Tuple of (is_valid, missing_placeholders, unexpected_placeholders)
        """
        canonical_keys = self._canonical_keys(tag_map)
        found = set()
        unexpected = []
        for token in self.placeholder_format.find_all(text):
            key = canonical_keys.get(self._canonical(token))
            if key is None:
                unexpected.append(token.text)
            else:
                found.add(key)

        missing = [key for key in tag_map if key not in found]
        return not missing and not unexpected, missing, unexpected

    def _recover_orphan(
        self,
        token: PlaceholderToken,
        tag_map: Dict[str, str],
        used: Set[str],
        known_names: Set[str],
    ) -> str:
        logger.debug(f"Unmatched placeholder {token.text} in translated text")

        for key, parsed in self._parsed_keys(tag_map).items():
            if key in used:
                continue
            if parsed.name == token.name and parsed.closing == token.closing:
                used.add(key)
                logger.debug(f"Unmatched placeholder {token.text} mapped to {key}")
                return tag_map[key]

        if token.name in known_names and token.name != FALLBACK_TAG_NAME:
            bare = f"</{token.name}>" if token.closing else f"<{token.name}>"
            logger.debug(f"Unmatched placeholder {token.text} demoted to {bare}")
            return bare

        logger.debug(f"Unmatched placeholder {token.text} discarded")
        return ''

    def _parsed_keys(self, tag_map: Dict[str, str]) -> Dict[str, PlaceholderToken]:
        parsed = {}
        for key in tag_map:
            token = self.placeholder_format.parse(key)
            if token is not None:
                parsed[key] = token
        return parsed

    def _canonical_keys(self, tag_map: Dict[str, str]) -> Dict[str, str]:
        return {self._canonical(token): key for key, token in self._parsed_keys(tag_map).items()}

    def _canonical(self, token: PlaceholderToken) -> str:
        return self.placeholder_format.normalize(token.text)


_default_preserver = TagPreserver()


def html_to_placeholders(markup: str) -> Tuple[str, Dict[str, str]]:
    """Encode markup with the default TagPreserver."""
    return _default_preserver.preserve_tags(markup)


def placeholders_to_html(text: str, tag_map: Dict[str, str]) -> str:
    """Decode text with the default TagPreserver."""
    return _default_preserver.restore_tags(text, tag_map)


def find_placeholders(text: str) -> List[str]:
    """List placeholders in text, in order of appearance, as written."""
    return [token.text for token in _default_preserver.placeholder_format.find_all(text)]
