from typing import NamedTuple

from pagetranslate.config import DELIMITER_CORE, get_language_name


class PromptPair(NamedTuple):
    """A pair of system and user prompts for LLM translation."""
    system: str
    user: str


# ============================================================================
# SHARED PROMPT SECTIONS
# ============================================================================

def _get_placeholder_rules() -> str:
    return """Placeholders look like <tag_n> and </tag_n> where tag is a name and n is a number.
They mark HTML structure and MUST appear in your translation in the EXACT same format.
Never remove, modify, renumber, or skip any placeholder."""


def _delimiter_label(delimiter: str) -> str:
    label = delimiter.strip()
    return label or DELIMITER_CORE


# ============================================================================
# TRANSLATION PROMPTS
# ============================================================================

def generate_single_prompt(text: str, target_language: str) -> PromptPair:
    """
    Build the prompt for one fragment.

    Args:
        text: Placeholder-encoded fragment
        target_language: Language code or name

    Returns:
        PromptPair with the instructions and the text to translate
    """
    language_name = get_language_name(target_language)
    system = f"""You are a professional translator. Translate the given text to {language_name}.
CRITICAL: You MUST preserve ALL HTML placeholders EXACTLY as they appear.
{_get_placeholder_rules()}

Example:
Input: <a_0>Click <span_1>here</span_2></a_3> to continue
Output: <a_0><span_1>ここ</span_2>をクリック</a_3>して続行

Only return the translated text."""
    return PromptPair(system=system, user=text)


def generate_batch_prompt(text: str, target_language: str, delimiter: str) -> PromptPair:
    """
    Build the prompt for several fragments joined by a delimiter.

    Args:
        text: Encoded fragments joined with the delimiter
        target_language: Language code or name
        delimiter: Delimiter used to join the fragments

    Returns:
        PromptPair with the instructions and the joined text
    """
    language_name = get_language_name(target_language)
    label = _delimiter_label(delimiter)
    system = f"""You are a professional translator. Translate each text segment to {language_name}.
The input contains multiple text segments separated by "{label}".
CRITICAL RULES:
1. Translate each segment independently
2. Preserve the EXACT delimiter "{label}" between translations
3. Return exactly as many segments as you received, in the same order
4. NEVER remove or modify HTML placeholders like <a_0>, </a_1>, <span_2>, </span_3>
5. ALL placeholders must appear in the EXACT same format in your translation
6. Return only the translations with delimiters, no explanations

Example:
Input: <a_0>Hello <span_1>world</span_2></a_3>
Output: <a_0>こんにちは<span_1>世界</span_2></a_3>"""
    return PromptPair(system=system, user=text)
