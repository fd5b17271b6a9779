"""
LLM request/response dump for debugging.

When enabled (DEBUG_MODE=true in the environment, or --debug on the command
line) every completion request is printed to stderr: system prompt, encoded
user text and raw model output, before splitting and decoding.
"""
import os
import sys
from typing import Optional

from pagetranslate.config import DEBUG_MODE

_enabled = DEBUG_MODE

# ANSI colors: orange for what goes to the model, green for what comes back
_HEADER = '\033[93m\033[1m'
_SENT = '\033[38;5;214m'
_RECEIVED = '\033[92m'
_RULE = '\033[90m'
_RESET = '\033[0m'


def set_llm_logging(enabled: bool) -> None:
    global _enabled
    _enabled = enabled


def _use_color() -> bool:
    return os.environ.get('NO_COLOR') is None and sys.stderr.isatty()


def _paint(color: str, text: str, colored: bool) -> str:
    return f"{color}{text}{_RESET}" if colored else text


def log_llm_interaction(
    system_prompt: Optional[str],
    user_prompt: str,
    raw_response: str,
    interaction_type: str = "translation",
    prefix: str = ""
):
    """
    Print one completion round trip.

    Args:
        system_prompt: Instructions sent as the system message
        user_prompt: Encoded fragment text sent as the user message
        raw_response: Model output before any splitting
        interaction_type: Label shown in the header (e.g. "batch")
        prefix: Optional tag for the header (e.g. "Batch 3")
    """
    if not _enabled:
        return

    colored = _use_color()
    banner = "=" * 80
    rule = _paint(_RULE, "-" * 80, colored)
    label = f"[{prefix}] " if prefix else ""

    sections = []
    if system_prompt:
        sections.append(("System Prompt", system_prompt, _SENT))
    sections.append(("User Prompt", user_prompt, _SENT))
    sections.append(("Raw Response", raw_response, _RECEIVED))

    lines = [
        "",
        _paint(_HEADER, banner, colored),
        _paint(_HEADER, f"DEBUG: {label}LLM Interaction - {interaction_type.upper()}", colored),
        _paint(_HEADER, banner, colored),
        "",
    ]
    for title, body, color in sections:
        lines.extend([_paint(color, f"{title}:", colored), rule, _paint(color, body, colored), rule, ""])
    lines.extend([_paint(_HEADER, banner, colored), ""])

    print("\n".join(lines), file=sys.stderr)
