"""
Command-line interface for fragment translation
"""
import argparse
import asyncio
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles
from tqdm.auto import tqdm

from pagetranslate.config import (
    API_ENDPOINT, API_KEY, DEFAULT_MODEL, DEFAULT_TARGET_LANGUAGE, MAX_CHARACTERS_PER_BATCH,
    REQUEST_TIMEOUT, REQUESTS_PER_SECOND, TranslationConfig,
)
from pagetranslate.core.exceptions import ConfigurationError
from pagetranslate.core.fragments import HtmlFragment
from pagetranslate.core.translation_unit import FragmentOutcome
from pagetranslate.session import TranslationSession
from pagetranslate.utils.llm_logger import set_llm_logging

BLOCK_SEPARATOR = re.compile(r'\n\s*\n')


def get_unique_output_path(output_path: str) -> str:
    """
    Add a number suffix when the output file already exists.

    Examples:
        page.json -> page (1).json (if page.json exists)
    """
    path = Path(output_path)
    if not path.exists():
        return output_path

    counter = 1
    while True:
        candidate = path.parent / f"{path.stem} ({counter}){path.suffix}"
        if not candidate.exists():
            return str(candidate)
        counter += 1


def default_output_path(input_path: str, target_language: str) -> str:
    base, ext = os.path.splitext(input_path)
    return f"{base}_translated_{target_language.lower()}{ext}"


def parse_fragments(content: str, as_json: bool) -> List[str]:
    """
    Split input file content into fragments.

    JSON input must be an array of strings. Any other input is split on
    blank lines.
    """
    if as_json:
        data = json.loads(content)
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise ValueError("JSON input must be an array of strings")
        return data
    return [block.strip() for block in BLOCK_SEPARATOR.split(content) if block.strip()]


def format_output(fragments: Sequence[HtmlFragment], outcomes: Sequence[FragmentOutcome], as_json: bool) -> str:
    if as_json:
        report = []
        for fragment, outcome in zip(fragments, outcomes):
            entry = outcome.to_dict()
            entry['source'] = fragment.original_content
            report.append(entry)
        return json.dumps(report, ensure_ascii=False, indent=2) + "\n"
    # failed fragments keep their original markup
    return "\n\n".join(fragment.get_content() for fragment in fragments) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Translate HTML fragments with an OpenAI-compatible LLM endpoint.")
    parser.add_argument("-i", "--input", required=True, help="Path to the input file (.json array of strings, or blocks separated by blank lines).")
    parser.add_argument("-o", "--output", default=None, help="Path to the output file. If not specified, uses input filename with suffix.")
    parser.add_argument("-tl", "--target_lang", default=DEFAULT_TARGET_LANGUAGE, help=f"Target language (default: {DEFAULT_TARGET_LANGUAGE}).")
    parser.add_argument("-m", "--model", default=DEFAULT_MODEL, help=f"LLM model (default: {DEFAULT_MODEL}).")
    parser.add_argument("--api_endpoint", default=API_ENDPOINT, help=f"Chat completions endpoint (default: {API_ENDPOINT}).")
    parser.add_argument("--api_key", default=API_KEY, help="API key (default: OPENAI_API_KEY from the environment).")
    parser.add_argument("--rps", type=float, default=REQUESTS_PER_SECOND, help=f"Requests per second (default: {REQUESTS_PER_SECOND}).")
    parser.add_argument("--batch_size", type=int, default=MAX_CHARACTERS_PER_BATCH, help=f"Maximum characters per batch request (default: {MAX_CHARACTERS_PER_BATCH}).")
    parser.add_argument("--delimiter", default=None, help="Custom batch delimiter.")
    parser.add_argument("--timeout", type=int, default=REQUEST_TIMEOUT, help=f"Request timeout in seconds (default: {REQUEST_TIMEOUT}).")
    parser.add_argument("--debug", action="store_true", help="Log full prompts and responses.")
    return parser


async def run(args: argparse.Namespace, session: Optional[TranslationSession] = None) -> int:
    """
    Translate the input file and write the result.

    Returns:
        Process exit code: 0 when every fragment was translated or skipped,
        1 when at least one fragment failed
    """
    as_json = args.input.lower().endswith('.json')

    async with aiofiles.open(args.input, 'r', encoding='utf-8') as f:
        content = await f.read()
    fragments = [HtmlFragment(text, fragment_id=str(i)) for i, text in enumerate(parse_fragments(content, as_json))]

    if session is None:
        config = TranslationConfig.from_cli_args(args)
        session = TranslationSession(config, log_callback=lambda key, message: tqdm.write(message))

    async with session:
        with tqdm(total=len(fragments), desc=f"Translating to {session.config.target_language}", unit="frag") as bar:
            def on_progress(processed: int, total: int) -> None:
                bar.update(processed - bar.n)

            outcomes = await session.translate_fragments(fragments, progress_callback=on_progress)

    async with aiofiles.open(args.output, 'w', encoding='utf-8') as f:
        await f.write(format_output(fragments, outcomes, as_json))

    failed = [outcome for outcome in outcomes if not outcome.succeeded and outcome.error]
    print(f"Translated {len(outcomes) - len(failed)}/{len(outcomes)} fragment(s), output saved: '{args.output}'")
    for outcome in failed:
        print(f"  fragment {outcome.index}: {outcome.error}", file=sys.stderr)
    return 1 if failed else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        set_llm_logging(True)

    if args.output is None:
        args.output = default_output_path(args.input, args.target_lang)
    args.output = get_unique_output_path(args.output)

    try:
        return asyncio.run(run(args))
    except (ConfigurationError, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
