"""
Translation dispatcher.

Drives one translation pass over a list of fragments:

    encode -> cache lookup -> plan batches -> rate-limited requests
           -> split response -> decode -> cache -> apply

Transport and malformed-response errors are contained per batch. A batch
whose request fails falls back to one request per unit; a batch whose
response is short or empty fails only the units it cannot account for.
Every fragment ends the pass APPLIED, FAILED or SKIPPED. Fragments already
applied, or still queued by another pass, are skipped without a request.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from itertools import zip_longest
from typing import Callable, List, Optional, Sequence

from pagetranslate.config import DEFAULT_BATCH_DELIMITER, DEFAULT_DELIMITER_SPLIT_PATTERN
from pagetranslate.core.batch_planner import BatchPlanner
from pagetranslate.core.cache import TranslationCache
from pagetranslate.core.chunking import ChunkAssembler
from pagetranslate.core.exceptions import ApiRequestError, MalformedResponseError, RequestCancelledError
from pagetranslate.core.fragments import FragmentContainer, FragmentState
from pagetranslate.core.llm.base import CompletionClient
from pagetranslate.core.rate_limiter import RateLimiter
from pagetranslate.core.tag_preservation import html_to_placeholders, placeholders_to_html
from pagetranslate.core.translation_unit import Batch, FragmentOutcome, TranslationUnit

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_DEFAULT_SPLIT_RE = re.compile(DEFAULT_DELIMITER_SPLIT_PATTERN)


@dataclass
class _Pass:
    """Mutable state of one translate_fragments call."""
    fragments: Sequence[FragmentContainer]
    outcomes: List[Optional[FragmentOutcome]]
    target_language: str

    @property
    def processed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome is not None)

    def is_settled(self, index: int) -> bool:
        return self.outcomes[index] is not None


class TranslationDispatcher:
    """
    Combines the cache, the batch planner, the rate limiter and the
    completion client into translation passes over caller-owned fragments.
    """

    def __init__(
        self,
        client: CompletionClient,
        cache: TranslationCache,
        rate_limiter: RateLimiter,
        planner: Optional[BatchPlanner] = None,
        assembler: Optional[ChunkAssembler] = None,
        log_callback: Optional[Callable[[str, str], None]] = None,
    ):
        self.client = client
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.planner = planner or BatchPlanner()
        self.assembler = assembler or ChunkAssembler()
        self.log_callback = log_callback

    @property
    def delimiter(self) -> str:
        return self.planner.delimiter

    def _log(self, key: str, message: str) -> None:
        logger.info(message)
        if self.log_callback:
            self.log_callback(key, message)

    async def translate_fragments(
        self,
        fragments: Sequence[FragmentContainer],
        target_language: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[FragmentOutcome]:
        """
        Translate fragments in place.

        Args:
            fragments: Caller-owned fragment containers
            target_language: Language code or name
            progress_callback: Called with (processed, total) after the cache
                pass and after every batch

        Returns:
            One FragmentOutcome per fragment, in input order
        """
        run = _Pass(fragments=fragments, outcomes=[None] * len(fragments), target_language=target_language)
        units = self._prepare_units(run)

        if progress_callback:
            progress_callback(run.processed, len(fragments))

        batches = self.planner.plan(units)
        if batches:
            self._log("translation_start",
                      f"Translating {len(units)} fragment(s) in {len(batches)} batch(es) to {target_language}")

        async def process(batch: Batch) -> None:
            await self._process_batch(batch, run)
            if progress_callback:
                progress_callback(run.processed, len(fragments))

        await asyncio.gather(*(process(batch) for batch in batches))

        outcomes = run.outcomes
        for index, outcome in enumerate(outcomes):
            if outcome is None:
                # chunk group never completed
                outcomes[index] = self._settle_failure(run, index, "Translation incomplete")

        failed = sum(1 for outcome in outcomes if outcome.state == FragmentState.FAILED)
        self._log("translation_complete",
                  f"Translation pass finished: {len(outcomes) - failed} ok, {failed} failed")
        return outcomes

    async def translate_fragment(self, fragment: FragmentContainer, target_language: str) -> FragmentOutcome:
        """Translate a single fragment; a lone unit always goes out as a single request."""
        outcomes = await self.translate_fragments([fragment], target_language)
        return outcomes[0]

    def split_response(self, response: str, expected: int) -> List[str]:
        """
        Split a batch response into trimmed segments.

        Raises:
            MalformedResponseError: The response is empty
        """
        if not response or not response.strip():
            raise MalformedResponseError("Empty batch response", expected_segments=expected, actual_segments=0)

        if self.delimiter == DEFAULT_BATCH_DELIMITER:
            segments = _DEFAULT_SPLIT_RE.split(response)
        else:
            segments = response.split(self.delimiter)
        segments = [segment.strip() for segment in segments]

        if len(segments) != expected:
            logger.debug(f"Batch response has {len(segments)} segment(s), expected {expected}")
        return segments

    def _prepare_units(self, run: _Pass) -> List[TranslationUnit]:
        units = []
        for index, fragment in enumerate(run.fragments):
            state = fragment.get_state()
            if state.is_busy:
                # already translated, or in flight in another pass; state left as is
                logger.debug(f"Fragment {index} is {state.value}, not resubmitted")
                run.outcomes[index] = FragmentOutcome(index=index, state=FragmentState.SKIPPED)
                continue

            markup = fragment.get_content()
            if not markup.strip():
                fragment.mark_state(FragmentState.SKIPPED)
                run.outcomes[index] = FragmentOutcome(index=index, state=FragmentState.SKIPPED)
                continue

            encoded, tag_map = html_to_placeholders(markup)
            unit = TranslationUnit(
                unit_id=index,
                source_markup=markup,
                encoded_text=encoded,
                placeholder_map=tag_map,
            )

            cached = self.cache.get(encoded, run.target_language)
            if cached is not None:
                fragment.mark_state(FragmentState.CACHED)
                run.outcomes[index] = self._apply(run, unit, cached, cached=True)
                continue

            fragment.mark_state(FragmentState.QUEUED)
            units.append(unit)
        return units

    async def _process_batch(self, batch: Batch, run: _Pass) -> None:
        for unit in batch:
            if not run.is_settled(unit.unit_id):
                run.fragments[unit.unit_id].mark_state(FragmentState.TRANSLATING)

        if len(batch) == 1:
            await self._process_single(batch.units[0], run)
            return

        text = batch.joined_text(self.delimiter)
        try:
            response = await self.rate_limiter.execute(
                lambda: self.client.translate(text, run.target_language, batch_delimiter=self.delimiter)
            )
        except RequestCancelledError as e:
            for unit in batch:
                self._fail(run, unit, str(e))
            return
        except ApiRequestError as e:
            self._log("batch_fallback",
                      f"Batch {batch.batch_id} failed ({e}), retrying {len(batch)} fragment(s) one by one")
            await asyncio.gather(*(self._process_single(unit, run) for unit in batch))
            return

        try:
            segments = self.split_response(response, len(batch))
        except MalformedResponseError as e:
            logger.warning(f"Batch {batch.batch_id}: {e}")
            for unit in batch:
                self._fail(run, unit, e.message)
            return

        for unit, segment in zip_longest(batch.units, segments[:len(batch)]):
            if segment:
                self._resolve(run, unit, segment)
            else:
                self._fail(run, unit, "Missing or empty segment in batch response")

    async def _process_single(self, unit: TranslationUnit, run: _Pass) -> None:
        try:
            response = await self.rate_limiter.execute(
                lambda: self.client.translate(unit.encoded_text, run.target_language)
            )
        except (ApiRequestError, RequestCancelledError) as e:
            self._fail(run, unit, str(e))
            return

        translation = (response or "").strip()
        if not translation:
            self._fail(run, unit, "Empty translation")
            return
        self._resolve(run, unit, translation)

    def _resolve(self, run: _Pass, unit: TranslationUnit, translation: str) -> None:
        if run.is_settled(unit.unit_id):
            return

        if unit.is_chunk:
            translation = self.assembler.store(unit, translation)
            if translation is None:
                return

        self.cache.set(unit.cache_text, run.target_language, translation)
        run.outcomes[unit.unit_id] = self._apply(run, unit, translation)

    def _apply(self, run: _Pass, unit: TranslationUnit, translation: str, cached: bool = False) -> FragmentOutcome:
        markup = placeholders_to_html(translation, unit.placeholder_map)
        fragment = run.fragments[unit.unit_id]
        fragment.set_content(markup)
        fragment.mark_state(FragmentState.APPLIED)
        return FragmentOutcome(index=unit.unit_id, state=FragmentState.APPLIED, translation=markup, cached=cached)

    def _fail(self, run: _Pass, unit: TranslationUnit, reason: str) -> None:
        if unit.is_chunk:
            self.assembler.discard(unit.chunk_id)
        if run.is_settled(unit.unit_id):
            return
        run.outcomes[unit.unit_id] = self._settle_failure(run, unit.unit_id, reason)

    def _settle_failure(self, run: _Pass, index: int, reason: str) -> FragmentOutcome:
        logger.warning(f"Fragment {index} failed: {reason}")
        if self.log_callback:
            self.log_callback("fragment_failed", f"Fragment {index} failed: {reason}")
        run.fragments[index].mark_state(FragmentState.FAILED)
        return FragmentOutcome(index=index, state=FragmentState.FAILED, error=reason)
