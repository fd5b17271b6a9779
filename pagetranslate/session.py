"""
Translation session.

Owns one cache, one rate limiter, one completion client and one dispatcher,
built from a TranslationConfig. This is the surface the embedding
application (browser shell, CLI, service) talks to.
"""

import logging
from typing import Callable, List, Optional, Sequence

from pagetranslate.config import TranslationConfig
from pagetranslate.core.batch_planner import BatchPlanner
from pagetranslate.core.cache import TranslationCache
from pagetranslate.core.dispatcher import ProgressCallback, TranslationDispatcher
from pagetranslate.core.fragments import FragmentContainer
from pagetranslate.core.llm.base import CompletionClient
from pagetranslate.core.llm.providers import OpenAICompatibleProvider
from pagetranslate.core.rate_limiter import RateLimiter
from pagetranslate.core.translation_unit import FragmentOutcome

logger = logging.getLogger(__name__)


class TranslationSession:
    """
    Collaborator-facing translation API.

    Example:
        async with TranslationSession(config) as session:
            outcomes = await session.translate_fragments(fragments)
    """

    def __init__(
        self,
        config: Optional[TranslationConfig] = None,
        client: Optional[CompletionClient] = None,
        log_callback: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Args:
            config: Settings, defaults come from the environment
            client: Completion client to use instead of the OpenAI-compatible one
            log_callback: Receives (key, message) for informational events
        """
        self.config = config or TranslationConfig()
        self.config.validate()

        self.cache = TranslationCache(max_size=self.config.cache_max_size)
        self.rate_limiter = RateLimiter(rps=self.config.requests_per_second)
        self.client = client or OpenAICompatibleProvider(
            model=self.config.model,
            api_key=self.config.api_key,
            api_endpoint=self.config.api_endpoint,
            timeout=self.config.timeout,
            parameter_profiles=self.config.parameter_profiles,
            log_callback=log_callback,
        )
        self.dispatcher = TranslationDispatcher(
            client=self.client,
            cache=self.cache,
            rate_limiter=self.rate_limiter,
            planner=BatchPlanner(
                max_characters=self.config.max_characters_per_batch,
                delimiter=self.config.batch_delimiter,
            ),
            log_callback=log_callback,
        )

    async def translate_fragments(
        self,
        fragments: Sequence[FragmentContainer],
        target_language: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[FragmentOutcome]:
        """Translate fragments in place, one outcome per fragment."""
        return await self.dispatcher.translate_fragments(
            fragments,
            target_language or self.config.target_language,
            progress_callback=progress_callback,
        )

    async def translate_fragment(
        self,
        fragment: FragmentContainer,
        target_language: Optional[str] = None,
    ) -> FragmentOutcome:
        return await self.dispatcher.translate_fragment(fragment, target_language or self.config.target_language)

    def configure_rate(self, rps: float) -> None:
        """Change the request rate for every later dispatch."""
        self.rate_limiter.update_rps(rps)
        self.config.requests_per_second = rps

    def clear_cache(self) -> None:
        logger.info(f"Clearing translation cache ({self.cache.size()} entries)")
        self.cache.clear()

    def cancel_pending(self) -> int:
        """Drop queued requests; their fragments end up FAILED."""
        return self.rate_limiter.clear_queue()

    @staticmethod
    def restore_fragments(fragments: Sequence[FragmentContainer]) -> int:
        """
        Put the original markup back on translated fragments.

        Only fragments that remember their original markup (a ``restore()``
        method, as on HtmlFragment) can be restored.

        Returns:
            Number of fragments restored
        """
        restored = 0
        for fragment in fragments:
            restore = getattr(fragment, "restore", None)
            if restore is None:
                continue
            restore()
            restored += 1
        logger.debug(f"Restored {restored} fragment(s)")
        return restored

    async def close(self) -> None:
        self.rate_limiter.clear_queue()
        await self.client.close()

    async def __aenter__(self) -> "TranslationSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
