"""
Base classes and data structures for the completion client.

This module defines the abstract client the dispatcher talks to, as well as
the LLMResponse data structure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import httpx

from pagetranslate.config import REQUEST_TIMEOUT
from pagetranslate.prompts import PromptPair, generate_batch_prompt, generate_single_prompt


@dataclass
class LLMResponse:
    """Response from LLM with token usage information"""
    content: str
    prompt_tokens: int = 0  # Number of tokens in the prompt
    completion_tokens: int = 0  # Number of tokens in the response


class CompletionClient(ABC):
    """Abstract base class for chat-completion clients"""

    def __init__(self, model: str, timeout: int = REQUEST_TIMEOUT):
        """
        Initialize the client.

        Args:
            model: Model name/identifier
            timeout: Request timeout in seconds
        """
        self.model = model
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    async def generate(self, prompt: PromptPair) -> LLMResponse:
        """
        Send one completion request.

        Args:
            prompt: System and user prompt

        Returns:
            LLMResponse with the message content

        Raises:
            ApiRequestError: Network failure or non-success status
        """
        pass

    async def translate(self, text: str, target_language: str,
                        batch_delimiter: Optional[str] = None) -> str:
        """
        Translate encoded text.

        Args:
            text: One encoded fragment, or several joined with batch_delimiter
            target_language: Language code or name
            batch_delimiter: Delimiter of a batch request, None for a single fragment

        Returns:
            Raw translated text (may be empty)
        """
        if batch_delimiter is None:
            prompt = generate_single_prompt(text, target_language)
        else:
            prompt = generate_batch_prompt(text, target_language, batch_delimiter)
        response = await self.generate(prompt)
        return response.content
