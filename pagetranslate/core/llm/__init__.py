"""
Completion client package.

Components:
    - base: CompletionClient abstract base and LLMResponse
    - providers.openai: OpenAI-compatible chat-completions client
"""

from .base import CompletionClient, LLMResponse

__all__ = ['CompletionClient', 'LLMResponse']
