"""
Completion client implementations.

Providers:
    - openai: OpenAI-compatible APIs
"""

from .openai import OpenAICompatibleProvider

__all__ = ['OpenAICompatibleProvider']
