"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
and configuration for all test modules.
"""

import sys
from pathlib import Path
from typing import List, Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Import pytest for fixtures
import pytest

from pagetranslate.config import TranslationConfig
from pagetranslate.core.exceptions import ApiRequestError
from pagetranslate.core.llm.base import CompletionClient


class FakeCompletionClient(CompletionClient):
    """
    In-memory completion client.

    Answers each request with the next queued response. A queued exception
    is raised instead, a queued callable is called with the request text.
    When the queue is empty the text is echoed upper-cased.
    """

    def __init__(self, responses: Optional[list] = None):
        super().__init__(model="fake-model", timeout=5)
        self.responses = list(responses or [])
        self.requests: List[dict] = []
        self.closed = False

    async def generate(self, prompt):
        raise NotImplementedError

    async def translate(self, text, target_language, batch_delimiter=None):
        self.requests.append({
            'text': text,
            'target_language': target_language,
            'batch_delimiter': batch_delimiter,
        })
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return response(text)
            return response
        return text.upper()

    async def close(self):
        self.closed = True


@pytest.fixture
def sample_html():
    """Sample HTML for testing."""
    return "<p>Hello <strong>world</strong>!</p>"


@pytest.fixture
def sample_tag_map():
    """Tag map produced for sample_html."""
    return {
        "<p_0>": "<p>",
        "<strong_1>": "<strong>",
        "</strong_2>": "</strong>",
        "</p_3>": "</p>",
    }


@pytest.fixture
def sample_text_with_placeholders():
    """Encoded form of sample_html."""
    return "<p_0>Hello <strong_1>world</strong_2>!</p_3>"


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def failing_client():
    """Client whose every request fails at the transport level."""
    return FakeCompletionClient([ApiRequestError("API request failed: boom", status_code=500)] * 20)


@pytest.fixture
def config():
    """Valid configuration with a fast rate for tests."""
    return TranslationConfig(
        target_language="ja",
        model="gpt-4o-mini",
        api_endpoint="https://llm.test/v1/chat/completions",
        api_key="sk-test-1234",
        requests_per_second=200,
        max_characters_per_batch=100,
    )


@pytest.fixture
def make_client():
    """Factory for FakeCompletionClient with queued responses."""
    return FakeCompletionClient
