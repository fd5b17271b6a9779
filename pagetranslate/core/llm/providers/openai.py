"""
OpenAI-compatible client implementation.

This module provides the OpenAICompatibleProvider class for interacting with
the OpenAI chat-completions API and compatible endpoints.
"""

from typing import Dict, Optional, Callable
import logging
import httpx

from ..base import CompletionClient, LLMResponse
from pagetranslate.config import API_ENDPOINT, REQUEST_TIMEOUT, get_request_parameters
from pagetranslate.core.exceptions import ApiRequestError
from pagetranslate.prompts import PromptPair
from pagetranslate.utils.llm_logger import log_llm_interaction

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(CompletionClient):
    """OpenAI-compatible API client (OpenAI, llama.cpp, LM Studio, vLLM, etc.)"""

    def __init__(self, model: str, api_key: str, api_endpoint: str = API_ENDPOINT,
                 timeout: int = REQUEST_TIMEOUT,
                 parameter_profiles: Optional[Dict[str, dict]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 log_callback: Optional[Callable] = None):
        super().__init__(model, timeout)
        self.api_endpoint = api_endpoint
        self.api_key = api_key
        self.parameter_profiles = parameter_profiles
        self.log_callback = log_callback
        self._transport = transport

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None and self._transport is not None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=httpx.Timeout(self.timeout))
        return await super()._get_client()

    def build_payload(self, prompt: PromptPair) -> dict:
        """Build the JSON request body for this model"""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        payload.update(get_request_parameters(self.model, self.parameter_profiles))
        return payload

    async def generate(self, prompt: PromptPair) -> LLMResponse:
        """
        Generate a completion using an OpenAI compatible API.

        Args:
            prompt: System and user prompt

        Returns:
            LLMResponse with content and token usage info

        Raises:
            ApiRequestError: Network failure, non-success status or unreadable body
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = self.build_payload(prompt)

        client = await self._get_client()
        try:
            response = await client.post(self.api_endpoint, json=payload, headers=headers)
            response.raise_for_status()
            response_json = response.json()
        except httpx.HTTPStatusError as e:
            message = self._error_message(e.response)
            logger.warning(f"API HTTP Error: {message}")
            raise ApiRequestError(f"API request failed: {message}", status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"API Request Error: {message}")
            raise ApiRequestError(f"API request failed: {message}") from e
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            logger.warning(f"API JSON Decode Error: {e}")
            raise ApiRequestError(f"API request failed: invalid JSON response ({e})") from e

        response_text = self._extract_content(response_json)
        usage = response_json.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        result = LLMResponse(
            content=response_text,
            prompt_tokens=usage.get("prompt_tokens") or 0,
            completion_tokens=usage.get("completion_tokens") or 0,
        )

        log_llm_interaction(prompt.system, prompt.user, response_text)
        if self.log_callback:
            self.log_callback(
                "llm_response",
                f"{len(result.content)} characters received from {self.model} "
                f"({result.prompt_tokens} prompt + {result.completion_tokens} completion tokens)"
            )
        return result

    @staticmethod
    def _extract_content(response_json) -> str:
        """
        Read choices[0].message.content from a completion body.

        A body without choices, or with a null content, yields "".

        Raises:
            ApiRequestError: The body does not have the completion shape
        """
        if not isinstance(response_json, dict):
            logger.warning(f"API response is not a JSON object: {type(response_json).__name__}")
            raise ApiRequestError("API request failed: response body is not a JSON object")

        choices = response_json.get("choices") or [{}]
        first = choices[0] if isinstance(choices, list) else None
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(first, dict) or not isinstance(message, (dict, type(None))):
            logger.warning("API response has no usable choices")
            raise ApiRequestError("API request failed: unexpected completion format")

        content = (message or {}).get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise ApiRequestError("API request failed: completion content is not text")
        return content

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Human-readable error from the server's error body, else status code and text"""
        try:
            error_data = response.json()
        except ValueError:
            error_data = None
        if isinstance(error_data, dict):
            error = error_data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if isinstance(error, str) and error:
                return error
        return f"{response.status_code} {response.reason_phrase}"
