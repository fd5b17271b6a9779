"""
Exception hierarchy for the translation pipeline.

Transport and malformed-response errors are raised by the completion client
and the response splitter, then caught at the batch or single-fragment
boundary of the dispatcher and turned into per-fragment failure state.
"""

from typing import Optional, Dict, Any


class TranslationError(Exception):
    """Base exception for all translation-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the error
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = self.message
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" (context: {context_str})"
        return base


class ConfigurationError(TranslationError):
    """Raised when settings cannot produce a working pipeline."""
    pass


# ============================================================================
# LLM-related errors
# ============================================================================

class LLMError(TranslationError):
    """Base exception for completion endpoint errors."""
    pass


class ApiRequestError(LLMError):
    """Raised when the request fails at the network level or with a non-success status.

    The fragment stays untouched and can be submitted again, hence recoverable.

    Attributes:
        status_code: HTTP status code, None for network failures
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, context, recoverable=True)
        self.status_code = status_code


class MalformedResponseError(LLMError):
    """Raised when a batch response cannot be matched to the units sent.

    Attributes:
        expected_segments: Number of units in the batch
        actual_segments: Number of segments found in the response
    """

    def __init__(
        self,
        message: str,
        expected_segments: Optional[int] = None,
        actual_segments: Optional[int] = None
    ):
        ctx = {}
        if expected_segments is not None:
            ctx['expected_segments'] = expected_segments
        if actual_segments is not None:
            ctx['actual_segments'] = actual_segments
        super().__init__(message, ctx, recoverable=True)
        self.expected_segments = expected_segments
        self.actual_segments = actual_segments


class RequestCancelledError(TranslationError):
    """Raised to callers whose queued request was dropped before dispatch."""

    def __init__(self, message: str = "Request cancelled before dispatch"):
        super().__init__(message, recoverable=True)
