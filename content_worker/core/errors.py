"""
Error taxonomy shared by the LLM client, the pipeline stages and the entry points.

Only AuthenticationError is permanent. Everything else is retryable by whoever
re-invokes the pipeline; no stage retries on its own.
"""

from __future__ import annotations

from typing import Any, Optional

_AUTH_STATUS_CODES = {401, 403}
_AUTH_MESSAGE_MARKERS = ("invalid api key", "invalid_api_key", "incorrect api key")


class PipelineError(Exception):
    is_retryable = True


class LLMError(PipelineError):
    """Failure while talking to the completion service."""


class AuthenticationError(LLMError):
    """The completion service rejected our credentials."""

    is_retryable = False


class JSONParseError(LLMError):
    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class EmptyResponseError(LLMError):
    pass


class ClaimValidationError(PipelineError):
    """A single extracted claim was malformed and has to be dropped."""

    def __init__(self, message: str, raw_claim: Optional[Any] = None) -> None:
        super().__init__(message)
        self.raw_claim = raw_claim


class RateLimitExceededError(Exception):
    def __init__(self, retry_after_ms: float) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after_ms = max(0.0, float(retry_after_ms))

    @property
    def retry_after_seconds(self) -> int:
        return max(1, int(-(-self.retry_after_ms // 1000)))


def _status_code_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_authentication_error(exc: BaseException) -> bool:
    if isinstance(exc, AuthenticationError):
        return True

    # groq SDK exception names, checked by name so callers need not import groq
    if type(exc).__name__ in {"AuthenticationError", "PermissionDeniedError"}:
        return True

    if _status_code_of(exc) in _AUTH_STATUS_CODES:
        return True

    message = str(exc).lower()
    return any(marker in message for marker in _AUTH_MESSAGE_MARKERS)


def classify_llm_error(exc: BaseException) -> BaseException:
    """
    Map a raw SDK/HTTP exception onto the taxonomy.

    Already-classified errors are returned unchanged; auth failures become
    AuthenticationError; anything else is returned as-is (generic, retryable).
    """
    if isinstance(exc, LLMError):
        return exc
    if is_authentication_error(exc):
        return AuthenticationError(f"LLM credentials rejected: {exc}")
    return exc
