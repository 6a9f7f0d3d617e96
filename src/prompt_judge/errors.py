from typing import Any

from openai import RateLimitError


RATE_LIMIT_ERROR_CODE = "rate_limit_exceeded"


class PromptJudgeError(Exception):
    pass


class CredentialMissingError(PromptJudgeError):
    def __init__(self, message: str = "API key is required") -> None:
        super().__init__(message)


class ExtractionFailure(PromptJudgeError, ValueError):
    """Raised when no JSON object can be recovered from model output."""


def is_rate_limit_error(error: BaseException) -> bool:
    """
    Return True if `error` signals that the provider quota was exceeded.

    Recognizes the SDK's typed rate-limit error, any error carrying an HTTP 429
    status, the `rate_limit_exceeded` error code, and plain messages that mention
    a rate limit (some proxies rewrite the status but keep the text).
    """

    if isinstance(error, RateLimitError):
        return True

    status_code: Any = getattr(error, "status_code", None)
    if status_code is None:
        status_code = getattr(error, "status", None)
    if status_code == 429:
        return True

    if getattr(error, "code", None) == RATE_LIMIT_ERROR_CODE:
        return True

    return "rate limit" in str(error).lower()
