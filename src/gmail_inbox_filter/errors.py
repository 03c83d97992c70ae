"""Error taxonomy shared by the gateway, retry policy and orchestrator."""

from __future__ import annotations

from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError


class FilterError(Exception):
    """Base class for all errors raised by Gmail Inbox Filter."""


class ConfigError(FilterError):
    """Invalid configuration."""


class ProviderError(FilterError):
    """A call to the mail provider failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FatalProviderError(ProviderError):
    """Never retried; aborts the run."""


class AuthorizationError(FatalProviderError):
    pass


class NotFoundError(FatalProviderError):
    pass


class ConflictError(ProviderError):
    """The resource already exists. Not retried, but not fatal either."""


class RetryableProviderError(ProviderError):
    """May succeed if tried again later."""


class RateLimitError(RetryableProviderError):
    pass


class TransientProviderError(RetryableProviderError):
    pass


def translate_http_error(exc: HttpError) -> ProviderError:
    """Map a googleapiclient HttpError onto the error taxonomy."""
    status = exc.resp.status
    message = str(exc)
    if status == 401:
        return AuthorizationError(message, status)
    if status == 404:
        return NotFoundError(message, status)
    if status == 409:
        return ConflictError(message, status)
    if status == 429 or "Rate Limit" in message:
        return RateLimitError(message, status)
    return TransientProviderError(message, status)


def is_fatal(exc: BaseException) -> bool:
    if isinstance(exc, (FatalProviderError, RefreshError)):
        return True
    if isinstance(exc, HttpError):
        return isinstance(translate_http_error(exc), FatalProviderError)
    return False


def is_retryable(exc: BaseException) -> bool:
    if is_fatal(exc) or isinstance(exc, ConflictError):
        return False
    if isinstance(exc, HttpError):
        return not isinstance(translate_http_error(exc), ConflictError)
    return True


def is_rate_limited(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, HttpError):
        return isinstance(translate_http_error(exc), RateLimitError)
    return "Rate Limit" in str(exc)
