"""
Error classification and exponential-backoff retry for language model calls
"""

import time
import logging
from typing import Any, Callable, Optional, TypeVar

import requests

from ..core.exceptions import AIError, AIErrorCode

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RATE_LIMIT_WAIT = 60.0
DEFAULT_TRANSIENT_WAIT = 5.0


def _status_of(error: Exception) -> Optional[int]:
    response = getattr(error, 'response', None)
    status = getattr(response, 'status_code', None)
    if status is None:
        status = getattr(error, 'status_code', None) or getattr(error, 'status', None)
    return status if isinstance(status, int) else None


def _retry_after_of(error: Exception) -> float:
    response = getattr(error, 'response', None)
    headers = getattr(response, 'headers', None) or getattr(error, 'headers', None) or {}
    value = headers.get('Retry-After') or headers.get('retry-after')
    try:
        return float(value) if value is not None else DEFAULT_RATE_LIMIT_WAIT
    except (TypeError, ValueError):
        return DEFAULT_RATE_LIMIT_WAIT


def classify_error(error: Exception) -> AIError:
    """Map an arbitrary failure from the model call onto an AIError"""
    if isinstance(error, AIError):
        return error

    status = _status_of(error)
    if status is not None:
        if status == 401:
            return AIError("Invalid API key", AIErrorCode.INVALID_API_KEY, 401)
        if status == 429:
            return AIError("Rate limit exceeded", AIErrorCode.RATE_LIMIT, 429,
                           retryable=True, retry_after=_retry_after_of(error))
        if status == 402:
            return AIError("Quota exceeded", AIErrorCode.QUOTA_EXCEEDED, 402)
        if status == 400:
            return AIError("Invalid request", AIErrorCode.INVALID_REQUEST, 400)
        if status == 503:
            return AIError("Service temporarily unavailable", AIErrorCode.SERVICE_UNAVAILABLE,
                           503, retryable=True, retry_after=DEFAULT_TRANSIENT_WAIT)
        return AIError(str(error) or "Unknown error", AIErrorCode.UNKNOWN, status,
                       retryable=status >= 500)

    if isinstance(error, requests.Timeout):
        return AIError("Request timeout", AIErrorCode.TIMEOUT, 408,
                       retryable=True, retry_after=DEFAULT_TRANSIENT_WAIT)
    if isinstance(error, requests.ConnectionError):
        return AIError("Language model service unreachable", AIErrorCode.SERVICE_UNAVAILABLE,
                       503, retryable=True, retry_after=DEFAULT_TRANSIENT_WAIT)

    return AIError(str(error) or "Unknown error", AIErrorCode.UNKNOWN, 500)


class RetryHandler:
    """
    Retries a callable on retryable AIErrors with exponential backoff.

    A server-supplied ``retry_after`` takes precedence over the computed
    delay; every wait is capped at ``max_delay`` seconds.
    """

    def __init__(self, max_retries: int = 3, initial_delay: float = 1.0,
                 max_delay: float = 10.0, backoff_multiplier: float = 2.0,
                 sleep: Callable[[float], Any] = time.sleep):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self._sleep = sleep

    def execute(self, fn: Callable[[], T],
                on_retry: Optional[Callable[[int, AIError], None]] = None) -> T:
        delay = self.initial_delay

        for attempt in range(self.max_retries + 1):
            try:
                return fn()
            except Exception as e:
                error = classify_error(e)
                if not error.retryable or attempt == self.max_retries:
                    if error is not e:
                        raise error from e
                    raise

                wait = min(error.retry_after or delay, self.max_delay)
                logger.warning(f"Attempt {attempt + 1} failed ({error.code.value}), "
                               f"retrying in {wait:.1f}s")
                if on_retry:
                    on_retry(attempt + 1, error)
                self._sleep(wait)

                delay = min(delay * self.backoff_multiplier, self.max_delay)

        raise AIError("Max retries exceeded", AIErrorCode.UNKNOWN)
