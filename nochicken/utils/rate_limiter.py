"""
Per-user request and token budget for language model calls
"""

import math
import threading
import time
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough estimate: one token per four characters"""
    return math.ceil(len(text) / 4)


@dataclass
class UserUsage:
    requests: int
    tokens: int
    window_start: float
    last_request: float


@dataclass
class LimitCheck:
    """Outcome of a rate limit check; ``reset_at`` is a clock timestamp"""
    allowed: bool
    remaining: int
    reset_at: float
    reason: Optional[str] = None


class RateLimiter:
    """
    Fixed-window limiter keyed by user id.

    Each user gets ``max_requests`` calls and, when ``max_tokens`` is set, a
    token budget per ``window_seconds``. Entries idle for two windows are
    dropped by ``cleanup()``.
    """

    def __init__(self, max_requests: int = 100, window_seconds: float = 3600,
                 max_tokens: Optional[int] = None,
                 clock: Callable[[], float] = time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_tokens = max_tokens
        self.clock = clock
        self.usage: Dict[str, UserUsage] = {}
        self._lock = threading.RLock()

    def check_limit(self, user_id: str, token_estimate: int = 0) -> LimitCheck:
        """Count one request against the user's window if it fits"""
        now = self.clock()
        with self._lock:
            usage = self.usage.get(user_id) or UserUsage(0, 0, now, now)

            if now - usage.window_start > self.window_seconds:
                usage.requests = 0
                usage.tokens = 0
                usage.window_start = now

            reset_at = usage.window_start + self.window_seconds

            if usage.requests >= self.max_requests:
                return LimitCheck(False, 0, reset_at, "Request limit exceeded")

            if self.max_tokens and usage.tokens + token_estimate > self.max_tokens:
                return LimitCheck(False, self.max_requests - usage.requests, reset_at,
                                  "Token limit exceeded")

            usage.requests += 1
            usage.tokens += token_estimate
            usage.last_request = now
            self.usage[user_id] = usage

            return LimitCheck(True, self.max_requests - usage.requests, reset_at)

    def get_usage(self, user_id: str) -> Optional[UserUsage]:
        return self.usage.get(user_id)

    def reset(self, user_id: str) -> None:
        with self._lock:
            self.usage.pop(user_id, None)

    def cleanup(self) -> int:
        """Drop users with no request in the last two windows"""
        now = self.clock()
        with self._lock:
            stale = [
                user_id for user_id, usage in list(self.usage.items())
                if now - usage.last_request > self.window_seconds * 2
            ]
            for user_id in stale:
                del self.usage[user_id]

        if stale:
            logger.debug(f"Dropped rate limit usage for {len(stale)} user(s)")
        return len(stale)
