"""
Custom exceptions for the NoChickenLeftBehind assistant
"""

from enum import Enum
from typing import Optional


class NoChickenError(Exception):
    """Base exception for the assistant"""
    pass

class ConfigurationError(NoChickenError):
    """Configuration-related errors"""
    pass

class ContextError(NoChickenError):
    """Conversation context misuse (malformed turns, bad keys)"""
    pass

class InvalidPreferenceError(ContextError):
    """Unknown preference key or out-of-domain preference value"""
    pass

class InvalidStateError(ContextError):
    """Unknown state field or wrongly typed state value"""
    pass


class AIErrorCode(str, Enum):
    RATE_LIMIT = "RATE_LIMIT"
    INVALID_API_KEY = "INVALID_API_KEY"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INVALID_REQUEST = "INVALID_REQUEST"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


class AIError(NoChickenError):
    """
    Classified failure of a call to the language model.

    ``retry_after`` is expressed in seconds.
    """

    def __init__(self, message: str, code: AIErrorCode = AIErrorCode.UNKNOWN,
                 status_code: int = 500, retryable: bool = False,
                 retry_after: Optional[float] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return (f"AIError(code={self.code.value}, status_code={self.status_code}, "
                f"retryable={self.retryable}, message={self.message!r})")
