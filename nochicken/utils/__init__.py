"""
Language model access helpers
"""

from .llm_client import LLMClient
from .rate_limiter import RateLimiter, estimate_tokens
from .retry import RetryHandler, classify_error

__all__ = ['LLMClient', 'RateLimiter', 'RetryHandler', 'classify_error', 'estimate_tokens']
