"""
Assistant orchestrator: the composition root for the conversation layer
"""

import logging
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass

from .config import Config
from .exceptions import AIError, AIErrorCode
from ..session.manager import ConversationContextManager
from ..session.models import Entity
from ..session.scheduler import CleanupScheduler
from ..utils.llm_client import LLMClient
from ..utils.rate_limiter import RateLimiter, estimate_tokens
from ..utils.retry import RetryHandler, classify_error

logger = logging.getLogger(__name__)

@dataclass
class AssistantResponse:
    """Reply to one user message"""
    text: str
    suggestions: List[str]
    topics: List[str]
    turn_count: int

class AssistantSystem:
    """
    Wires configuration, the context store, its cleanup schedule and the
    retrying LLM client together.

    The store is created here once and handed to collaborators; nothing in
    the package keeps a module-level instance.
    """

    def __init__(self, config: Config, llm_client: Optional[LLMClient] = None,
                 context_manager: Optional[ConversationContextManager] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        self.config = config
        self.llm_client = llm_client or LLMClient(config.llm)
        self.context_manager = context_manager or ConversationContextManager(config.session_config)

        limits = config.rate_limit
        if rate_limiter is None and limits.get('enabled', True):
            rate_limiter = RateLimiter(
                max_requests=limits.get('max_requests', 100),
                window_seconds=limits.get('window', 3600),
                max_tokens=limits.get('max_tokens')
            )
        self.rate_limiter = rate_limiter

        self.scheduler = CleanupScheduler(
            self.context_manager,
            interval_seconds=config.session_config.get('cleanup_interval', 3600),
            extra_targets=[self.rate_limiter] if self.rate_limiter is not None else []
        )

        if config.llm.get('enable_retry', True):
            retry = config.retry
            self.retry_handler: Optional[RetryHandler] = RetryHandler(
                max_retries=retry.get('max_retries', 3),
                initial_delay=retry.get('initial_delay', 1.0),
                max_delay=retry.get('max_delay', 10.0),
                backoff_multiplier=retry.get('backoff_multiplier', 2.0)
            )
        else:
            self.retry_handler = None

    def start(self) -> 'AssistantSystem':
        """Start background maintenance"""
        self.scheduler.start()
        logger.info("✓ Assistant started")
        return self

    def shutdown(self) -> None:
        self.scheduler.stop()
        logger.info("Assistant stopped")

    def __enter__(self) -> 'AssistantSystem':
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def reset_rate_limit(self, user_id: str) -> None:
        """Clear a user's usage window"""
        if self.rate_limiter is not None:
            self.rate_limiter.reset(user_id)

    def build_prompt(self, user_id: str, message: str) -> str:
        """Context summary followed by the new user message"""
        prompt = self.context_manager.generate_context_prompt(user_id)
        preferences = self.context_manager.get_context(user_id).preferences
        emoji_rule = "Emojis are welcome" if preferences.use_emojis else "Do not use emojis"
        return f"{prompt}{emoji_rule}\n\nUser: {message}\nAssistant:"

    def respond(self, user_id: str, message: str,
                intent: Optional[str] = None,
                entities: Optional[List[Union[Entity, Dict[str, Any]]]] = None,
                confidence: float = 1.0,
                action: Optional[str] = None,
                action_result: Optional[Dict[str, Any]] = None) -> AssistantResponse:
        """
        Generate a reply to ``message`` and record the exchange.

        Raises AIError when the user is over the rate limit or the model
        call fails after retries; nothing is recorded in either case.
        """
        # Reject malformed entities before spending a model call
        entities = [Entity.coerce(raw) for raw in entities or []]
        prompt = self.build_prompt(user_id, message)
        self._check_rate_limit(user_id, prompt)
        text = self._complete(prompt).strip()

        self.context_manager.add_turn(user_id, {
            'input': message,
            'response': text,
            'confidence': confidence,
            'intent': intent,
            'entities': entities,
            'action': action,
            'action_result': action_result,
        })

        return AssistantResponse(
            text=text,
            suggestions=self.context_manager.suggest_next_actions(user_id),
            topics=self.context_manager.get_current_topics(user_id),
            turn_count=len(self.context_manager.get_recent_turns(
                user_id, self.context_manager.max_turns)),
        )

    def _check_rate_limit(self, user_id: str, prompt: str) -> None:
        if self.rate_limiter is None:
            return

        check = self.rate_limiter.check_limit(user_id, estimate_tokens(prompt))
        if not check.allowed:
            wait = max(0.0, check.reset_at - self.rate_limiter.clock())
            logger.warning(f"Rate limit hit for user {user_id!r}: {check.reason}")
            raise AIError(check.reason or "Rate limit exceeded", AIErrorCode.RATE_LIMIT, 429,
                          retryable=True, retry_after=wait)

    def _complete(self, prompt: str) -> str:
        def call() -> str:
            return self.llm_client.generate(prompt)

        if self.retry_handler is None:
            try:
                return call()
            except Exception as e:
                error = classify_error(e)
                logger.error(f"LLM call failed: {error.code.value} {error.message}")
                if error is e:
                    raise
                raise error from e

        def log_retry(attempt: int, error: AIError) -> None:
            logger.info(f"Retry attempt {attempt} for completion: {error.message}")

        try:
            return self.retry_handler.execute(call, on_retry=log_retry)
        except AIError as e:
            logger.error(f"LLM call failed: {e.code.value} {e.message}")
            raise
