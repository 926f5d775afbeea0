"""
NoChickenLeftBehind conversation layer
======================================

Conversation context for the meal-planning assistant:

- Per-user session state with idle expiry and eviction
- Topic, recent-item and intent tracking
- Context prompts and next-action suggestions
- Retrying language model client
"""

__version__ = "0.1.0"
__author__ = "NoChickenLeftBehind Project"

from .core.assistant import AssistantSystem
from .core.config import Config
from .core.exceptions import NoChickenError
from .session.manager import ConversationContextManager

__all__ = [
    'AssistantSystem',
    'Config',
    'ConversationContextManager',
    'NoChickenError'
]
