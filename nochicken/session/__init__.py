"""
Per-user conversation context
"""

from .manager import ConversationContextManager
from .models import (
    CommandIntent,
    ConversationTurn,
    Entity,
    EntityType,
    PendingConfirmation,
    Preferences,
    State,
    UserContext,
)
from .scheduler import CleanupScheduler

__all__ = [
    'ConversationContextManager',
    'CleanupScheduler',
    'CommandIntent',
    'ConversationTurn',
    'Entity',
    'EntityType',
    'PendingConfirmation',
    'Preferences',
    'State',
    'UserContext'
]
