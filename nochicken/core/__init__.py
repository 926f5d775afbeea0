"""
Core assistant components
"""

from .assistant import AssistantSystem, AssistantResponse
from .config import Config
from .exceptions import (
    NoChickenError,
    ConfigurationError,
    ContextError,
    InvalidPreferenceError,
    InvalidStateError,
    AIError,
    AIErrorCode
)

__all__ = [
    'AssistantSystem',
    'AssistantResponse',
    'Config',
    'NoChickenError',
    'ConfigurationError',
    'ContextError',
    'InvalidPreferenceError',
    'InvalidStateError',
    'AIError',
    'AIErrorCode'
]
