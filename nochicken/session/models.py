"""
Conversation context data model
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List, Mapping, Optional, Tuple, Union

from ..core.exceptions import ContextError


class EntityType(str, Enum):
    """Entity tags produced by the command processor"""
    INGREDIENT = "ingredient"
    QUANTITY = "quantity"
    LOCATION = "location"
    RECIPE = "recipe"
    DATE = "date"
    ACTION = "action"


class CommandIntent(str, Enum):
    ADD_ITEM = "ADD_ITEM"
    REMOVE_ITEM = "REMOVE_ITEM"
    MOVE_ITEM = "MOVE_ITEM"
    CHECK_AVAILABILITY = "CHECK_AVAILABILITY"
    FIND_RECIPES = "FIND_RECIPES"
    CHECK_EXPIRATION = "CHECK_EXPIRATION"
    LIST_ITEMS = "LIST_ITEMS"
    UPDATE_QUANTITY = "UPDATE_QUANTITY"
    ADD_TO_GROCERY = "ADD_TO_GROCERY"
    MEAL_PLAN = "MEAL_PLAN"
    NUTRITION_INFO = "NUTRITION_INFO"
    SUBSTITUTE_INGREDIENT = "SUBSTITUTE_INGREDIENT"
    UNKNOWN = "UNKNOWN"


# Preference name -> allowed values
PREFERENCE_DOMAINS: Dict[str, Tuple[Any, ...]] = {
    'communication_style': ('formal', 'casual', 'concise'),
    'response_length': ('short', 'medium', 'detailed'),
    'use_emojis': (True, False),
}


@dataclass(frozen=True)
class Entity:
    """Typed value extracted from a user utterance"""
    type: EntityType
    value: str
    normalized: Optional[str] = None
    confidence: float = 1.0

    def __post_init__(self):
        try:
            # frozen, so assign through object
            object.__setattr__(self, 'type', EntityType(self.type))
        except ValueError as e:
            raise ContextError(f"Unknown entity type: {self.type!r}") from e
        if not isinstance(self.value, str):
            raise ContextError(f"Entity value must be a string, got {type(self.value).__name__}")

    @classmethod
    def coerce(cls, raw: Union['Entity', Mapping[str, Any]]) -> 'Entity':
        """Build an Entity from a mapping such as {"type": "ingredient", "value": "Milk"}"""
        if isinstance(raw, Entity):
            return raw
        if not isinstance(raw, Mapping):
            raise ContextError(f"Entity must be an Entity or a mapping, got {type(raw).__name__}")
        try:
            entity_type = raw['type']
            value = raw['value']
            confidence = float(raw.get('confidence', 1.0))
        except KeyError as e:
            raise ContextError(f"Entity is missing required key {e}") from e
        except (TypeError, ValueError) as e:
            raise ContextError(f"Entity confidence must be numeric: {e}") from e
        return cls(
            type=entity_type,
            value=value,
            normalized=raw.get('normalized'),
            confidence=confidence,
        )


@dataclass(frozen=True)
class ConversationTurn:
    """Record of a single user/assistant exchange"""
    id: str
    user_id: str
    timestamp: datetime
    input: str
    response: str
    confidence: float
    intent: Optional[str] = None
    entities: Tuple[Entity, ...] = ()
    action: Optional[str] = None
    action_result: Optional[Dict[str, Any]] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class SessionData:
    start_time: datetime
    last_activity: datetime
    turns: List[ConversationTurn] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)


@dataclass
class Preferences:
    communication_style: str = 'casual'
    response_length: str = 'medium'
    use_emojis: bool = False


@dataclass
class History:
    """Long-lived per-user history; survives session resets"""
    frequent_commands: Dict[str, int] = field(default_factory=dict)
    recent_items: List[str] = field(default_factory=list)
    favorite_recipes: List[str] = field(default_factory=list)
    common_meal_times: Dict[str, datetime] = field(default_factory=dict)


@dataclass
class PendingConfirmation:
    """An agent action waiting for an explicit yes from the user"""
    action: str
    data: Dict[str, Any]
    expires: datetime


@dataclass
class State:
    """Transient, session-scoped flags"""
    current_recipe: Optional[str] = None
    shopping_mode: bool = False
    planning_meal: Optional[str] = None
    awaiting_confirmation: Optional[PendingConfirmation] = None


@dataclass
class UserContext:
    user_id: str
    current_session: SessionData
    preferences: Preferences = field(default_factory=Preferences)
    history: History = field(default_factory=History)
    state: State = field(default_factory=State)

    @classmethod
    def new(cls, user_id: str, now: datetime) -> 'UserContext':
        return cls(user_id=user_id, current_session=SessionData(start_time=now, last_activity=now))
