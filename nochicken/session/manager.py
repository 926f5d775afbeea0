"""
Per-user conversation context store
"""

import copy
import dataclasses
import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Any, Callable, Optional, Iterable, Mapping
import logging

from .models import (
    ConversationTurn,
    Entity,
    EntityType,
    CommandIntent,
    PendingConfirmation,
    PREFERENCE_DOMAINS,
    SessionData,
    State,
    UserContext,
)
from ..core.exceptions import ContextError, InvalidPreferenceError, InvalidStateError

logger = logging.getLogger(__name__)

_TOPIC_ENTITY_TYPES = (EntityType.INGREDIENT, EntityType.RECIPE)
_STATE_FIELDS = {f.name for f in dataclasses.fields(State)}


class ConversationContextManager:
    """
    Volatile store of conversational context keyed by user id.

    Sessions reset after ``timeout`` seconds of inactivity (checked lazily on
    every read); whole contexts are dropped by ``cleanup()`` once idle for
    ``eviction_age`` seconds. Nothing is persisted, and ``cleanup()`` must be
    scheduled by the embedding process (see ``CleanupScheduler``).
    """

    def __init__(self, session_config: Optional[Dict[str, Any]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        session_config = session_config or {}
        self.contexts: Dict[str, UserContext] = {}
        self.session_timeout = timedelta(seconds=session_config.get('timeout', 1800))
        self.eviction_age = timedelta(seconds=session_config.get('eviction_age', 86400))
        self.max_turns = session_config.get('max_turns', 20)
        self.max_topics = session_config.get('max_topics', 10)
        self.max_recent_items = session_config.get('max_recent_items', 20)
        self.max_frequent_commands = session_config.get('max_frequent_commands', 10)
        self.confirmation_ttl = session_config.get('confirmation_ttl', 300)
        self.clock = clock or datetime.now
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self.contexts)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.contexts

    def get_context(self, user_id: str) -> UserContext:
        """Get the user's context, creating it or resetting an idle session"""
        now = self.clock()
        with self._lock:
            context = self.contexts.get(user_id)
            if context is None:
                context = UserContext.new(user_id, now)
                self.contexts[user_id] = context
                logger.debug(f"Created context for user {user_id!r}")
                return context

        if now - context.current_session.last_activity > self.session_timeout:
            logger.info(f"Session for user {user_id!r} expired, starting a new one")
            self._start_new_session(context, now)

        return context

    def _start_new_session(self, context: UserContext, now: datetime) -> None:
        self._archive_session(context)
        context.current_session = SessionData(start_time=now, last_activity=now)
        context.state = State()

    def _archive_session(self, context: UserContext) -> None:
        """Fold the finished session's intents into the frequency table"""
        counts = dict(context.history.frequent_commands)
        for turn in context.current_session.turns:
            if turn.intent:
                counts[turn.intent] = counts.get(turn.intent, 0) + 1

        # sorted() is stable, so ties keep their first-seen order
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        context.history.frequent_commands = dict(ranked[:self.max_frequent_commands])

    def add_turn(self, user_id: str, turn: Mapping[str, Any]) -> None:
        """
        Record one exchange for the user.

        ``turn`` must carry ``input``, ``response`` and ``confidence``; ``intent``,
        ``entities``, ``action`` and ``action_result`` are optional. The id, owner
        and timestamp are assigned here.
        """
        if not isinstance(turn, Mapping):
            raise ContextError(f"Turn must be a mapping, got {type(turn).__name__}")
        try:
            user_input = turn['input']
            response = turn['response']
            confidence = float(turn['confidence'])
        except KeyError as e:
            raise ContextError(f"Turn is missing required key {e}") from e
        except (TypeError, ValueError) as e:
            raise ContextError(f"Turn confidence must be numeric: {e}") from e

        entities = tuple(Entity.coerce(raw) for raw in (turn.get('entities') or ()))
        intent = turn.get('intent')
        if isinstance(intent, CommandIntent):
            intent = intent.value

        context = self.get_context(user_id)
        now = self.clock()

        complete_turn = ConversationTurn(
            id=f"turn_{uuid.uuid4().hex}",
            user_id=user_id,
            timestamp=now,
            input=user_input,
            response=response,
            confidence=confidence,
            intent=intent,
            entities=entities,
            action=turn.get('action'),
            action_result=turn.get('action_result'),
        )

        session = context.current_session
        session.turns.append(complete_turn)
        session.last_activity = now

        self._extract_topics(complete_turn, context)
        self._update_recent_items(complete_turn, context)

        if len(session.turns) > self.max_turns:
            session.turns = session.turns[-self.max_turns:]

    def _extract_topics(self, turn: ConversationTurn, context: UserContext) -> None:
        topics = context.current_session.topics
        for entity in turn.entities:
            if entity.type in _TOPIC_ENTITY_TYPES:
                topic = entity.value.lower()
                if topic not in topics:
                    topics.append(topic)

        if len(topics) > self.max_topics:
            context.current_session.topics = topics[-self.max_topics:]

    def _update_recent_items(self, turn: ConversationTurn, context: UserContext) -> None:
        recent = context.history.recent_items
        for entity in turn.entities:
            if entity.type == EntityType.INGREDIENT:
                if entity.value in recent:
                    recent.remove(entity.value)
                recent.insert(0, entity.value)

        del recent[self.max_recent_items:]

    def get_recent_turns(self, user_id: str, count: int = 5) -> List[ConversationTurn]:
        """Last ``count`` turns of the current session, oldest first"""
        if count <= 0:
            return []
        context = self.get_context(user_id)
        return list(context.current_session.turns[-count:])

    def get_current_topics(self, user_id: str) -> List[str]:
        context = self.get_context(user_id)
        return list(context.current_session.topics)

    def set_user_preference(self, user_id: str, key: str, value: Any) -> None:
        """Overwrite a single preference after checking it against its domain"""
        if key not in PREFERENCE_DOMAINS:
            raise InvalidPreferenceError(
                f"Unknown preference {key!r}; expected one of {sorted(PREFERENCE_DOMAINS)}"
            )
        allowed = PREFERENCE_DOMAINS[key]
        # bool is a subclass of int, so compare types for the flag
        if key == 'use_emojis':
            valid = isinstance(value, bool)
        else:
            valid = isinstance(value, str) and value in allowed
        if not valid:
            raise InvalidPreferenceError(
                f"Invalid value {value!r} for preference {key!r}; allowed: {list(allowed)}"
            )

        context = self.get_context(user_id)
        setattr(context.preferences, key, value)

    def set_state(self, user_id: str, **fields: Any) -> None:
        """Shallow-merge ``fields`` into the user's state; ``None`` clears a field"""
        unknown = set(fields) - _STATE_FIELDS
        if unknown:
            raise InvalidStateError(
                f"Unknown state field(s) {sorted(unknown)}; expected one of {sorted(_STATE_FIELDS)}"
            )
        if 'shopping_mode' in fields:
            if fields['shopping_mode'] is None:
                fields['shopping_mode'] = False
            elif not isinstance(fields['shopping_mode'], bool):
                raise InvalidStateError("shopping_mode must be a bool")
        for name in ('current_recipe', 'planning_meal'):
            if fields.get(name) is not None and not isinstance(fields[name], str):
                raise InvalidStateError(f"{name} must be a string or None")
        pending = fields.get('awaiting_confirmation')
        if pending is not None and not isinstance(pending, PendingConfirmation):
            raise InvalidStateError("awaiting_confirmation must be a PendingConfirmation or None")

        if pending is not None:
            fields['awaiting_confirmation'] = copy.deepcopy(pending)

        context = self.get_context(user_id)
        context.state = dataclasses.replace(context.state, **fields)

    def get_state(self, user_id: str) -> State:
        """Return a copy of the state; mutate it through ``set_state`` only"""
        context = self.get_context(user_id)
        return copy.deepcopy(context.state)

    def request_confirmation(self, user_id: str, action: str,
                             data: Optional[Dict[str, Any]] = None,
                             ttl_seconds: Optional[float] = None) -> PendingConfirmation:
        """Park an action until the user confirms it or the request expires"""
        ttl = self.confirmation_ttl if ttl_seconds is None else ttl_seconds
        pending = PendingConfirmation(
            action=action,
            data=dict(data or {}),
            expires=self.clock() + timedelta(seconds=ttl),
        )
        self.set_state(user_id, awaiting_confirmation=pending)
        return copy.deepcopy(pending)

    def resolve_confirmation(self, user_id: str) -> Optional[PendingConfirmation]:
        """Pop the pending confirmation, or None if there is none or it expired"""
        context = self.get_context(user_id)
        pending = context.state.awaiting_confirmation
        if pending is None:
            return None

        context.state = dataclasses.replace(context.state, awaiting_confirmation=None)
        if self.clock() > pending.expires:
            logger.info(f"Confirmation for {pending.action!r} expired for user {user_id!r}")
            return None
        return pending

    def generate_context_prompt(self, user_id: str) -> str:
        """Render the user's context as text for the language model"""
        context = self.get_context(user_id)
        recent_turns = context.current_session.turns[-3:]
        state = context.state

        lines = ["User Context:"]

        if recent_turns:
            lines.append("Recent conversation:")
            for turn in recent_turns:
                lines.append(f"- User: {turn.input}")
                lines.append(f"- Assistant: {turn.response}")

        if context.current_session.topics:
            lines.append(f"Current topics: {', '.join(context.current_session.topics)}")

        if state.current_recipe:
            lines.append(f"Currently working with recipe: {state.current_recipe}")
        if state.shopping_mode:
            lines.append("User is in shopping mode")
        if state.planning_meal:
            lines.append(f"Planning meal for: {state.planning_meal}")

        lines.append(f"Communication style: {context.preferences.communication_style}")
        lines.append(f"Response length: {context.preferences.response_length}")

        return "".join(f"{line}\n" for line in lines)

    def suggest_next_actions(self, user_id: str, limit: int = 4) -> List[str]:
        """Heuristic follow-ups, highest priority first"""
        context = self.get_context(user_id)
        rules: Iterable[Callable[[UserContext], List[str]]] = (
            self._suggest_from_intents,
            self._suggest_from_shopping,
            self._suggest_from_time_of_day,
            self._suggest_from_recent_items,
        )

        suggestions: List[str] = []
        for rule in rules:
            if len(suggestions) >= limit:
                break
            suggestions.extend(rule(context))

        return suggestions[:limit]

    def _suggest_from_intents(self, context: UserContext) -> List[str]:
        intents = {turn.intent for turn in context.current_session.turns if turn.intent}
        suggestions = []
        if CommandIntent.ADD_ITEM.value in intents:
            suggestions += ["check what recipes you can make", "view your pantry inventory"]
        if CommandIntent.FIND_RECIPES.value in intents:
            suggestions += ["add missing ingredients to grocery list", "start cooking timer"]
        return suggestions

    def _suggest_from_shopping(self, context: UserContext) -> List[str]:
        if context.state.shopping_mode:
            return ["check off items as you shop", "add items to pantry when done"]
        return []

    def _suggest_from_time_of_day(self, context: UserContext) -> List[str]:
        # Server-local wall clock, not the user's timezone
        hour = self.clock().hour
        if 6 <= hour < 10:
            return ["plan breakfast"]
        if 11 <= hour < 14:
            return ["what's for lunch?"]
        if 16 <= hour < 20:
            return ["plan dinner"]
        return []

    def _suggest_from_recent_items(self, context: UserContext) -> List[str]:
        if context.history.recent_items:
            return [f"find recipes with {context.history.recent_items[0]}"]
        return []

    def cleanup(self) -> int:
        """Evict every context idle for longer than the eviction age"""
        now = self.clock()
        with self._lock:
            stale = [
                user_id for user_id, context in list(self.contexts.items())
                if now - context.current_session.last_activity > self.eviction_age
            ]
            for user_id in stale:
                del self.contexts[user_id]

        if stale:
            logger.info(f"Evicted {len(stale)} idle conversation context(s)")
        return len(stale)
