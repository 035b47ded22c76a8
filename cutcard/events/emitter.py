"""
Event system for the cutcard engine.

Every `Game` owns an `EventEmitter`. The engine emits a `GameEvent` for each
step of play (bets, deals, actions, settlement...) which is kept in the
emitter's history and passed to any subscribed handlers. The history can be
exported as JSON or CSV for an external audit trail.
"""

import csv
import io
import json
import logging
import threading
import time
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events emitted during a session."""

    SESSION_START = "session_start"
    SESSION_END = "session_end"
    PLAYER_JOIN = "player_join"
    PLAYER_LEAVE = "player_leave"
    ROUND_START = "round_start"
    BET_PLACED = "bet_placed"
    INITIAL_DEAL = "initial_deal"
    INSURANCE_OFFERED = "insurance_offered"
    INSURANCE_DECISION = "insurance_decision"
    INSURANCE_RESOLVED = "insurance_resolved"
    PLAYER_ACTION = "player_action"
    HAND_SPLIT = "hand_split"
    DEALER_ACTION = "dealer_action"
    SETTLEMENT = "settlement"
    ROUND_COMPLETE = "round_complete"
    SHUFFLE = "shuffle"


class EventPriority(Enum):
    """Priority levels for event handlers."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


@dataclass
class GameEvent:
    """
    Records a single event in the session with its context.

    Attributes:
        event_type: The type of event
        session_id: Identifier of the game session
        round_number: Round the event belongs to (0 outside a round)
        data: Event payload, JSON-serializable
        event_id: Unique identifier for this event
        timestamp: When the event occurred
    """

    event_type: EventType
    session_id: Optional[str]
    round_number: int
    data: Dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the event to a dictionary for serialization."""
        result = asdict(self)
        result["event_type"] = self.event_type.name
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameEvent":
        data = dict(data)
        data["event_type"] = EventType[data["event_type"]]
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> "GameEvent":
        return cls.from_dict(json.loads(json_str))


def _event_key(event_type: Union[str, EventType]) -> str:
    if isinstance(event_type, Enum):
        return event_type.name
    return str(event_type).upper()


class EventEmitter:
    """
    Event emitter with priority-ordered subscriptions and an event history.

    Handlers registered with `on`/`once` receive the `GameEvent` for one event
    type; handlers registered with `on_any` receive every event. A handler
    that raises is logged and skipped, play is never interrupted.
    """

    def __init__(self, record_history: bool = True):
        self._listeners = defaultdict(list)
        self._global_listeners = []
        self._listener_lock = threading.RLock()

        self._session_id: Optional[str] = None
        self._round_number = 0

        self.record_history = record_history
        self._history: List[GameEvent] = []

    def set_context(self, session_id: Optional[str], round_number: int = 0) -> None:
        """
        Set the context stamped onto emitted events.

        Args:
            session_id: The unique identifier for the game session
            round_number: The number of the current round
        """
        self._session_id = session_id
        self._round_number = round_number

    @staticmethod
    def _insert(handlers: List[Dict[str, Any]], handler: Dict[str, Any]) -> None:
        # Higher priorities first, registration order within a priority
        for i, existing in enumerate(handlers):
            if existing["priority"] < handler["priority"]:
                handlers.insert(i, handler)
                return
        handlers.append(handler)

    @staticmethod
    def _remove(handlers: List[Dict[str, Any]], callback: Callable) -> None:
        for i, existing in enumerate(handlers):
            if existing["callback"] == callback:
                handlers.pop(i)
                return

    def on(
        self,
        event_type: Union[str, EventType],
        callback: Callable[[GameEvent], Any],
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable[[], None]:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to subscribe to (name or enum)
            callback: Function called with the GameEvent when it occurs
            priority: Priority level for this handler

        Returns:
            Unsubscribe function that removes this subscription
        """
        key = _event_key(event_type)
        handler = {"callback": callback, "priority": priority.value}

        with self._listener_lock:
            self._insert(self._listeners[key], handler)

        def unsubscribe():
            with self._listener_lock:
                self._remove(self._listeners[key], callback)

        return unsubscribe

    def once(
        self,
        event_type: Union[str, EventType],
        callback: Callable[[GameEvent], Any],
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable[[], None]:
        """Subscribe to an event type for a single occurrence."""
        unsubscribe_ref = []

        def one_time_handler(event):
            try:
                callback(event)
            finally:
                if unsubscribe_ref:
                    unsubscribe_ref[0]()

        unsubscribe_ref.append(self.on(event_type, one_time_handler, priority))
        return unsubscribe_ref[0]

    def on_any(
        self,
        callback: Callable[[GameEvent], Any],
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable[[], None]:
        """Subscribe to all events."""
        handler = {"callback": callback, "priority": priority.value}

        with self._listener_lock:
            self._insert(self._global_listeners, handler)

        def unsubscribe():
            with self._listener_lock:
                self._remove(self._global_listeners, callback)

        return unsubscribe

    def emit(
        self, event_type: EventType, data: Optional[Dict[str, Any]] = None
    ) -> GameEvent:
        """
        Emit an event to all registered listeners.

        Args:
            event_type: The type of event to emit
            data: The payload to include with the event

        Returns:
            The recorded GameEvent
        """
        event = GameEvent(
            event_type=event_type,
            session_id=self._session_id,
            round_number=self._round_number,
            data=dict(data or {}),
        )
        if self.record_history:
            self._history.append(event)

        key = _event_key(event_type)
        with self._listener_lock:
            callbacks = [h["callback"] for h in self._listeners.get(key, [])]
            callbacks.extend(h["callback"] for h in self._global_listeners)

        # Call handlers outside of the lock to avoid deadlocks
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event handler for {key}: {e}", exc_info=True)

        return event

    def remove_all_listeners(
        self, event_type: Optional[Union[str, EventType]] = None
    ) -> None:
        """Remove all listeners for one event type, or for all events."""
        with self._listener_lock:
            if event_type is None:
                self._listeners.clear()
                self._global_listeners.clear()
            else:
                self._listeners[_event_key(event_type)].clear()

    @property
    def history(self) -> List[GameEvent]:
        return list(self._history)

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        round_number: Optional[int] = None,
    ) -> List[GameEvent]:
        """Return recorded events, optionally filtered by type and round."""
        events = self._history
        if event_type is not None:
            events = [e for e in events if e.event_type is event_type]
        if round_number is not None:
            events = [e for e in events if e.round_number == round_number]
        return list(events)

    def clear_history(self) -> None:
        self._history.clear()

    def export_json(self) -> str:
        """Dump the event history as a JSON array."""
        return json.dumps([event.to_dict() for event in self._history])

    def export_csv(self) -> str:
        """
        Dump the event history as CSV, one row per event.

        The payload is written as a JSON string in the `data` column.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(
            ["event_id", "timestamp", "event_type", "session_id", "round_number", "data"]
        )
        for event in self._history:
            writer.writerow(
                [
                    event.event_id,
                    event.timestamp,
                    event.event_type.name,
                    event.session_id,
                    event.round_number,
                    json.dumps(event.data),
                ]
            )
        return buffer.getvalue()
