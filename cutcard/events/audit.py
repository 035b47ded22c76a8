"""
Human-readable audit log of a session.
"""

import logging
import os
from typing import Callable, Optional

from cutcard.events.emitter import EventEmitter, EventPriority, EventType, GameEvent

DISABLE_ENV_VAR = "CUTCARD_DISABLE_LOGGING"

_SUMMARY_EVENTS = {
    EventType.SESSION_START,
    EventType.SESSION_END,
    EventType.ROUND_START,
    EventType.SETTLEMENT,
    EventType.ROUND_COMPLETE,
    EventType.SHUFFLE,
}


def logging_disabled() -> bool:
    return os.environ.get(DISABLE_ENV_VAR, "").lower() in ("1", "true", "yes")


class AuditLogger:
    """Writes every emitted event to the `cutcard.audit` logger."""

    def __init__(self, log_level=logging.INFO):
        self.logger = logging.getLogger("cutcard.audit")
        # Silenced for bulk simulation runs
        if logging_disabled():
            self.logger.setLevel(logging.ERROR)
        else:
            self.logger.setLevel(log_level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

        self._unsubscribe: Optional[Callable[[], None]] = None

    def set_level(self, level):
        self.logger.setLevel(level)

    def attach(self, emitter: EventEmitter) -> None:
        """Start logging the events of `emitter`, detaching from any previous one."""
        self.detach()
        self._unsubscribe = emitter.on_any(self.log_event, EventPriority.LOW)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def log_event(self, event: GameEvent) -> None:
        # Lifecycle events at INFO, play-by-play at DEBUG
        level = logging.INFO if event.event_type in _SUMMARY_EVENTS else logging.DEBUG
        if self.logger.isEnabledFor(level):
            self.logger.log(
                level,
                f"[{event.session_id} r{event.round_number}] "
                f"{event.event_type.value}: {event.data}",
            )
