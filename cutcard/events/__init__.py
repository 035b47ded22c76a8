"""
Event system for the cutcard engine.

The engine emits `GameEvent` records through an `EventEmitter`; `AuditLogger`
turns them into log lines.
"""

from cutcard.events.audit import AuditLogger
from cutcard.events.emitter import (
    EventEmitter,
    EventPriority,
    EventType,
    GameEvent,
)

__all__ = ["AuditLogger", "EventEmitter", "EventPriority", "EventType", "GameEvent"]
