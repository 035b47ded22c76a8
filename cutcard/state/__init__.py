"""
Immutable state snapshots for the cutcard engine.

Snapshots are frozen copies of the live engine objects, for user interfaces
and persistence.
"""

from cutcard.state.models import (
    DealerSnapshot,
    GameSnapshot,
    HandSnapshot,
    PlayerSnapshot,
    RoundSnapshot,
)

__all__ = [
    "DealerSnapshot",
    "GameSnapshot",
    "HandSnapshot",
    "PlayerSnapshot",
    "RoundSnapshot",
]
