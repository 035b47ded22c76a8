"""Defines the Action enum for the possible actions a player can take on a blackjack hand."""
from enum import Enum
from typing import Union


class Action(Enum):
    """Enum for the possible actions a player can take in a game of blackjack."""

    HIT = "hit"
    STAND = "stand"
    DOUBLE = "double"
    SPLIT = "split"
    SURRENDER = "surrender"

    @classmethod
    def coerce(cls, action: Union["Action", str]) -> "Action":
        """
        Accept an Action or its string value ("hit", "STAND", ...).

        :raises ValueError: If the string names no action.
        """
        if isinstance(action, cls):
            return action
        try:
            return cls(str(action).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown action: {action!r}") from None

    def __str__(self) -> str:
        return self.value
