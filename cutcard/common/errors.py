"""
Exceptions raised by the cutcard engine.

Every engine error derives from `BlackjackError` and is raised synchronously
before any state is changed, so callers (terminal front ends, web handlers)
can catch it, show a message and prompt again.
"""


class BlackjackError(Exception):
    """Base class for recoverable engine errors."""


class InsufficientFundsError(BlackjackError):
    """Raised when a player does not have enough money to perform an action."""


class InvalidActionError(BlackjackError):
    """Raised when a player attempts an action that is not currently valid."""


class WrongStateError(BlackjackError):
    """Raised when a method is called in a round or game phase that does not allow it."""


class ShoeExhaustedError(BlackjackError):
    """Raised when drawing from a completed shoe in a round started after completion."""


class PlayerNotFoundError(BlackjackError):
    """Raised when a bet or lookup names a player that is not seated."""
