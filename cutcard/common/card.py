"""
This module defines the `Suit`, `Rank`, and `Card` classes, which are used to represent playing cards.

- `Suit`: An enum representing the four suits of a standard deck of playing
cards: Hearts, Diamonds, Clubs, and Spades.

- `Rank`: An enum representing the thirteen ranks of a standard deck of playing
cards: Two through Ten, Jack, Queen, King, and Ace. Every rank is a distinct
member; the blackjack value of a rank is exposed by `rank_value`.

- `Card`: An immutable playing card. Cards compare and hash by (rank, suit), so
they can be counted in multisets, and can be parsed from short notation such
as ``"AH"``, ``"10S"`` or ``"Q♣"``.

This module is part of the `cutcard` package, a blackjack simulation engine.
"""

from enum import Enum, unique


@unique
class Suit(Enum):
    """
    Enum for suits in a card deck.
    """

    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"
    SPADES = "♠"

    @property
    def letter(self) -> str:
        """Single-letter code for the suit (H, D, C or S)."""
        return self.name[0]

    def __str__(self) -> str:
        return self.value


@unique
class Rank(Enum):
    """
    Enum for ranks in a card deck.
    """

    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    @property
    def rank_value(self) -> int:
        """The blackjack value of the rank, aces counted high."""
        if self is Rank.ACE:
            return 11
        if self in (Rank.JACK, Rank.QUEEN, Rank.KING):
            return 10
        return int(self.value)

    @property
    def rank_str(self) -> str:
        """A string representation of the rank."""
        return self.value

    @property
    def is_ten_valued(self) -> bool:
        return self.rank_value == 10

    def __str__(self) -> str:
        return self.rank_str


_SUIT_CODES = {suit.letter: suit for suit in Suit}
_SUIT_CODES.update({suit.value: suit for suit in Suit})
_RANK_CODES = {rank.value: rank for rank in Rank}
_RANK_CODES["T"] = Rank.TEN


class Card:
    """
    Class representing a playing card.

    Cards are immutable: rank and suit are fixed at construction.

    >>> card = Card(Suit.HEARTS, Rank.TWO)
    >>> print(card)
    2 of ♥
    >>> Card.parse("AS") == Card(Suit.SPADES, Rank.ACE)
    True
    """

    __slots__ = ("_suit", "_rank")

    def __init__(self, suit: Suit, rank: Rank):
        """
        Initialize a Card instance.

        :param suit: Suit of the card (one of the Suit enums)
        :param rank: Rank of the card (one of the Rank enums)
        """
        if not isinstance(suit, Suit):
            raise TypeError(f"Invalid suit: {suit}")
        if not isinstance(rank, Rank):
            raise TypeError(f"Invalid rank: {rank}")
        object.__setattr__(self, "_suit", suit)
        object.__setattr__(self, "_rank", rank)

    @classmethod
    def parse(cls, text: str) -> "Card":
        """
        Build a card from short notation: rank followed by suit.

        The rank is one of 2-10, T, J, Q, K, A and the suit is a letter
        (H, D, C, S) or a suit symbol.

        :param text: Card notation such as "AH", "10d" or "K♠".
        :return: The parsed Card.
        :raises ValueError: If the notation cannot be parsed.
        """
        token = text.strip().upper()
        if len(token) < 2:
            raise ValueError(f"Invalid card notation: {text!r}")
        rank_code, suit_code = token[:-1], token[-1]
        rank = _RANK_CODES.get(rank_code)
        suit = _SUIT_CODES.get(suit_code)
        if rank is None or suit is None:
            raise ValueError(f"Invalid card notation: {text!r}")
        return cls(suit, rank)

    @property
    def suit(self) -> Suit:
        return self._suit

    @property
    def rank(self) -> Rank:
        return self._rank

    @property
    def value(self) -> int:
        """Blackjack value of the card, aces counted as 11."""
        return self._rank.rank_value

    @property
    def code(self) -> str:
        """Short notation, the inverse of `parse`."""
        return f"{self._rank.rank_str}{self._suit.letter}"

    def __setattr__(self, name, value):
        raise AttributeError("Card is immutable")

    def __delattr__(self, name):
        raise AttributeError("Card is immutable")

    def __eq__(self, other):
        """
        Checks if this card is equal to another card.

        :param other: The other card to compare to.
        :return: True if the cards have the same rank and suit, False otherwise.
        """
        if isinstance(other, Card):
            return self._rank == other._rank and self._suit == other._suit
        return NotImplemented

    def __hash__(self):
        return hash((self._suit, self._rank))

    def __repr__(self) -> str:
        return f"Card(Suit.{self._suit.name}, Rank.{self._rank.name})"

    def __str__(self) -> str:
        return f"{self._rank.rank_str} of {self._suit}"


def parse_cards(*codes: str):
    """
    Parse several card notations into a list of cards.

    Accepts either separate arguments or a single whitespace separated string.

    >>> parse_cards("AH KD")
    [Card(Suit.HEARTS, Rank.ACE), Card(Suit.DIAMONDS, Rank.KING)]
    """
    tokens = []
    for code in codes:
        tokens.extend(code.split())
    return [Card.parse(token) for token in tokens]
