"""
Ordered 52-card decks, the raw material of every shoe.

>>> deck = new_deck()
>>> len(deck)
52
>>> deck[0], deck[-1]
(Card(Suit.HEARTS, Rank.TWO), Card(Suit.SPADES, Rank.ACE))
"""

from typing import List

from cutcard.common.card import Card, Rank, Suit

DECK_SIZE = 52
SUITS = (Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES)
RANKS = tuple(Rank)


def new_deck() -> List[Card]:
    """Return a fresh, ordered deck: suit by suit, two through ace."""
    return [Card(suit, rank) for suit in SUITS for rank in RANKS]


def new_decks(count: int) -> List[Card]:
    """Return `count` ordered decks stacked one after another."""
    if count < 1:
        raise ValueError(f"Deck count must be at least 1, got {count}")
    return [card for _ in range(count) for card in new_deck()]
