"""
Blackjack hands.

Hand value is computed by one function, `hand_value`, shared by the two hand
types: `PlayerHand` (a bet with its own state and split history) and
`DealerHand` (an up-card and a hole card). Both are plain dataclasses owned
by a round; consumers should read them through snapshots rather than
mutating them.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional

from cutcard.common.card import Card, Rank

BLACKJACK = 21


class HandValue(NamedTuple):
    total: int
    is_soft: bool

    @property
    def is_bust(self) -> bool:
        return self.total > BLACKJACK


def hand_value(cards: Iterable[Card]) -> HandValue:
    """
    Calculate the optimal value of a set of cards.

    Aces start at 11 and are downgraded to 1, one at a time, while the total
    is over 21. The hand is soft when an ace is still counted as 11.
    """
    total = 0
    high_aces = 0
    for card in cards:
        if card.rank is Rank.ACE:
            high_aces += 1
        total += card.rank.rank_value

    while total > BLACKJACK and high_aces:
        total -= 10
        high_aces -= 1

    return HandValue(total, high_aces > 0)


class HandState(Enum):
    """Lifecycle of a player hand."""

    PLAYING = "playing"
    STOOD = "stood"
    BUSTED = "busted"
    DOUBLED = "doubled"
    SURRENDERED = "surrendered"
    BLACKJACK = "blackjack"
    WON = "won"
    LOST = "lost"
    PUSHED = "pushed"


@dataclass
class PlayerHand:
    """
    One player hand in a round.

    Attributes:
        player_id: Owner of the bet
        bet_amount: Current stake (doubles on a double down)
        cards: Cards held, in the order received
        state: Current HandState
        seat: Index of the bet this hand came from
        is_split: Whether the hand was created by a split
        is_split_ace: Whether the hand is one of a pair of split aces
        split_count: Number of splits in this hand's history
        actions_taken: Actions played on this hand so far
        insurance_offered: Whether insurance was offered on this hand
        insurance_amount: Insurance stake, 0 when none was taken
        insurance_declined: Whether the player refused insurance
        id: Unique identifier for this hand
    """

    player_id: str
    bet_amount: float
    cards: List[Card] = field(default_factory=list)
    state: HandState = HandState.PLAYING
    seat: int = 0
    is_split: bool = False
    is_split_ace: bool = False
    split_count: int = 0
    actions_taken: List[str] = field(default_factory=list)
    insurance_offered: bool = False
    insurance_amount: float = 0.0
    insurance_declined: bool = False
    id: str = field(default_factory=lambda: f"hand-{uuid.uuid4()}")

    @property
    def value(self) -> int:
        return hand_value(self.cards).total

    @property
    def is_soft(self) -> bool:
        return hand_value(self.cards).is_soft

    @property
    def is_bust(self) -> bool:
        return self.value > BLACKJACK

    @property
    def is_blackjack(self) -> bool:
        """A natural: two cards totalling 21 on a hand that was never split."""
        return (
            len(self.cards) == 2
            and not self.is_split
            and self.split_count == 0
            and self.value == BLACKJACK
        )

    @property
    def is_pair(self) -> bool:
        return len(self.cards) == 2 and self.cards[0].rank is self.cards[1].rank

    @property
    def can_split(self) -> bool:
        """Whether the cards form a splittable pair; table limits are checked by the rules."""
        return self.is_pair

    @property
    def has_insurance(self) -> bool:
        return self.insurance_amount > 0

    @property
    def is_playing(self) -> bool:
        return self.state is HandState.PLAYING

    def add_card(self, card: Card) -> None:
        self.cards.append(card)

    def __str__(self) -> str:
        return ", ".join(str(card) for card in self.cards)


@dataclass
class DealerHand:
    """
    The dealer's hand. The first card is the up-card; the second stays hidden
    until `reveal` is called.
    """

    cards: List[Card] = field(default_factory=list)
    revealed: bool = False

    @property
    def up_card(self) -> Optional[Card]:
        return self.cards[0] if self.cards else None

    @property
    def hole_card(self) -> Optional[Card]:
        return self.cards[1] if len(self.cards) > 1 else None

    @property
    def visible_cards(self) -> List[Card]:
        if self.revealed:
            return list(self.cards)
        return self.cards[:1]

    @property
    def value(self) -> int:
        return hand_value(self.cards).total

    @property
    def is_soft(self) -> bool:
        return hand_value(self.cards).is_soft

    @property
    def is_bust(self) -> bool:
        return self.value > BLACKJACK

    @property
    def is_blackjack(self) -> bool:
        return len(self.cards) == 2 and self.value == BLACKJACK

    @property
    def shows_ace(self) -> bool:
        return self.up_card is not None and self.up_card.rank is Rank.ACE

    @property
    def shows_ten(self) -> bool:
        return self.up_card is not None and self.up_card.rank.is_ten_valued

    def reveal(self) -> Card:
        self.revealed = True
        return self.hole_card

    def add_card(self, card: Card) -> None:
        self.cards.append(card)

    def __str__(self) -> str:
        return ", ".join(str(card) for card in self.visible_cards)
