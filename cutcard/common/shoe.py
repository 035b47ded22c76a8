import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from cutcard.common.card import Card
from cutcard.common.deck import new_decks
from cutcard.common.errors import ShoeExhaustedError
from cutcard.common.shuffle import shuffle_shoe

logger = logging.getLogger(__name__)


def new_shoe_stack(
    num_decks: int,
    penetration: float = 0.75,
    test_stack: Optional[List[Card]] = None,
    rng: Optional[random.Random] = None,
) -> List[Card]:
    """
    Build the card stack for a new shoe.

    :param num_decks: Number of 52-card decks to combine.
    :param penetration: Fraction of the shoe meant to be dealt (0-1); the shoe
                        is cut opposite this point.
    :param test_stack: Fixed card order to use verbatim instead of shuffling.
    :param rng: Optional random source for the shuffle.
    :return: The ordered stack, front card dealt first.
    """
    if test_stack is not None:
        return list(test_stack)

    return shuffle_shoe(new_decks(num_decks), desired_penetration=penetration * 100, rng=rng)


class Shoe:
    """
    A multi-deck card source with a cut card.

    Cards are drawn from the front of the stack. Once the cut card comes out
    the shoe is marked complete; the round in progress may keep drawing, but
    any round started afterwards may not.
    """

    def __init__(
        self,
        num_decks: int = 6,
        penetration: float = 0.75,
        test_stack: Optional[List[Card]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize a Shoe instance.

        :param num_decks: Number of decks to use in the shoe (default is 6)
        :param penetration: Fraction of cards to deal before reshuffling (default is 75%)
        :param test_stack: Optional fixed card order that bypasses shuffling
        :param rng: Optional random source used for shuffling
        """
        if num_decks < 1:
            raise ValueError("Number of decks must be at least 1")
        if not 0 < penetration <= 1:
            raise ValueError("Penetration must be between 0 and 1")

        self.num_decks = num_decks
        self._penetration = penetration
        self._rng = rng
        self._stack: List[Card] = new_shoe_stack(num_decks, penetration, test_stack, rng)
        self._discard_pile: List[Card] = []
        self._cut_card_position = int(len(self._stack) * (1 - penetration))
        self._dealt_count = 0
        self._complete = False
        self._round_completed: Optional[int] = None
        self._current_round = 0

    def start_next_round(self) -> int:
        """Advance the round counter and return the new round number."""
        self._current_round += 1
        return self._current_round

    def draw_card(self) -> Card:
        """
        Draw the next card.

        When the stack runs out mid-round the discard pile is shuffled back
        in and the shoe is marked complete.

        :raises ShoeExhaustedError: If the shoe completed in an earlier round,
            or no cards are left anywhere.
        """
        if self._complete and self._current_round != self._round_completed:
            logger.warning(
                "Draw refused: shoe completed in round %s, now round %s",
                self._round_completed,
                self._current_round,
            )
            raise ShoeExhaustedError("Shoe is complete, cannot draw more cards.")
        if not self._stack:
            if not self._discard_pile:
                raise ShoeExhaustedError("Shoe is empty, cannot draw more cards.")
            self._reshuffle_discards()

        if not self._complete and len(self._stack) <= self._cut_card_position:
            self._complete = True
            self._round_completed = self._current_round
            logger.info(
                "Cut card reached in round %d after %d cards",
                self._current_round,
                self._dealt_count,
            )

        card = self._stack.pop(0)
        self._dealt_count += 1
        return card

    def _reshuffle_discards(self) -> None:
        logger.warning(
            "Shoe ran out in round %d, reshuffling %d discarded cards",
            self._current_round,
            len(self._discard_pile),
        )
        self._stack = shuffle_shoe(
            self._discard_pile, desired_penetration=self._penetration * 100, rng=self._rng
        )
        self._discard_pile = []
        if not self._complete:
            self._complete = True
            self._round_completed = self._current_round

    def can_draw(self, count: int = 1) -> bool:
        """Whether `count` more cards can be drawn in the current round."""
        if self._complete and self._current_round != self._round_completed:
            return False
        return len(self._stack) + len(self._discard_pile) >= count

    def deal(self, num_players: int = 1) -> Tuple[List[List[Card]], List[Card]]:
        """
        Start a new round and deal the opening cards.

        Each seat receives its two cards in seat order, then the dealer gets
        two. With one player the order is player, player, dealer, dealer.

        :param num_players: Number of player hands to deal.
        :return: A tuple of (player hands, dealer hand).
        """
        if num_players < 1:
            raise ValueError("At least one player hand must be dealt")

        self.start_next_round()
        needed = 2 * (num_players + 1)
        if not self.can_draw(needed):
            raise ShoeExhaustedError(f"Not enough cards left to deal {needed}")
        player_hands = [[self.draw_card(), self.draw_card()] for _ in range(num_players)]
        dealer_hand = [self.draw_card(), self.draw_card()]
        return player_hands, dealer_hand

    def discard(self, cards: List[Card]) -> None:
        """Put used cards on the discard pile."""
        self._discard_pile.extend(cards)

    @property
    def remaining_cards(self) -> int:
        return len(self._stack)

    @property
    def discarded_cards(self) -> int:
        return len(self._discard_pile)

    @property
    def discard_pile(self) -> List[Card]:
        return list(self._discard_pile)

    @property
    def total_cards(self) -> int:
        """Cards still in the shoe plus cards on the discard pile."""
        return self.remaining_cards + self.discarded_cards

    @property
    def penetration(self) -> float:
        return self._penetration

    @property
    def cut_card_position(self) -> int:
        """Number of cards left in the shoe when the cut card is reached."""
        return self._cut_card_position

    @property
    def dealt_count(self) -> int:
        return self._dealt_count

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def current_round(self) -> int:
        return self._current_round

    @property
    def round_completed(self) -> Optional[int]:
        return self._round_completed

    def stats(self) -> Dict[str, Any]:
        """Return shoe statistics as a dictionary."""
        return {
            "remaining_cards": self.remaining_cards,
            "discarded_cards": self.discarded_cards,
            "total_cards": self.total_cards,
            "cut_card_position": self._cut_card_position,
            "dealt_count": self._dealt_count,
            "penetration": self._penetration,
            "is_complete": self._complete,
            "current_round": self._current_round,
            "round_completed": self._round_completed,
        }

    def __str__(self) -> str:
        return f"Shoe with {self.remaining_cards} cards remaining"

    def __repr__(self) -> str:
        return f"Shoe(num_decks={self.num_decks}, penetration={self._penetration})"
