"""
Casino-style shuffling of card stacks.

These functions model how a dealer actually shuffles a multi-deck shoe rather
than producing a uniformly random permutation:

- `riffle_shuffle_stack`: an imperfect human riffle. The stack is split near
  (but rarely exactly at) the middle and the halves are interleaved in short
  runs of one to four cards.
- `overhand_shuffle_stack`: small packets are peeled off the top and dropped
  onto the new pile, so earlier packets end up nearer the bottom.
- `cut_stack_at_penetration`: rotates a stack so a chosen share of it moves
  from the front to the back.
- `shuffle_shoe`: the full procedure used for a shoe. Each 52-card chunk gets
  three riffles and one overhand shuffle, the chunks are stacked back up, and
  the result is cut opposite the desired penetration.

Every function is pure: the input stack is never modified and the output is a
permutation of it. Randomness comes from an optional `random.Random` so that
callers can reproduce a shuffle by seeding it.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

from cutcard.common.card import Card
from cutcard.common.deck import DECK_SIZE
from cutcard.common.util import weighted_choice

logger = logging.getLogger(__name__)

DEFAULT_DESIRED_PENETRATION = 75
RIFFLES_PER_CHUNK = 3

# Where the dealer splits the stack, as a fraction of its length.
_SPLIT_FRACTIONS = (0.4, 0.42, 0.45, 0.5, 0.55, 0.6)
_SPLIT_WEIGHTS = (0.1, 0.2, 0.4, 0.2, 0.1, 0.01)

# Length of each run dropped from one half during a riffle.
_INTERLEAVE_LENGTHS = (1, 2, 3, 4)
_INTERLEAVE_WEIGHTS = (0.6, 0.15, 0.15, 0.1)

# Packet size taken off the top during an overhand shuffle.
_OVERHAND_SIZES = tuple(range(1, 11))
_OVERHAND_WEIGHTS = (0.2, 0.2, 0.15, 0.1, 0.1, 0.08, 0.07, 0.05, 0.03, 0.02)

# Random cut: a triangle over 0-199 peaking at 100. Draws above 100 are
# clamped to 100, so about half of all random cuts land at exactly 100.
_PENETRATION_CHOICES = tuple(range(0, 200))
_PENETRATION_WEIGHTS = tuple((i if i <= 100 else 200 - i) * 0.01 for i in _PENETRATION_CHOICES)


@dataclass(frozen=True)
class CutResult:
    """Outcome of cutting a stack."""

    stack: List[Card]
    penetration: float
    cut_position: int


def random_interleave_length(remaining: int, rng: Optional[random.Random] = None) -> int:
    """
    Number of cards to drop from one half during a riffle.

    :param remaining: Cards left in that half.
    :return: A run length between 1 and 4 (weighted toward 1), capped at
             `remaining`; 0 when the half is empty.
    """
    if remaining <= 0:
        return 0
    length = weighted_choice(_INTERLEAVE_LENGTHS, _INTERLEAVE_WEIGHTS, rng)
    return min(length, remaining)


def riffle_shuffle_stack(stack: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """
    Perform a single realistic riffle shuffle.

    :param stack: Cards to shuffle; not modified.
    :param rng: Optional random source.
    :return: A new, shuffled list of cards.
    """
    fraction = weighted_choice(_SPLIT_FRACTIONS, _SPLIT_WEIGHTS, rng)
    middle = int(len(stack) * fraction)
    first_half = list(stack[:middle])
    second_half = list(stack[middle:])
    shuffled: List[Card] = []

    while first_half or second_half:
        take_first = random_interleave_length(len(first_half), rng)
        take_second = random_interleave_length(len(second_half), rng)

        shuffled.extend(first_half[:take_first])
        shuffled.extend(second_half[:take_second])

        del first_half[:take_first]
        del second_half[:take_second]

    return shuffled


def overhand_shuffle_stack(stack: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """
    Perform an overhand shuffle.

    Packets of 1-10 cards (weighted toward small packets) are taken from the
    top of the remaining stack and placed on top of the new pile.

    :param stack: Cards to shuffle; not modified.
    :param rng: Optional random source.
    :return: A new, shuffled list of cards.
    """
    remaining = list(stack)
    shuffled: List[Card] = []

    while remaining:
        size = min(weighted_choice(_OVERHAND_SIZES, _OVERHAND_WEIGHTS, rng), len(remaining))
        packet = remaining[:size]
        del remaining[:size]
        shuffled[0:0] = packet

    return shuffled


def cut_stack_at_penetration(
    stack: List[Card],
    penetration: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> CutResult:
    """
    Cut the stack so that `penetration` percent of it moves from the front to
    the back.

    :param stack: Cards to cut; not modified.
    :param penetration: Percentage in [0, 100]; values outside are clamped.
                        When omitted a random, high-weighted value is used.
    :param rng: Optional random source for the random penetration.
    :return: The cut stack together with the penetration and cut position used.
    """
    if penetration is None:
        penetration = weighted_choice(_PENETRATION_CHOICES, _PENETRATION_WEIGHTS, rng)
    penetration = min(max(penetration, 0), 100)
    cut_position = int((penetration / 100) * len(stack))
    return CutResult(
        stack=list(stack[cut_position:]) + list(stack[:cut_position]),
        penetration=penetration,
        cut_position=cut_position,
    )


def shuffle_shoe(
    stack: List[Card],
    desired_penetration: float = DEFAULT_DESIRED_PENETRATION,
    rng: Optional[random.Random] = None,
) -> List[Card]:
    """
    Shuffle a complete multi-deck shoe the way a casino dealer does.

    The shoe is broken into deck-sized chunks; each chunk is riffled three
    times and overhand shuffled once. The chunks are reassembled in order and
    the shoe is cut opposite the desired penetration point.

    :param stack: The complete shoe; not modified.
    :param desired_penetration: Percentage of the shoe meant to be dealt.
    :param rng: Optional random source.
    :return: The shuffled shoe.
    """
    chunks: List[List[Card]] = []
    for start in range(0, len(stack), DECK_SIZE):
        chunk = list(stack[start:start + DECK_SIZE])
        for _ in range(RIFFLES_PER_CHUNK):
            chunk = riffle_shuffle_stack(chunk, rng)
        chunks.append(overhand_shuffle_stack(chunk, rng))

    reassembled = [card for chunk in chunks for card in chunk]
    cut = cut_stack_at_penetration(reassembled, 100 - desired_penetration, rng)
    logger.debug(
        "Shuffled %d cards in %d chunks, cut at %d",
        len(reassembled),
        len(chunks),
        cut.cut_position,
    )
    return cut.stack
