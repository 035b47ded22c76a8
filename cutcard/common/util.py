import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

_default_rng = random.Random()


def resolve_rng(rng: Optional[random.Random] = None) -> random.Random:
    """Return the given RNG, or the shared generator when none is supplied."""
    return rng if rng is not None else _default_rng


def weighted_choice(
    items: Sequence[T], weights: Sequence[float], rng: Optional[random.Random] = None
) -> T:
    """
    Select a random item where the probability of each item is determined by
    its weight relative to the sum of all weights.

    Args:
        items: Candidate items.
        weights: One non-negative weight per item.
        rng: Random source; defaults to a shared module-level generator.

    Returns:
        Selected item.
    """
    if len(items) != len(weights):
        raise ValueError("items and weights must have the same length")
    if not items:
        raise ValueError("Cannot choose from an empty sequence")

    total = sum(weights)
    r = resolve_rng(rng).random() * total
    upto = 0.0

    for item, weight in zip(items, weights):
        upto += weight
        if r < upto:
            return item

    # Fallback in case of rounding errors
    return items[-1]

