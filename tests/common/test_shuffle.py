"""
Tests for casino-style shuffling.

Every shuffle must be a permutation of its input and must leave the input
untouched. The statistical checks use a seeded generator so they are
reproducible.
"""

import random
from collections import Counter

import numpy as np
import pytest

from cutcard.common.deck import new_deck
from cutcard.common.shuffle import (
    CutResult,
    cut_stack_at_penetration,
    overhand_shuffle_stack,
    random_interleave_length,
    riffle_shuffle_stack,
    shuffle_shoe,
)
from cutcard.common.util import weighted_choice


def six_deck_stack():
    return new_deck() * 6


@pytest.mark.parametrize(
    "shuffle",
    [riffle_shuffle_stack, overhand_shuffle_stack, shuffle_shoe],
)
def test_shuffles_conserve_cards(shuffle, seeded_rng):
    stack = six_deck_stack()
    result = shuffle(stack, rng=seeded_rng)
    assert len(result) == len(stack)
    assert Counter(result) == Counter(stack)


@pytest.mark.parametrize(
    "shuffle",
    [riffle_shuffle_stack, overhand_shuffle_stack, shuffle_shoe],
)
def test_shuffles_do_not_mutate_input(shuffle, seeded_rng):
    stack = new_deck()
    original = list(stack)
    shuffle(stack, rng=seeded_rng)
    assert stack == original


def test_cut_conserves_cards_and_does_not_mutate():
    stack = new_deck()
    original = list(stack)
    result = cut_stack_at_penetration(stack, 50)
    assert stack == original
    assert Counter(result.stack) == Counter(stack)


def test_shuffles_are_reproducible_with_a_seed():
    stack = six_deck_stack()
    assert shuffle_shoe(stack, rng=random.Random(99)) == shuffle_shoe(
        stack, rng=random.Random(99)
    )


def test_shuffle_changes_order(seeded_rng):
    stack = new_deck()
    assert riffle_shuffle_stack(stack, seeded_rng) != stack
    assert overhand_shuffle_stack(stack, seeded_rng) != stack


def test_shuffle_handles_empty_and_single_card_stacks(seeded_rng):
    assert riffle_shuffle_stack([], seeded_rng) == []
    assert overhand_shuffle_stack([], seeded_rng) == []
    single = new_deck()[:1]
    assert riffle_shuffle_stack(single, seeded_rng) == single
    assert overhand_shuffle_stack(single, seeded_rng) == single


def test_riffle_keeps_relative_order_within_each_half(seeded_rng):
    stack = new_deck()
    positions = {card: i for i, card in enumerate(stack)}
    result = riffle_shuffle_stack(stack, seeded_rng)

    # A riffle interleaves two packets; it never reorders cards inside one
    original_positions = [positions[card] for card in result]

    def increasing(values):
        return all(a < b for a, b in zip(values, values[1:]))

    assert any(
        increasing([p for p in original_positions if p < split])
        and increasing([p for p in original_positions if p >= split])
        for split in range(len(stack) + 1)
    )


def test_cut_rotates_front_to_back():
    stack = new_deck()
    result = cut_stack_at_penetration(stack, 25)
    assert isinstance(result, CutResult)
    assert result.cut_position == 13
    assert result.penetration == 25
    assert result.stack == stack[13:] + stack[:13]


@pytest.mark.parametrize("penetration,position", [(-10, 0), (0, 0), (100, 52), (150, 52)])
def test_cut_clamps_penetration(penetration, position):
    stack = new_deck()
    result = cut_stack_at_penetration(stack, penetration)
    assert result.cut_position == position
    assert result.stack == stack


def test_random_cut_favours_deep_penetration():
    rng = random.Random(5)
    stack = new_deck()
    values = np.array(
        [cut_stack_at_penetration(stack, rng=rng).penetration for _ in range(3000)]
    )
    assert values.min() >= 0
    assert values.max() <= 100
    # Triangular weights over 0-199 with the upper half clamped to 100:
    # mean 83.3 and just over half of all cuts at exactly 100
    assert abs(values.mean() - 83.3) < 2
    assert abs((values == 100).mean() - 0.505) < 0.04


def test_shuffle_shoe_only_mixes_within_decks(seeded_rng):
    # Chunks are shuffled separately, so after undoing the cut every block of
    # 52 cards is still one complete deck
    stack = six_deck_stack()
    shuffled = shuffle_shoe(stack, desired_penetration=100, rng=seeded_rng)
    for start in range(0, 312, 52):
        assert Counter(shuffled[start:start + 52]) == Counter(new_deck())


def test_random_interleave_length_bounds(seeded_rng):
    assert random_interleave_length(0, seeded_rng) == 0
    for _ in range(200):
        assert 1 <= random_interleave_length(10, seeded_rng) <= 4
        assert random_interleave_length(1, seeded_rng) == 1


@pytest.mark.statistical
def test_weighted_choice_follows_weights():
    rng = random.Random(2024)
    items = ["a", "b", "c"]
    weights = [0.2, 0.3, 0.5]
    draws = 20000
    counts = Counter(weighted_choice(items, weights, rng) for _ in range(draws))

    observed = np.array([counts[item] for item in items], dtype=float)
    expected = np.array(weights) * draws
    chi_square = ((observed - expected) ** 2 / expected).sum()
    # 2 degrees of freedom, p = 0.001 critical value
    assert chi_square < 13.82


@pytest.mark.statistical
def test_shuffles_move_cards_away_from_their_start():
    rng = random.Random(11)
    stack = new_deck()
    index = {card: i for i, card in enumerate(stack)}

    def mean_displacement(shuffled):
        positions = np.array([index[card] for card in shuffled])
        return np.abs(positions - np.arange(len(shuffled))).mean()

    riffles = [mean_displacement(riffle_shuffle_stack(stack, rng)) for _ in range(500)]
    shoes = [
        mean_displacement(shuffle_shoe(stack, desired_penetration=100, rng=rng))
        for _ in range(200)
    ]
    assert np.mean(riffles) > 5
    assert np.mean(shoes) > 8


def test_weighted_choice_validation():
    with pytest.raises(ValueError):
        weighted_choice([], [])
    with pytest.raises(ValueError):
        weighted_choice(["a"], [1, 2])

