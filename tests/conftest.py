"""
Pytest configuration and shared fixtures.

Most engine tests run on a stacked shoe: `stack("AH KD 9C 7S")` gives the
exact card order to deal, followed by filler so the shoe never runs dry.
Remember the deal order: each seat gets two cards in seat order, then the
dealer gets two; action draws follow, then dealer draws.
"""

import random

import pytest

from cutcard.blackjack.bank import Bank, House
from cutcard.blackjack.game import Game
from cutcard.blackjack.round import PlayerRoundInfo, Round
from cutcard.blackjack.rules import RuleSet
from cutcard.common.card import parse_cards
from cutcard.common.shoe import Shoe

# Twos never change who wins the hands above them, and there are enough of
# them to feed any dealer draw a test forgets to stack
FILLER = "2C " * 30


def pytest_configure(config):
    config.addinivalue_line("markers", "insurance: insurance phase scenarios")
    config.addinivalue_line("markers", "split: split scenarios")
    config.addinivalue_line("markers", "statistical: seeded statistical checks")


def stacked(codes: str, filler: bool = True):
    return parse_cards(codes + (" " + FILLER if filler else ""))


@pytest.fixture
def stack():
    return stacked


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def make_round():
    """Build a Round on a stacked shoe with one bank per bet."""

    def _make(codes, bets=(100,), rules=None, bankroll=1000, emitter=None):
        rules = rules or RuleSet()
        shoe = Shoe(1, 0.75, test_stack=stacked(codes))
        house = House(100_000)
        banks = [Bank(f"p{i + 1}", bankroll) for i in range(len(bets))]
        info = [
            PlayerRoundInfo(bank.owner_id, bank, bet) for bank, bet in zip(banks, bets)
        ]
        round_ = Round(1, info, shoe, rules, emitter=emitter, house=house)
        return round_, banks, house

    return _make


@pytest.fixture
def make_game():
    """Build a Game on a stacked shoe with one seated player."""

    def _make(codes, rules=None, bankroll=1000, **kwargs):
        game = Game(
            deck_count=1,
            starting_house_bankroll=100_000,
            rules=rules,
            test_stack=stacked(codes),
            **kwargs,
        )
        player = game.add_player("Alice", bankroll)
        return game, player

    return _make
