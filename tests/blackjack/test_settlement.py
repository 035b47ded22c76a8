"""
Settlement tests.

Bets are already with the house when settlement runs, so each test starts by
moving the bet to the house the way a round does.
"""

import pytest

from cutcard.blackjack.bank import Bank, House, transfer
from cutcard.blackjack.hand import DealerHand, HandState, PlayerHand
from cutcard.blackjack.rules import RuleSet
from cutcard.blackjack.settlement import (
    Outcome,
    SettlementResult,
    calculate_payout,
    determine_outcome,
    evaluate_hand,
    settle_hand,
    settle_round,
)
from cutcard.common.card import parse_cards
from cutcard.common.errors import InsufficientFundsError


def player(codes, bet=100, **kwargs):
    return PlayerHand(player_id="alice", bet_amount=bet, cards=parse_cards(codes), **kwargs)


def dealer(codes):
    return DealerHand(parse_cards(codes), revealed=True)


@pytest.fixture
def banks():
    return Bank("alice", 1000), House(10_000)


def place(hand, bank, house):
    transfer(bank, house, hand.bet_amount)
    return hand


class TestDetermineOutcome:
    @pytest.mark.parametrize(
        "player_codes,dealer_codes,outcome",
        [
            ("AH KD", "10C 7S", Outcome.BLACKJACK),
            ("AH KD", "AC QS", Outcome.PUSH),
            ("10H 9D", "AC QS", Outcome.LOSE),
            ("7H 7D 7C", "AC QS", Outcome.LOSE),
            ("10H 9D", "10C 7S", Outcome.WIN),
            ("10H 8D", "10C 8S", Outcome.PUSH),
            ("10H 7D", "10C 9S", Outcome.LOSE),
            ("10H 7D", "10C 6S 9D", Outcome.WIN),
            ("10H 7D 9C", "10C 6S 9D", Outcome.LOSE),
            ("7H 7D 7C", "10C 6S 5D", Outcome.PUSH),
        ],
    )
    def test_outcomes(self, player_codes, dealer_codes, outcome):
        assert determine_outcome(player(player_codes), dealer(dealer_codes)) is outcome

    def test_surrender(self):
        hand = player("10H 6D", state=HandState.SURRENDERED)
        assert determine_outcome(hand, dealer("10C 9S")) is Outcome.SURRENDER

    def test_split_twenty_one_is_a_plain_win(self):
        hand = player("AH KD", is_split=True, split_count=1)
        assert determine_outcome(hand, dealer("10C 7S")) is Outcome.WIN


class TestCalculatePayout:
    @pytest.mark.parametrize(
        "outcome,payout",
        [
            (Outcome.BLACKJACK, 250),
            (Outcome.WIN, 200),
            (Outcome.PUSH, 100),
            (Outcome.LOSE, 0),
            (Outcome.SURRENDER, 50),
        ],
    )
    def test_payouts(self, outcome, payout):
        assert calculate_payout(100, outcome, RuleSet()) == payout

    def test_six_to_five(self):
        assert calculate_payout(100, Outcome.BLACKJACK, RuleSet(blackjack_payout=(6, 5))) == 220


class TestSettleHand:
    @pytest.mark.parametrize(
        "player_codes,dealer_codes,profit,state",
        [
            ("AH KD", "10C 7S", 150, HandState.BLACKJACK),
            ("10H 9D", "10C 7S", 100, HandState.WON),
            ("10H 8D", "10C 8S", 0, HandState.PUSHED),
            ("10H 7D", "10C 9S", -100, HandState.LOST),
        ],
    )
    def test_profit_and_balances(self, banks, player_codes, dealer_codes, profit, state):
        bank, house = banks
        hand = place(player(player_codes), bank, house)

        result = settle_hand(hand, 0, dealer(dealer_codes), bank, house, RuleSet())

        assert result.profit == profit
        assert result.payout == 100 + profit
        assert hand.state is state
        assert bank.balance == 1000 + profit
        assert house.balance == 10_000 - profit
        assert house.profit_loss == -profit

    def test_surrender_only_records(self, banks):
        bank, house = banks
        hand = place(player("10H 6D"), bank, house)
        # Half the bet comes back when the player surrenders
        transfer(house, bank, 50)
        hand.state = HandState.SURRENDERED

        result = settle_hand(hand, 0, dealer("10C 9S"), bank, house, RuleSet())

        assert result.outcome is Outcome.SURRENDER
        assert result.payout == 50
        assert result.profit == -50
        assert bank.balance == 950
        assert house.profit_loss == 50
        assert hand.state is HandState.SURRENDERED

    def test_doubled_hand_uses_doubled_bet(self, banks):
        bank, house = banks
        hand = place(player("5H 6D 10C", bet=200, state=HandState.DOUBLED), bank, house)
        result = settle_hand(hand, 0, dealer("10C 7S"), bank, house, RuleSet())
        assert result.profit == 200
        assert result.bet_amount == 200
        assert bank.balance == 1200

    def test_result_fields(self, banks):
        bank, house = banks
        hand = place(player("10H 9D"), bank, house)
        result = settle_hand(hand, 3, dealer("10C 7S"), bank, house, RuleSet())
        assert result == SettlementResult(
            hand_index=3,
            outcome=Outcome.WIN,
            payout=200,
            profit=100,
            player_value=19,
            dealer_value=17,
            player_id="alice",
            bet_amount=100,
        )
        assert result.to_dict()["outcome"] == "win"


def test_settle_round_keeps_hand_order(banks):
    bank, house = banks
    hands = [place(player("10H 9D"), bank, house), place(player("10C 5D 2S", bet=50), bank, house)]

    results = settle_round(hands, dealer("10S 8C"), {"alice": bank}, house, RuleSet())

    assert [r.hand_index for r in results] == [0, 1]
    assert [r.outcome for r in results] == [Outcome.WIN, Outcome.LOSE]
    assert house.profit_loss == -50
    assert bank.balance + house.balance == 11_000


def test_evaluate_hand_moves_nothing(banks):
    bank, house = banks
    hand = place(player("10H 9D"), bank, house)

    result = evaluate_hand(hand, 0, dealer("10C 7S"), RuleSet())

    assert result.outcome is Outcome.WIN
    assert result.payout == 200
    assert hand.state is HandState.PLAYING
    assert bank.balance == 900
    assert house.profit_loss == 0


def test_settle_round_is_all_or_nothing():
    bank, house = Bank("alice", 1000), House(0)
    hands = [place(player("10H 9D"), bank, house), place(player("AH KD"), bank, house)]

    # 200 held, 450 owed
    with pytest.raises(InsufficientFundsError):
        settle_round(hands, dealer("10C 7S"), {"alice": bank}, house, RuleSet())

    assert [h.state for h in hands] == [HandState.PLAYING, HandState.PLAYING]
    assert bank.balance == 800
    assert house.balance == 200
    assert house.profit_loss == 0

    house.credit(250)
    results = settle_round(hands, dealer("10C 7S"), {"alice": bank}, house, RuleSet())
    assert [r.outcome for r in results] == [Outcome.WIN, Outcome.BLACKJACK]
    assert bank.balance == 1250
    assert house.balance == 0


def test_settle_hand_checks_the_house_first():
    bank, house = Bank("alice", 1000), House(0)
    hand = place(player("10H 9D"), bank, house)
    with pytest.raises(InsufficientFundsError):
        settle_hand(hand, 0, dealer("10C 7S"), bank, house, RuleSet())
    assert hand.state is HandState.PLAYING
    assert house.balance == 100
