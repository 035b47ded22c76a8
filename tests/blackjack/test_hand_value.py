import pytest

from cutcard.blackjack.hand import (
    DealerHand,
    HandState,
    HandValue,
    PlayerHand,
    hand_value,
)
from cutcard.common.card import parse_cards


@pytest.mark.parametrize(
    "codes,total,soft",
    [
        ("AH 6D", 17, True),
        ("10H 7D", 17, False),
        ("AH 6D 10C", 17, False),
        ("AH AD", 12, True),
        ("AH AD AC AS", 14, True),
        ("AH AD 9C", 21, True),
        ("KH QD", 20, False),
        ("KH QD 5C", 25, False),
        ("AH KD", 21, True),
    ],
)
def test_hand_value(codes, total, soft):
    assert hand_value(parse_cards(codes)) == HandValue(total, soft)


def test_empty_hand_value():
    assert hand_value([]) == HandValue(0, False)


def test_hand_value_bust_flag():
    assert hand_value(parse_cards("KH QD 5C")).is_bust
    assert not hand_value(parse_cards("KH QD AC")).is_bust


def make_hand(codes, **kwargs):
    return PlayerHand(player_id="p1", bet_amount=100, cards=parse_cards(codes), **kwargs)


class TestPlayerHand:
    def test_defaults(self):
        hand = PlayerHand(player_id="p1", bet_amount=10)
        assert hand.state is HandState.PLAYING
        assert hand.cards == []
        assert hand.id.startswith("hand-")
        assert not hand.has_insurance

    def test_ids_are_unique(self):
        assert PlayerHand("p1", 10).id != PlayerHand("p1", 10).id

    def test_blackjack(self):
        assert make_hand("AH KD").is_blackjack
        assert make_hand("QS AC").is_blackjack

    def test_split_twenty_one_is_not_blackjack(self):
        assert not make_hand("AH KD", is_split=True, split_count=1).is_blackjack

    def test_three_card_twenty_one_is_not_blackjack(self):
        assert not make_hand("7H 7D 7C").is_blackjack

    def test_value_and_softness(self):
        hand = make_hand("AH 6D")
        assert hand.value == 17
        assert hand.is_soft
        hand.add_card(parse_cards("10C")[0])
        assert hand.value == 17
        assert not hand.is_soft

    def test_bust(self):
        assert make_hand("10H 6D 9C").is_bust
        assert not make_hand("10H 6D 5C").is_bust

    def test_pair_uses_rank_not_value(self):
        assert make_hand("8H 8D").is_pair
        assert make_hand("8H 8D").can_split
        assert not make_hand("KH QD").is_pair
        assert not make_hand("8H 8D 8C").is_pair

    def test_can_split_follows_cards(self):
        hand = make_hand("8H 8D")
        assert hand.can_split
        hand.add_card(parse_cards("2C")[0])
        assert not hand.can_split

    def test_insurance(self):
        hand = make_hand("10H 9D", insurance_amount=50)
        assert hand.has_insurance

    def test_str(self):
        assert str(make_hand("AH KD")) == "A of ♥, K of ♦"


class TestDealerHand:
    def test_hole_card_hidden_until_revealed(self):
        dealer = DealerHand(parse_cards("AH 6D"))
        assert dealer.up_card == parse_cards("AH")[0]
        assert dealer.visible_cards == parse_cards("AH")
        assert dealer.reveal() == parse_cards("6D")[0]
        assert dealer.revealed
        assert dealer.visible_cards == parse_cards("AH 6D")

    def test_empty_dealer_hand(self):
        dealer = DealerHand()
        assert dealer.up_card is None
        assert dealer.hole_card is None
        assert dealer.value == 0

    def test_blackjack_and_up_card_checks(self):
        dealer = DealerHand(parse_cards("AH KD"))
        assert dealer.is_blackjack
        assert dealer.shows_ace
        assert not dealer.shows_ten

        ten_up = DealerHand(parse_cards("QH AD"))
        assert ten_up.is_blackjack
        assert ten_up.shows_ten

    def test_three_card_twenty_one_is_not_blackjack(self):
        assert not DealerHand(parse_cards("7H 7D 7C")).is_blackjack

    def test_soft_seventeen(self):
        dealer = DealerHand(parse_cards("AH 6D"))
        assert dealer.value == 17
        assert dealer.is_soft

    def test_str_shows_only_visible_cards(self):
        dealer = DealerHand(parse_cards("AH 6D"))
        assert str(dealer) == "A of ♥"
