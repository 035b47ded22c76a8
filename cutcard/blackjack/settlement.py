"""
Settlement of finished hands against the dealer.

Bets are taken from the player when a round starts and held by the house,
so settlement only moves money back to winners and pushes:

- lose: the house keeps the bet
- push: the bet is returned
- win: bet plus even money
- blackjack: bet plus the table's natural payout (3:2, 6:5...)
- surrender: half the bet, already returned when the player surrendered
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping

from cutcard.blackjack.bank import Bank, House, transfer
from cutcard.blackjack.hand import DealerHand, HandState, PlayerHand
from cutcard.blackjack.rules import RuleSet
from cutcard.common.errors import InsufficientFundsError

logger = logging.getLogger(__name__)


class Outcome(Enum):
    BLACKJACK = "blackjack"
    WIN = "win"
    PUSH = "push"
    LOSE = "lose"
    SURRENDER = "surrender"


_FINAL_STATES = {
    Outcome.BLACKJACK: HandState.BLACKJACK,
    Outcome.WIN: HandState.WON,
    Outcome.PUSH: HandState.PUSHED,
    Outcome.LOSE: HandState.LOST,
    Outcome.SURRENDER: HandState.SURRENDERED,
}


@dataclass(frozen=True)
class SettlementResult:
    """
    Result of settling one hand.

    Attributes:
        hand_index: Position of the hand in the round
        outcome: The Outcome
        payout: Amount returned to the player, stake included
        profit: Net result for the player (payout minus bet)
        player_value: Final player total
        dealer_value: Final dealer total
        player_id: Owner of the hand
        bet_amount: Bet settled (the doubled bet for a double down)
    """

    hand_index: int
    outcome: Outcome
    payout: float
    profit: float
    player_value: int
    dealer_value: int
    player_id: str = ""
    bet_amount: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "hand_index": self.hand_index,
            "outcome": self.outcome.value,
            "payout": self.payout,
            "profit": self.profit,
            "player_value": self.player_value,
            "dealer_value": self.dealer_value,
            "player_id": self.player_id,
            "bet_amount": self.bet_amount,
        }


def determine_outcome(hand: PlayerHand, dealer: DealerHand) -> Outcome:
    """Compare a finished player hand with the dealer's final hand."""
    if hand.state is HandState.SURRENDERED:
        return Outcome.SURRENDER
    if hand.is_bust:
        return Outcome.LOSE

    if hand.is_blackjack:
        return Outcome.PUSH if dealer.is_blackjack else Outcome.BLACKJACK
    if dealer.is_blackjack:
        return Outcome.LOSE

    if dealer.is_bust or hand.value > dealer.value:
        return Outcome.WIN
    if hand.value == dealer.value:
        return Outcome.PUSH
    return Outcome.LOSE


def calculate_payout(bet: float, outcome: Outcome, rules: RuleSet) -> float:
    """
    Calculate the amount returned to the player, including the original bet.

    >>> calculate_payout(100, Outcome.BLACKJACK, RuleSet())
    250.0
    """
    if outcome is Outcome.BLACKJACK:
        return bet + rules.blackjack_winnings(bet)
    if outcome is Outcome.WIN:
        return bet * 2
    if outcome is Outcome.PUSH:
        return bet
    if outcome is Outcome.SURRENDER:
        return bet / 2
    return 0.0


def evaluate_hand(
    hand: PlayerHand, hand_index: int, dealer: DealerHand, rules: RuleSet
) -> SettlementResult:
    """Work out a hand's settlement without moving money or changing the hand."""
    outcome = determine_outcome(hand, dealer)
    bet = hand.bet_amount
    payout = calculate_payout(bet, outcome, rules)
    return SettlementResult(
        hand_index=hand_index,
        outcome=outcome,
        payout=payout,
        profit=payout - bet,
        player_value=hand.value,
        dealer_value=dealer.value,
        player_id=hand.player_id,
        bet_amount=bet,
    )


def _cash_due(result: SettlementResult) -> float:
    # A surrendered hand got its half bet back when it surrendered
    if result.outcome is Outcome.SURRENDER:
        return 0.0
    return result.payout


def _check_house_covers(house: House, results: List[SettlementResult]) -> None:
    due = sum(_cash_due(result) for result in results)
    if not house.can_cover(due):
        logger.warning(
            "House cannot cover payouts of %.2f (balance %.2f), nothing settled",
            due,
            house.balance,
        )
        raise InsufficientFundsError(
            f"House cannot cover payouts of {due:.2f} (balance {house.balance:.2f})"
        )


def _apply(
    result: SettlementResult,
    hand: PlayerHand,
    dealer: DealerHand,
    bank: Bank,
    house: House,
) -> None:
    due = _cash_due(result)
    if due > 0:
        transfer(house, bank, due)
    house.record_result(-result.profit)

    hand.state = _FINAL_STATES[result.outcome]
    logger.debug(
        "Hand %d (%s): %s, bet %.2f, payout %.2f, player %d vs dealer %d",
        result.hand_index,
        hand.player_id,
        result.outcome.value,
        result.bet_amount,
        result.payout,
        hand.value,
        dealer.value,
    )


def settle_hand(
    hand: PlayerHand,
    hand_index: int,
    dealer: DealerHand,
    bank: Bank,
    house: House,
    rules: RuleSet,
) -> SettlementResult:
    """
    Settle one hand: pay the player and update the house result.

    The bet has already been transferred to the house, and a surrendered
    hand has already had its half bet returned.

    :raises InsufficientFundsError: If the house cannot cover the payout;
        the hand and both banks are left untouched.
    """
    result = evaluate_hand(hand, hand_index, dealer, rules)
    _check_house_covers(house, [result])
    _apply(result, hand, dealer, bank, house)
    return result


def settle_round(
    hands: List[PlayerHand],
    dealer: DealerHand,
    banks: Mapping[str, Bank],
    house: House,
    rules: RuleSet,
) -> List[SettlementResult]:
    """
    Settle every hand of a round, in hand order.

    Settlement is all or nothing: every payout is worked out first, and if
    the house cannot cover their total no money moves and no hand changes.

    :raises InsufficientFundsError: If the house cannot cover the payouts.
    """
    results = [
        evaluate_hand(hand, index, dealer, rules) for index, hand in enumerate(hands)
    ]
    _check_house_covers(house, results)
    for result, hand in zip(results, hands):
        _apply(result, hand, dealer, banks[hand.player_id], house)
    return results
