"""
A single round of blackjack.

The round moves through

    insurance -> player_turn -> dealer_turn -> settling -> complete

`insurance` only happens when the dealer shows an ace. The dealer phase runs
automatically as soon as the last player hand is finished, so callers only
ever observe `dealer_turn` from inside event handlers.

All validation happens before anything is changed: a rejected call raises a
`BlackjackError` subclass and leaves the round exactly as it was.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from cutcard.blackjack.action import Action
from cutcard.blackjack.bank import Bank, House, transfer
from cutcard.blackjack.hand import DealerHand, HandState, PlayerHand
from cutcard.blackjack.rules import RuleSet
from cutcard.blackjack.settlement import SettlementResult, settle_round
from cutcard.common.card import Card, Rank
from cutcard.common.errors import (
    InsufficientFundsError,
    InvalidActionError,
    ShoeExhaustedError,
    WrongStateError,
)
from cutcard.common.shoe import Shoe
from cutcard.events.emitter import EventEmitter, EventType

logger = logging.getLogger(__name__)

# Hands the dealer does not need to beat
_DEALER_SKIP_STATES = {HandState.BUSTED, HandState.SURRENDERED, HandState.BLACKJACK}

# Cards an action draws from the shoe
_CARDS_NEEDED = {Action.HIT: 1, Action.DOUBLE: 1, Action.SPLIT: 2}


class RoundState(Enum):
    INSURANCE = "insurance"
    PLAYER_TURN = "player_turn"
    DEALER_TURN = "dealer_turn"
    SETTLING = "settling"
    COMPLETE = "complete"


@dataclass
class PlayerRoundInfo:
    """A bet entering a round: who places it, from which bank, and how much."""

    player_id: str
    bank: Bank
    bet: float


@dataclass(frozen=True)
class InsuranceResult:
    hand_index: int
    had_insurance: bool
    payout: float
    stake: float = 0.0


@dataclass(frozen=True)
class InsuranceResolution:
    dealer_blackjack: bool
    results: List[InsuranceResult]


def _codes(cards: Sequence[Card]) -> List[str]:
    return [card.code for card in cards]


class Round:
    """
    One deal of the cards, from the bets to settlement.

    :param round_number: Number of the round within the session.
    :param player_info: One entry per seat, in seat order.
    :param shoe: Shoe to deal from.
    :param rules: Table rules.
    :param emitter: Optional event emitter for the audit trail.
    :param house: House bank that holds bets; a fresh House when omitted.
    :raises ValueError: If there are no bets or a bet is not positive.
    :raises InsufficientFundsError: If any bank cannot cover its bets. No
        money moves and no cards are dealt in that case.
    """

    def __init__(
        self,
        round_number: int,
        player_info: Sequence[PlayerRoundInfo],
        shoe: Shoe,
        rules: RuleSet,
        emitter: Optional[EventEmitter] = None,
        house: Optional[House] = None,
    ):
        if not player_info:
            raise ValueError("A round needs at least one bet")
        for info in player_info:
            if info.bet <= 0:
                raise ValueError(f"Bet must be positive, got {info.bet}")

        required: Dict[int, float] = defaultdict(float)
        banks_by_key: Dict[int, Bank] = {}
        for info in player_info:
            required[id(info.bank)] += info.bet
            banks_by_key[id(info.bank)] = info.bank
        for key, amount in required.items():
            bank = banks_by_key[key]
            if not bank.can_cover(amount):
                raise InsufficientFundsError(
                    f"{bank.owner_id} cannot cover bets of {amount:.2f} "
                    f"(balance {bank.balance:.2f})"
                )

        self.round_number = round_number
        self.shoe = shoe
        self.rules = rules
        self.house = house if house is not None else House()
        self.emitter = emitter
        self.banks: Dict[str, Bank] = {}
        self.player_hands: List[PlayerHand] = []
        self.dealer_hand = DealerHand()
        self.current_hand_index = 0
        self.settlement_results: List[SettlementResult] = []
        self.insurance_results: List[InsuranceResult] = []
        self._cards_discarded = False

        # Deal before moving money so a shoe error leaves every bank untouched
        player_cards, dealer_cards = shoe.deal(len(player_info))

        for seat, info in enumerate(player_info):
            self.banks[info.player_id] = info.bank
            transfer(info.bank, self.house, info.bet)
            self.player_hands.append(
                PlayerHand(player_id=info.player_id, bet_amount=info.bet, seat=seat)
            )
            self._emit(
                EventType.BET_PLACED,
                {"player_id": info.player_id, "seat": seat, "amount": info.bet},
            )

        for hand, cards in zip(self.player_hands, player_cards):
            hand.cards.extend(cards)
            if hand.is_blackjack:
                hand.state = HandState.BLACKJACK
        self.dealer_hand.cards.extend(dealer_cards)

        logger.info(
            "Round %d dealt: %d hand(s), dealer shows %s",
            round_number,
            len(self.player_hands),
            self.dealer_hand.up_card,
        )
        self._emit(
            EventType.INITIAL_DEAL,
            {
                "hands": [
                    {
                        "player_id": hand.player_id,
                        "cards": _codes(hand.cards),
                        "value": hand.value,
                        "blackjack": hand.is_blackjack,
                    }
                    for hand in self.player_hands
                ],
                "dealer_up_card": self.dealer_hand.up_card.code,
            },
        )

        if self.dealer_hand.shows_ace:
            self.state = RoundState.INSURANCE
            for hand in self.player_hands:
                hand.insurance_offered = True
            self._emit(
                EventType.INSURANCE_OFFERED,
                {"hand_indexes": list(range(len(self.player_hands)))},
            )
        elif (
            rules.dealer_peek
            and self.dealer_hand.shows_ten
            and self.dealer_hand.is_blackjack
        ):
            self.dealer_hand.reveal()
            self.state = RoundState.SETTLING
            logger.info("Round %d: dealer peeked and has blackjack", round_number)
            self._emit(
                EventType.DEALER_ACTION,
                {"action": "peek_blackjack", "cards": _codes(self.dealer_hand.cards)},
            )
        else:
            self.state = RoundState.PLAYER_TURN
            self._advance(0)

    def _emit(self, event_type: EventType, data: Dict) -> None:
        if self.emitter is not None:
            self.emitter.emit(event_type, data)

    @property
    def is_complete(self) -> bool:
        return self.state is RoundState.COMPLETE

    @property
    def current_hand(self) -> Optional[PlayerHand]:
        if self.state is not RoundState.PLAYER_TURN:
            return None
        if self.current_hand_index >= len(self.player_hands):
            return None
        return self.player_hands[self.current_hand_index]

    def get_player_hand(self, index: int) -> PlayerHand:
        return self.player_hands[index]

    def bank_for(self, hand: PlayerHand) -> Bank:
        return self.banks[hand.player_id]

    # Player turn

    def _rule_actions(self, hand: PlayerHand) -> List[Action]:
        """Actions the rules allow on `hand`, ignoring whether they are affordable."""
        if hand.state is not HandState.PLAYING:
            return []
        actions = [Action.HIT] if self.rules.can_hit(hand) else []
        actions.append(Action.STAND)
        if self.rules.can_double(hand):
            actions.append(Action.DOUBLE)
        if self.rules.can_split(hand):
            actions.append(Action.SPLIT)
        if self.rules.can_surrender(hand):
            actions.append(Action.SURRENDER)
        return actions

    def _affordable(self, hand: PlayerHand, action: Action) -> bool:
        if action in (Action.DOUBLE, Action.SPLIT):
            return self.bank_for(hand).can_cover(hand.bet_amount)
        return True

    def _available_actions(self, hand: PlayerHand) -> List[Action]:
        return [a for a in self._rule_actions(hand) if self._affordable(hand, a)]

    def get_available_actions(self) -> List[Action]:
        """Legal actions for the current hand; empty outside the player turn."""
        hand = self.current_hand
        if hand is None:
            return []
        return self._available_actions(hand)

    def _must_auto_stand(self, hand: PlayerHand) -> bool:
        # Split aces without hit_split_aces only ever resplit or stand
        if not hand.is_split_ace or self.rules.hit_split_aces:
            return False
        return Action.SPLIT not in self._available_actions(hand)

    def _advance(self, start: int) -> None:
        """Point at the first playing hand from `start`, or run the dealer."""
        index = start
        while index < len(self.player_hands):
            hand = self.player_hands[index]
            if hand.state is HandState.PLAYING:
                if not self._must_auto_stand(hand):
                    self.current_hand_index = index
                    return
                hand.state = HandState.STOOD
                logger.debug("Hand %d: split aces stand automatically", index)
            index += 1

        self.current_hand_index = len(self.player_hands)
        self._play_dealer()

    def play_action(self, action: Union[Action, str]) -> List[PlayerHand]:
        """
        Play an action on the current hand.

        :param action: An Action or its value ("hit", "stand", ...).
        :return: The round's player hands.
        :raises WrongStateError: Outside the player turn.
        :raises InvalidActionError: If the action is unknown or not allowed on
            this hand.
        :raises InsufficientFundsError: If the action is allowed but the
            player cannot cover the extra bet.
        :raises ShoeExhaustedError: If the shoe cannot supply the cards the
            action needs.
        """
        if self.state is not RoundState.PLAYER_TURN:
            raise WrongStateError(
                f"Cannot play an action in state {self.state.value}"
            )
        try:
            action = Action.coerce(action)
        except ValueError as e:
            raise InvalidActionError(str(e)) from None

        index = self.current_hand_index
        hand = self.player_hands[index]
        if action not in self._rule_actions(hand):
            logger.warning("Rejected %s on hand %d (%s)", action, index, hand)
            raise InvalidActionError(f"Action {action} is not available on this hand")
        if not self._affordable(hand, action):
            raise InsufficientFundsError(
                f"{hand.player_id} cannot cover {hand.bet_amount:.2f} to {action}"
            )
        needed = _CARDS_NEEDED.get(action, 0)
        if needed and not self.shoe.can_draw(needed):
            raise ShoeExhaustedError(
                f"Shoe cannot supply {needed} card(s) to {action}"
            )

        value_before = hand.value
        if action is Action.HIT:
            hand.add_card(self.shoe.draw_card())
            if hand.is_bust:
                hand.state = HandState.BUSTED
        elif action is Action.STAND:
            hand.state = HandState.STOOD
        elif action is Action.DOUBLE:
            transfer(self.bank_for(hand), self.house, hand.bet_amount)
            hand.bet_amount *= 2
            hand.add_card(self.shoe.draw_card())
            hand.state = HandState.BUSTED if hand.is_bust else HandState.DOUBLED
        elif action is Action.SPLIT:
            self._split(index, hand)
        elif action is Action.SURRENDER:
            transfer(self.house, self.bank_for(hand), hand.bet_amount / 2)
            hand.state = HandState.SURRENDERED

        if action is not Action.SPLIT:
            hand.actions_taken.append(action.value)

        logger.debug(
            "Hand %d %s: %s -> %d (%s)",
            index,
            action,
            value_before,
            hand.value,
            hand.state.value,
        )
        self._emit(
            EventType.PLAYER_ACTION,
            {
                "hand_index": index,
                "player_id": hand.player_id,
                "action": action.value,
                "value_before": value_before,
                "value_after": hand.value,
                "cards": _codes(hand.cards),
                "state": hand.state.value,
                "bet_amount": hand.bet_amount,
            },
        )

        self._advance(index)
        return self.player_hands

    def _split(self, index: int, hand: PlayerHand) -> None:
        transfer(self.bank_for(hand), self.house, hand.bet_amount)

        first, second = hand.cards
        aces = first.rank is Rank.ACE
        split_count = hand.split_count + 1

        new_hand = PlayerHand(
            player_id=hand.player_id,
            bet_amount=hand.bet_amount,
            cards=[second],
            seat=hand.seat,
            is_split=True,
            is_split_ace=aces,
            split_count=split_count,
        )
        hand.cards = [first]
        hand.is_split = True
        hand.is_split_ace = aces
        hand.split_count = split_count
        # Each half starts over as a fresh two-card hand
        hand.actions_taken = []

        hand.add_card(self.shoe.draw_card())
        new_hand.add_card(self.shoe.draw_card())
        self.player_hands.insert(index + 1, new_hand)

        self._emit(
            EventType.HAND_SPLIT,
            {
                "hand_index": index,
                "new_hand_index": index + 1,
                "player_id": hand.player_id,
                "additional_bet": hand.bet_amount,
                "split_count": split_count,
                "cards": [_codes(hand.cards), _codes(new_hand.cards)],
            },
        )

    # Dealer turn

    def _play_dealer(self) -> None:
        self.state = RoundState.DEALER_TURN
        self.dealer_hand.reveal()
        self._emit(
            EventType.DEALER_ACTION,
            {"action": "reveal", "cards": _codes(self.dealer_hand.cards)},
        )

        if all(hand.state in _DEALER_SKIP_STATES for hand in self.player_hands):
            logger.debug("No live hands, dealer stands on two cards")
            self.state = RoundState.SETTLING
            return

        while self.rules.should_dealer_hit(
            self.dealer_hand.value, self.dealer_hand.is_soft
        ):
            card = self.shoe.draw_card()
            self.dealer_hand.add_card(card)
            logger.debug("Dealer draws %s -> %d", card, self.dealer_hand.value)
            self._emit(
                EventType.DEALER_ACTION,
                {"action": "hit", "card": card.code, "value": self.dealer_hand.value},
            )

        self._emit(
            EventType.DEALER_ACTION,
            {
                "action": "bust" if self.dealer_hand.is_bust else "stand",
                "value": self.dealer_hand.value,
            },
        )
        self.state = RoundState.SETTLING

    # Insurance

    def _insurance_hand(self, hand_index: int) -> PlayerHand:
        if self.state is not RoundState.INSURANCE:
            raise WrongStateError("Insurance is only available during the insurance phase")
        if not 0 <= hand_index < len(self.player_hands):
            raise InvalidActionError(f"Hand index {hand_index} out of range")
        hand = self.player_hands[hand_index]
        if hand.has_insurance or hand.insurance_declined:
            raise InvalidActionError(
                f"Insurance already decided for hand {hand_index}"
            )
        return hand

    def take_insurance(self, hand_index: int) -> float:
        """
        Place an insurance bet of half the hand's bet.

        :return: The insurance stake.
        """
        hand = self._insurance_hand(hand_index)
        amount = hand.bet_amount / 2
        bank = self.bank_for(hand)
        if not bank.can_cover(amount):
            raise InsufficientFundsError(
                f"{hand.player_id} cannot cover insurance of {amount:.2f}"
            )
        transfer(bank, self.house, amount)
        hand.insurance_amount = amount
        self._emit(
            EventType.INSURANCE_DECISION,
            {"hand_index": hand_index, "player_id": hand.player_id, "taken": True, "amount": amount},
        )
        return amount

    def decline_insurance(self, hand_index: int) -> None:
        hand = self._insurance_hand(hand_index)
        hand.insurance_declined = True
        self._emit(
            EventType.INSURANCE_DECISION,
            {"hand_index": hand_index, "player_id": hand.player_id, "taken": False, "amount": 0},
        )

    def resolve_insurance(self) -> InsuranceResolution:
        """
        Check the hole card and settle insurance bets.

        Insured hands are paid 2:1 (three times the stake back) when the
        dealer has blackjack, and the round goes straight to settlement.
        Otherwise insurance stakes are lost and play continues.
        """
        if self.state is not RoundState.INSURANCE:
            raise WrongStateError("Cannot resolve insurance outside the insurance phase")
        house = self.house

        dealer_blackjack = self.dealer_hand.is_blackjack
        results = []
        for index, hand in enumerate(self.player_hands):
            if not hand.has_insurance:
                results.append(InsuranceResult(index, False, 0.0))
                continue
            stake = hand.insurance_amount
            if dealer_blackjack:
                payout = stake * (1 + self.rules.insurance_payout)
                transfer(house, self.bank_for(hand), payout)
                house.record_result(stake - payout)
            else:
                payout = 0.0
                house.record_result(stake)
            results.append(InsuranceResult(index, True, payout, stake))

        self.insurance_results = results
        self._emit(
            EventType.INSURANCE_RESOLVED,
            {
                "dealer_blackjack": dealer_blackjack,
                "payouts": [r.payout for r in results],
            },
        )

        if dealer_blackjack:
            self.dealer_hand.reveal()
            self.state = RoundState.SETTLING
            logger.info("Round %d: dealer has blackjack", self.round_number)
        else:
            self.state = RoundState.PLAYER_TURN
            self._advance(0)

        return InsuranceResolution(dealer_blackjack, results)

    # Settlement

    def settle(self) -> List[SettlementResult]:
        """
        Settle every hand and complete the round.

        :raises InsufficientFundsError: If the house cannot cover the payouts.
            Nothing is paid and the round stays in settling, so it can be
            settled again once the house is funded.
        """
        if self.state is not RoundState.SETTLING:
            raise WrongStateError(f"Cannot settle in state {self.state.value}")

        results = settle_round(
            self.player_hands, self.dealer_hand, self.banks, self.house, self.rules
        )
        self.settlement_results = results
        self.state = RoundState.COMPLETE

        logger.info(
            "Round %d settled: dealer %d, player net %.2f",
            self.round_number,
            self.dealer_hand.value,
            sum(r.profit for r in results),
        )
        self._emit(
            EventType.SETTLEMENT,
            {
                "dealer_cards": _codes(self.dealer_hand.cards),
                "dealer_value": self.dealer_hand.value,
                "results": [r.to_dict() for r in results],
            },
        )
        return results

    def all_cards(self) -> List[Card]:
        cards = [card for hand in self.player_hands for card in hand.cards]
        cards.extend(self.dealer_hand.cards)
        return cards

    def discard_cards(self) -> int:
        """
        Move every card of the round to the shoe's discard pile.

        Only the first call has an effect.

        :return: The number of cards discarded.
        """
        if self._cards_discarded:
            return 0
        cards = self.all_cards()
        self.shoe.discard(cards)
        self._cards_discarded = True
        return len(cards)
