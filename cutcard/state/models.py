"""
Immutable snapshots of engine state.

The engine objects (`Round`, `PlayerHand`, `Bank`...) are mutable and owned
by the game. User interfaces and persistence code read these frozen copies
instead: a snapshot taken before an action does not change when the action
is played, so a UI can diff two snapshots to decide what to redraw.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from cutcard.blackjack.hand import DealerHand, PlayerHand, hand_value
from cutcard.blackjack.round import Round
from cutcard.common.card import Card


@dataclass(frozen=True)
class HandSnapshot:
    """
    Immutable representation of a player hand.

    Attributes:
        id: Unique identifier of the hand
        player_id: Owner of the hand
        seat: Index of the bet the hand came from
        cards: Cards in the hand
        value: Best total
        is_soft: Whether an ace counts as 11
        bet_amount: Current bet
        state: HandState value ("playing", "stood"...)
        is_split: Whether the hand came from a split
        is_split_ace: Whether the hand is a split ace
        split_count: Splits in the hand's history
        insurance_offered: Whether insurance was offered
        insurance_amount: Insurance stake (0 when none)
        actions_taken: Actions played on the hand
    """

    id: str
    player_id: str
    seat: int
    cards: Tuple[Card, ...]
    value: int
    is_soft: bool
    bet_amount: float
    state: str
    is_split: bool = False
    is_split_ace: bool = False
    split_count: int = 0
    insurance_offered: bool = False
    insurance_amount: float = 0.0
    actions_taken: Tuple[str, ...] = ()

    @property
    def is_blackjack(self) -> bool:
        return len(self.cards) == 2 and self.value == 21 and not self.is_split

    @property
    def is_bust(self) -> bool:
        return self.value > 21

    @property
    def has_insurance(self) -> bool:
        return self.insurance_amount > 0

    @classmethod
    def from_hand(cls, hand: PlayerHand) -> "HandSnapshot":
        return cls(
            id=hand.id,
            player_id=hand.player_id,
            seat=hand.seat,
            cards=tuple(hand.cards),
            value=hand.value,
            is_soft=hand.is_soft,
            bet_amount=hand.bet_amount,
            state=hand.state.value,
            is_split=hand.is_split,
            is_split_ace=hand.is_split_ace,
            split_count=hand.split_count,
            insurance_offered=hand.insurance_offered,
            insurance_amount=hand.insurance_amount,
            actions_taken=tuple(hand.actions_taken),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "seat": self.seat,
            "cards": [card.code for card in self.cards],
            "value": self.value,
            "is_soft": self.is_soft,
            "bet_amount": self.bet_amount,
            "state": self.state,
            "is_split": self.is_split,
            "is_split_ace": self.is_split_ace,
            "split_count": self.split_count,
            "insurance_offered": self.insurance_offered,
            "insurance_amount": self.insurance_amount,
            "actions_taken": list(self.actions_taken),
        }


@dataclass(frozen=True)
class DealerSnapshot:
    """The dealer's hand as a player may see it: the hole card stays hidden until revealed."""

    visible_cards: Tuple[Card, ...]
    visible_value: int
    revealed: bool
    card_count: int

    @property
    def up_card(self) -> Optional[Card]:
        return self.visible_cards[0] if self.visible_cards else None

    @classmethod
    def from_hand(cls, hand: DealerHand) -> "DealerSnapshot":
        visible = tuple(hand.visible_cards)
        return cls(
            visible_cards=visible,
            visible_value=hand_value(visible).total,
            revealed=hand.revealed,
            card_count=len(hand.cards),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visible_cards": [card.code for card in self.visible_cards],
            "visible_value": self.visible_value,
            "revealed": self.revealed,
            "card_count": self.card_count,
        }


@dataclass(frozen=True)
class RoundSnapshot:
    round_number: int
    state: str
    current_hand_index: int
    hands: Tuple[HandSnapshot, ...]
    dealer: DealerSnapshot
    available_actions: Tuple[str, ...]
    settlement_results: Tuple[Dict[str, Any], ...] = ()

    @property
    def current_hand(self) -> Optional[HandSnapshot]:
        if 0 <= self.current_hand_index < len(self.hands):
            return self.hands[self.current_hand_index]
        return None

    @classmethod
    def from_round(cls, round_: Round) -> "RoundSnapshot":
        return cls(
            round_number=round_.round_number,
            state=round_.state.value,
            current_hand_index=round_.current_hand_index,
            hands=tuple(HandSnapshot.from_hand(h) for h in round_.player_hands),
            dealer=DealerSnapshot.from_hand(round_.dealer_hand),
            available_actions=tuple(a.value for a in round_.get_available_actions()),
            settlement_results=tuple(r.to_dict() for r in round_.settlement_results),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_number": self.round_number,
            "state": self.state,
            "current_hand_index": self.current_hand_index,
            "hands": [hand.to_dict() for hand in self.hands],
            "dealer": self.dealer.to_dict(),
            "available_actions": list(self.available_actions),
            "settlement_results": [dict(r) for r in self.settlement_results],
        }


@dataclass(frozen=True)
class PlayerSnapshot:
    id: str
    name: str
    balance: float


@dataclass(frozen=True)
class GameSnapshot:
    """
    Immutable view of a whole session.

    Attributes:
        session_id: Identifier of the session
        players: Seated players and their balances
        house_balance: Current house bankroll
        house_profit_loss: House result so far
        rounds_played: Number of completed rounds
        shoe_remaining: Cards left in the shoe
        shoe_complete: Whether the cut card has come out
        rules: Serialized table rules
        current_round: Snapshot of the round in progress, if any
        timestamp: When the snapshot was taken
    """

    session_id: str
    players: Tuple[PlayerSnapshot, ...]
    house_balance: float
    house_profit_loss: float
    rounds_played: int
    shoe_remaining: int
    shoe_complete: bool
    rules: Dict[str, Any]
    current_round: Optional[RoundSnapshot] = None
    timestamp: float = field(default_factory=time.time)

    def player(self, player_id: str) -> Optional[PlayerSnapshot]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the snapshot to a dictionary suitable for serialization."""
        return {
            "session_id": self.session_id,
            "players": [
                {"id": p.id, "name": p.name, "balance": p.balance} for p in self.players
            ],
            "house_balance": self.house_balance,
            "house_profit_loss": self.house_profit_loss,
            "rounds_played": self.rounds_played,
            "shoe_remaining": self.shoe_remaining,
            "shoe_complete": self.shoe_complete,
            "rules": dict(self.rules),
            "current_round": self.current_round.to_dict() if self.current_round else None,
            "timestamp": self.timestamp,
        }
